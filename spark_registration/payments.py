from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Final

PAYEE_NAME: Final = "Alhuda SPARK"
DEFAULT_MAILING_ADDRESS: Final = "123 Main Street, Indianapolis, IN 46201"
DEFAULT_ZELLE_EMAIL: Final = "finance@alhudaspark.org"
DEFAULT_VENMO_USERNAME: Final = "@AlhudaSPARK"


@dataclass(frozen=True, slots=True)
class PaymentSettings:
    payee_name: str = PAYEE_NAME
    mailing_address: str = DEFAULT_MAILING_ADDRESS
    zelle_email: str = DEFAULT_ZELLE_EMAIL
    venmo_username: str = DEFAULT_VENMO_USERNAME


@dataclass(frozen=True, slots=True)
class PaymentInstructions:
    method: str
    title: str
    text: str
    details: tuple[tuple[str, str], ...]

    def detail(self, label: str) -> str | None:
        for key, value in self.details:
            if key == label:
                return value
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "method": self.method,
            "title": self.title,
            "text": self.text,
            "details": [{"label": key, "value": value} for key, value in self.details],
        }

    def as_text(self) -> str:
        lines = [self.title, self.text]
        lines.extend(f"{key}: {value}" for key, value in self.details)
        return "\n".join(lines)


def format_amount(amount: Decimal | int | float) -> str:
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"${value:,.0f}"
    return f"${value:,.2f}"


def resolve_payment_instructions(
    payment_method: str,
    fee: Decimal | int | float,
    reference_id: str,
    payer_name: str,
    *,
    check_memo: str | None = None,
    settings: PaymentSettings = PaymentSettings(),
) -> PaymentInstructions | None:
    """Return manual remittance instructions, or ``None`` for hosted payments.

    ``check_memo`` overrides the memo line printed on checks; it defaults to
    ``"Registration - <payer name>"``.
    """
    amount = format_amount(fee)
    if payment_method == "check":
        return PaymentInstructions(
            method="check",
            title="Payment by Check",
            text=(
                f'Please make your check payable to "{settings.payee_name}" '
                "and mail it to:"
            ),
            details=(
                ("Payee", settings.payee_name),
                ("Mailing Address", settings.mailing_address),
                ("Amount", amount),
                ("Memo", check_memo or f"Registration - {payer_name}"),
                ("Reference", reference_id),
            ),
        )
    if payment_method == "zelle":
        return PaymentInstructions(
            method="zelle",
            title="Payment by Zelle",
            text="Please send your Zelle payment using the following information:",
            details=(
                ("Recipient Email", settings.zelle_email),
                ("Recipient Name", settings.payee_name),
                ("Amount", amount),
                ("Memo", reference_id),
            ),
        )
    if payment_method == "venmo":
        return PaymentInstructions(
            method="venmo",
            title="Payment by Venmo",
            text="Please send your Venmo payment to:",
            details=(
                ("Venmo Username", settings.venmo_username),
                ("Amount", amount),
                ("Note", f"{reference_id} - {payer_name}"),
            ),
        )
    return None


__all__ = [
    "PAYEE_NAME",
    "PaymentSettings",
    "PaymentInstructions",
    "format_amount",
    "resolve_payment_instructions",
]
