"""Nox sessions for the registration services."""

import nox

nox.options.sessions = ["tests", "lint"]
python_versions = ["3.11", "3.12"]


@nox.session(python=python_versions)
def tests(session):
    """Run the test suite with coverage."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        "--cov=spark_registration",
        "--cov-report=term-missing",
        "--cov-report=xml:coverage.xml",
        "--cov-fail-under=85",
        *session.posargs,
    )


@nox.session(python=python_versions[0])
def lint(session):
    """Check lint and formatting with ruff."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", "spark_registration", "scripts", "tests")
    session.run("ruff", "format", "--check", "spark_registration", "scripts", "tests")


@nox.session(python=python_versions[0])
def format_code(session):
    """Apply ruff formatting and autofixes."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "format", ".")
    session.run("ruff", "check", "--fix", ".")


@nox.session(python=python_versions[0])
def test_single(session):
    """Run a single test file or test function."""
    if not session.posargs:
        session.error("Please provide a test file or function to run")

    session.install("-e", ".[dev]")
    session.run("pytest", "-v", *session.posargs)
