"""Tests for the command-line interface."""

from typer.testing import CliRunner

from tldw import __version__
from tldw.cli import app

runner = CliRunner()


def test_version() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_jobs_list_shows_every_job() -> None:
    result = runner.invoke(app, ["jobs", "list"])

    assert result.exit_code == 0
    assert "reset_monthly_credits" in result.stdout
    assert "cleanup_old_logs" in result.stdout


def test_jobs_run_unknown_job() -> None:
    """Unknown job names fail before any job runs."""
    result = runner.invoke(app, ["jobs", "run", "defragment_everything"])

    assert result.exit_code == 1
    assert "Unknown maintenance job" in result.stdout


def test_users_credits_rejects_non_positive_amount() -> None:
    result = runner.invoke(app, ["users", "credits", "ada@example.com", "0"])

    assert result.exit_code == 1
    assert "positive" in result.stdout
