"""Tests for the command-line interface."""

import os
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from token_health_api.cli import LOG_LEVEL_ENV, cli
from token_health_api.client import PaidReport, UnexpectedResponse
from token_health_api.config.settings import APISettings
from token_health_api.schemas.models import AssetType
from tests.conftest import PAY_TO, SIGNED_TX_HEX, TOKEN


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("token_health_api.cli.setup_logging") as setup_logging:
        yield setup_logging


@pytest.fixture
def challenge_body():
    """402 body exactly as the service sends it."""
    return {
        "maxAmountRequired": "10000",
        "resource": f"/health/{TOKEN}",
        "payTo": PAY_TO,
        "network": "mainnet",
        "nonce": "abc",
        "expiresAt": "2024-01-15T12:05:00.000Z",
        "assetType": "STX",
    }


class TestCLI:
    """Test suite for the token-health CLI."""

    def test_help_lists_commands(self, runner):
        """Test the group help names every command."""
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "challenge", "check"):
            assert command in result.output

    def test_challenge_command(self, runner, challenge_body, quiet_logging):
        """Test a well-formed 402 body is printed and accepted."""
        with patch("token_health_api.cli.TokenHealthClient.get_challenge_body",
                   new=AsyncMock(return_value=challenge_body)) as get_challenge_body:
            result = runner.invoke(cli, ["--log-level", "DEBUG", "challenge", TOKEN, "--asset", "stx"], obj={})

        assert result.exit_code == 0
        assert '"maxAmountRequired": "10000"' in result.output
        assert "Challenge is well-formed" in result.output
        get_challenge_body.assert_awaited_once_with(TOKEN, AssetType.STX)
        quiet_logging.assert_called_once_with("DEBUG", log_format="text")

    def test_challenge_checks_body_as_sent(self, runner, challenge_body):
        """Test shape problems in the raw 402 body fail the command."""
        challenge_body["maxAmountRequired"] = 10000
        del challenge_body["expiresAt"]

        with patch("token_health_api.cli.TokenHealthClient.get_challenge_body",
                   new=AsyncMock(return_value=challenge_body)):
            result = runner.invoke(cli, ["challenge", TOKEN], obj={})

        assert result.exit_code == 1
        assert '"maxAmountRequired": 10000' in result.output
        assert "maxAmountRequired is not a string" in result.output
        assert "expiresAt is not a string" in result.output
        assert "Challenge is well-formed" not in result.output

    def test_challenge_unexpected_status(self, runner):
        """Test a non-402 answer exits with an error."""
        error = UnexpectedResponse(400, {"error": "Invalid token address format"})
        with patch("token_health_api.cli.TokenHealthClient.get_challenge_body", new=AsyncMock(side_effect=error)):
            result = runner.invoke(cli, ["challenge", "not-a-token"], obj={})

        assert result.exit_code == 1
        assert "got 400" in result.output

    def test_check_command(self, runner):
        """Test the report and receipt are both printed."""
        paid = PaidReport(report={"score": 85, "grade": "A"}, receipt={"txId": "0xabc"})
        with patch("token_health_api.cli.TokenHealthClient.get_report",
                   new=AsyncMock(return_value=paid)) as get_report:
            result = runner.invoke(
                cli,
                ["check", TOKEN, "--payment", SIGNED_TX_HEX, "--asset", "sBTC"],
                obj={}
            )

        assert result.exit_code == 0
        assert '"grade": "A"' in result.output
        assert '"txId": "0xabc"' in result.output
        get_report.assert_awaited_once_with(TOKEN, SIGNED_TX_HEX, AssetType.SBTC)

    def test_serve_exports_log_level_to_app(self, runner, monkeypatch):
        """Test the CLI log level reaches the settings the app factory builds."""
        monkeypatch.setenv("TOKEN_HEALTH_PAYMENT_ADDRESS", PAY_TO)
        monkeypatch.setenv(LOG_LEVEL_ENV, "INFO")

        with patch("token_health_api.cli.uvicorn.run") as run:
            result = runner.invoke(cli, ["--log-level", "DEBUG", "serve", "--port", "9000"], obj={})

        assert result.exit_code == 0
        assert os.environ[LOG_LEVEL_ENV] == "DEBUG"
        assert APISettings(_env_file=None).log_level == "DEBUG"

        args, kwargs = run.call_args
        assert args == ("token_health_api.app.main:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9000
        assert kwargs["log_level"] == "debug"

    def test_serve_without_payment_address(self, runner, monkeypatch):
        """Test serve refuses to start without a configured payment address."""
        monkeypatch.setenv("TOKEN_HEALTH_PAYMENT_ADDRESS", "")

        with patch("token_health_api.cli.uvicorn.run") as run:
            result = runner.invoke(cli, ["serve"], obj={})

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output
        run.assert_not_called()
