"""Command-line interface for the Token Health API."""

import asyncio
import json
import os
import sys
from typing import Optional

import click
import structlog
import uvicorn

from token_health_api.client import TokenHealthClient, UnexpectedResponse, validate_challenge
from token_health_api.config.settings import APISettings
from token_health_api.schemas.models import AssetType
from token_health_api.utils.logging import setup_logging

logger = structlog.get_logger(__name__)

LOG_LEVEL_ENV = "TOKEN_HEALTH_LOG_LEVEL"

ASSET_CHOICE = click.Choice([asset.value for asset in AssetType], case_sensitive=False)


def _asset(value: str) -> AssetType:
    return AssetType.SBTC if value.lower() == AssetType.SBTC.value.lower() else AssetType.STX


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2))


@click.group(name="token-health")
@click.option('--log-level', '-l', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, log_level: str):
    """Token Health Check service and client CLI."""
    ctx.ensure_object(dict)
    ctx.obj['log_level'] = log_level


def _load_settings(ctx) -> APISettings:
    try:
        settings = APISettings()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    settings.log_level = ctx.obj['log_level']
    return settings


@cli.command()
@click.option('--host', '-h', default=None, help='Bind host (default: from settings)')
@click.option('--port', '-p', type=int, default=None, help='Bind port (default: from settings)')
@click.option('--reload', is_flag=True, help='Reload on code changes')
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    settings = _load_settings(ctx)

    # create_app() runs in the server process and reads its settings from the environment
    os.environ[LOG_LEVEL_ENV] = settings.log_level

    click.echo(f"Starting Token Health API on {host or settings.host}:{port or settings.port}")

    uvicorn.run(
        "token_health_api.app.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        workers=1 if reload or settings.debug else settings.workers,
        reload=reload,
        access_log=settings.access_log,
        log_level=settings.log_level.lower()
    )


@cli.command()
@click.argument('token')
@click.option('--url', '-u', default='http://localhost:8000', help='Service base URL')
@click.option('--asset', '-a', default=AssetType.STX.value, type=ASSET_CHOICE,
              help='Settlement asset')
@click.pass_context
def challenge(ctx, token: str, url: str, asset: str):
    """Fetch and check the payment challenge for TOKEN."""
    setup_logging(ctx.obj['log_level'], log_format="text")

    async def run():
        async with TokenHealthClient(url) as client:
            return await client.get_challenge_body(token, _asset(asset))

    try:
        body = asyncio.run(run())
    except UnexpectedResponse as e:
        click.echo(f"❌ Expected a 402 challenge, got {e.status_code}", err=True)
        _echo_json(e.body)
        sys.exit(1)
    except Exception as e:
        click.echo(f"❌ Request failed: {e}", err=True)
        sys.exit(1)

    _echo_json(body)

    problems = validate_challenge(body)
    if problems:
        click.echo("\nValidation checks failed:", err=True)
        for problem in problems:
            click.echo(f"- {problem}", err=True)
        sys.exit(1)

    click.echo("\n✅ Challenge is well-formed")


@cli.command()
@click.argument('token')
@click.option('--payment', '-p', required=True, help='Signed transaction hex')
@click.option('--url', '-u', default='http://localhost:8000', help='Service base URL')
@click.option('--asset', '-a', default=AssetType.STX.value, type=ASSET_CHOICE,
              help='Settlement asset')
@click.pass_context
def check(ctx, token: str, payment: str, url: str, asset: str):
    """Buy a health report for TOKEN with a pre-signed transaction."""
    setup_logging(ctx.obj['log_level'], log_format="text")

    async def run():
        async with TokenHealthClient(url) as client:
            return await client.get_report(token, payment, _asset(asset))

    try:
        paid = asyncio.run(run())
    except UnexpectedResponse as e:
        click.echo(f"❌ Request failed with status {e.status_code}", err=True)
        _echo_json(e.body)
        sys.exit(1)
    except Exception as e:
        click.echo(f"❌ Request failed: {e}", err=True)
        sys.exit(1)

    click.echo("Health Report:")
    _echo_json(paid.report)

    if paid.receipt:
        click.echo("\nPayment receipt:")
        _echo_json(paid.receipt)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
