# ops_resilience/cli.py

"""
Command line tools: settings validation and API health checks.
"""

import asyncio
import json

import click

from .config import ConfigFileError, ConfigValidationError, ResilienceSettings, load_config
from .layer import ResilienceLayer


def _load_settings(config_file: str | None) -> ResilienceSettings:
    try:
        return load_config(ResilienceSettings, config_file)
    except ConfigValidationError as e:
        click.echo("❌ Configuration validation failed:")
        click.echo(e.format_errors())
        raise click.Abort() from e
    except ConfigFileError as e:
        click.echo(f"❌ Configuration file error: {e}")
        raise click.Abort() from e


@click.group()
def cli() -> None:
    """Ops resilience layer tools."""


@cli.group()
def config() -> None:
    """Settings management."""


@config.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def validate(config_file: str) -> None:
    """Validate a YAML settings file."""
    settings = _load_settings(config_file)

    click.echo("✅ Configuration validation successful!")
    click.echo(f"   Environment: {settings.environment.value}")
    click.echo(f"   Schema version: {settings.schema_version}")
    click.echo(f"   Base URL: {settings.base_url}")

    if settings.validation_checksum:
        if settings.validate_checksum():
            click.echo("✅ Configuration checksum validation passed")
        else:
            click.echo(
                "⚠️  Configuration checksum validation failed - possible drift detected"
            )


@config.command()
@click.option(
    "--config-file", "-c", type=click.Path(exists=True, dir_okay=False), default=None
)
def show(config_file: str | None) -> None:
    """Print the effective settings as JSON."""
    settings = _load_settings(config_file)
    data = settings.model_dump(mode="json")
    data["checksum"] = settings.calculate_checksum()
    click.echo(json.dumps(data, indent=2, sort_keys=True))


@cli.command()
@click.option(
    "--config-file", "-c", type=click.Path(exists=True, dir_okay=False), default=None
)
def health(config_file: str | None) -> None:
    """Run a health check against the configured API."""
    settings = _load_settings(config_file)

    async def run() -> dict:
        async with ResilienceLayer.from_settings(settings, configure_logs=True) as layer:
            return await layer.client.health_check()

    result = asyncio.run(run())
    click.echo(json.dumps(result, indent=2))
    if result["status"] == "unhealthy":
        raise SystemExit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
