"""alertchain CLI.

Usage:
    alertchain run                  # Provision, verify and tear down
    alertchain run --access-tier Hot --log-format text
    alertchain plan                 # Print the resource descriptors as YAML
    alertchain plan --output json
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from .config import (
    MAX_OPERATION_TIMEOUT_SECONDS,
    MIN_OPERATION_TIMEOUT_SECONDS,
    Config,
    ConfigurationError,
    LogFormat,
    StorageAccessTier,
)
from .descriptors import InvalidSpec, build_plan
from .main import EXIT_INTERRUPTED, log_format_from_env, main
from .receivers import ReceiversLoadError, resolve_notification_channels

ACCESS_TIERS = [t.value for t in StorageAccessTier]
LOG_FORMATS = [f.value for f in LogFormat]


def _overrides(**options: Any) -> dict[str, Any]:
    """Keep only the options the user actually passed."""
    return {key: value for key, value in options.items() if value is not None}


def _load_config(require_credentials: bool, overrides: dict[str, Any]) -> Config:
    config = Config.from_env(require_credentials=require_credentials)
    if overrides:
        # replace() re-runs validation on the merged values
        config = dataclasses.replace(config, **overrides)
    return config


@click.group()
@click.version_option(version="0.1.0", prog_name="alertchain")
def cli() -> None:
    """Storage key listing alert provisioning.

    \b
    Identity is read from the environment:
        CLIENT_ID, CLIENT_SECRET, TENANT_ID, SUBSCRIPTION_ID
    """
    pass


@cli.command()
@click.option("--location", help="Region for the resource group and storage account")
@click.option(
    "--access-tier",
    type=click.Choice(ACCESS_TIERS, case_sensitive=False),
    help="Storage account access tier",
)
@click.option(
    "--receivers-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with notification receivers",
)
@click.option(
    "--timeout",
    type=click.IntRange(MIN_OPERATION_TIMEOUT_SECONDS, MAX_OPERATION_TIMEOUT_SECONDS),
    help="Seconds to wait for each Azure operation",
)
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMATS, case_sensitive=False),
    help="Log output format",
)
def run(
    location: str | None,
    access_tier: str | None,
    receivers_file: Path | None,
    timeout: int | None,
    log_format: str | None,
) -> None:
    """Provision the alert chain, trigger it, then delete everything.

    Exits non-zero if any step fails; the resource group is deleted either way.
    """
    overrides = _overrides(
        location=location,
        access_tier=_tier(access_tier),
        receivers_file=receivers_file,
        operation_timeout_seconds=timeout,
        log_format=LogFormat(log_format.lower()) if log_format else None,
    )

    def load() -> Config:
        return _load_config(True, overrides)

    effective_format = log_format.lower() if log_format else log_format_from_env()
    try:
        exit_code = asyncio.run(main(load, log_format=effective_format))
    except KeyboardInterrupt:
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


@cli.command()
@click.option("--location", help="Region for the resource group and storage account")
@click.option(
    "--access-tier",
    type=click.Choice(ACCESS_TIERS, case_sensitive=False),
    help="Storage account access tier",
)
@click.option(
    "--receivers-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with notification receivers",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    show_default=True,
    help="Output format",
)
def plan(
    location: str | None,
    access_tier: str | None,
    receivers_file: Path | None,
    output: str,
) -> None:
    """Print the resource descriptors without contacting Azure.

    Only SUBSCRIPTION_ID is required; ids of resources that do not exist
    yet are shown as the ids Azure will assign.
    """
    overrides = _overrides(
        location=location,
        access_tier=_tier(access_tier),
        receivers_file=receivers_file,
    )
    try:
        config = _load_config(False, overrides)
        channels = resolve_notification_channels(config.receivers_file)
        specs = build_plan(config, channels)
    except (ConfigurationError, ReceiversLoadError, InvalidSpec) as e:
        raise click.ClickException(str(e)) from e

    documents = [spec.model_dump(mode="json", by_alias=True) for spec in specs]
    if output == "json":
        click.echo(json.dumps(documents, indent=2))
    else:
        click.echo(yaml.safe_dump_all(documents, sort_keys=False), nl=False)

    for spec in specs:
        for warning in getattr(spec, "warnings", ()):
            click.secho(f"warning: {spec.name}: {warning}", fg="yellow", err=True)


def _tier(value: str | None) -> StorageAccessTier | None:
    if value is None:
        return None
    return next(t for t in StorageAccessTier if t.value.lower() == value.lower())


if __name__ == "__main__":
    cli()
