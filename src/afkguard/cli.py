# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import asyncio
import sys

import click

from afkguard.errors import ConfigurationError
from afkguard.logging import configure_logging
from afkguard.settings import SIMULATED_SESSION_FACTORY, load_settings


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def cli() -> None:
    """afkguard command line interface."""


@cli.command("run")
@click.option("--host", default=None, help="Game server host (overrides AFKGUARD_HOST).")
@click.option("--port", type=int, default=None, help="Game server port (overrides AFKGUARD_PORT).")
@click.option("--username", default=None, help="Account name (overrides AFKGUARD_USERNAME).")
@click.option("--simulate", is_flag=True, help="Use the in-process simulated session.")
@click.option(
    "--sim-drop-after",
    type=float,
    default=0.0,
    show_default=True,
    help="With --simulate, end each session after this many seconds (0 = never).",
)
@click.option("--status-port", type=int, default=None, help="Serve the status page on this port.")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR).")
def run(
    host: str | None,
    port: int | None,
    username: str | None,
    simulate: bool,
    sim_drop_after: float,
    status_port: int | None,
    log_level: str | None,
) -> None:
    """Connect and keep the session alive until interrupted.

    Examples:
        afkguard run                             # endpoint from AFKGUARD_HOST
        afkguard run --simulate --host sim       # dry run, no network
        afkguard run --status-port 8080          # also serve GET / and /health
    """
    from afkguard.service import KeeperService

    overrides: dict[str, object] = {
        "host": host,
        "port": port,
        "username": username,
        "status_port": status_port,
        "log_level": log_level,
    }
    session_options: dict[str, object] = {}
    if simulate:
        overrides["session_factory"] = SIMULATED_SESSION_FACTORY
        session_options["end_after_s"] = sim_drop_after

    try:
        settings = load_settings(**overrides)
        configure_logging(settings)
        service = KeeperService(settings, session_options=session_options)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    asyncio.run(service.run())


@cli.command("check-config")
def check_config() -> None:
    """Load settings from the environment and print the resolved values."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    click.echo(settings.model_dump_json(indent=2))


def main() -> None:
    cli.main()


if __name__ == "__main__":
    main()
