"""CLI entry point for cputop."""

import sys
from pathlib import Path

import click
import structlog

from cputop.config import LOG_LEVELS, Config


@click.command()
@click.version_option()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/cputop/config.toml)",
)
@click.option(
    "--history-capacity",
    type=click.IntRange(min=0),
    default=None,
    help="Samples kept for the CPU chart, 0 for unbounded",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log file verbosity",
)
def main(config_path: Path | None, history_capacity: int | None, log_level: str | None) -> None:
    """Watch CPU usage and processes. Keys: s search, j/k move, q quit."""
    from cputop import logging as cputop_logging
    from cputop.app import run_app

    try:
        config = Config.load(config_path)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    if history_capacity is not None:
        config.history.capacity = history_capacity
    if log_level is not None:
        config.logging.level = log_level.upper()

    cputop_logging.configure(config)
    structlog.get_logger(__name__).info(
        "config_loaded",
        path=str(config_path or config.config_path),
        history_capacity=config.history.capacity,
        log_level=config.logging.level,
    )
    sys.exit(run_app(config))
