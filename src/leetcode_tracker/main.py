"""CLI entrypoint for leetcode-tracker."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from leetcode_tracker import __version__
from leetcode_tracker.controllers import (
    CheckCommand,
    CommandResult,
    ProbeCommand,
    RecoverCommand,
    SettingsGetCommand,
    SettingsSetCommand,
    StatusCommand,
    TrackerCliController,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = TrackerCliController()
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

C = TypeVar("C")
R = TypeVar("R")


@click.group()
@click.version_option(version=__version__, prog_name="leetcode-tracker")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    envvar="LEETCODE_TRACKER_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    help="Diagnostics level written to stderr.",
)
def leetcode_tracker(log_level: str) -> None:
    """Daily LeetCode practice tracker.

    Picks today's problems from the curriculum, emails them and keeps progress consistent
    even when the submissions API is flaky.
    """

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@leetcode_tracker.command("check")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def check(db_path: Path | None) -> None:
    """Run the daily check: refresh solved status, send today's batch, commit progress."""

    _emit_result(_invoke(CONTROLLER.check, CheckCommand(db_path=db_path)), "Daily check failed.")


@leetcode_tracker.command("status")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def status(db_path: Path | None) -> None:
    """Show stored progress, settings and the last checkpoint."""

    _emit_lines(_invoke(CONTROLLER.status, StatusCommand(db_path=db_path)))


@leetcode_tracker.group("settings")
def settings_group() -> None:
    """Read or change user settings."""


@settings_group.command("get")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def settings_get(db_path: Path | None) -> None:
    """Show the daily quota and notification switch."""

    _emit_lines(_invoke(CONTROLLER.settings_get, SettingsGetCommand(db_path=db_path)))


@settings_group.command("set")
@click.argument("daily_quota", type=int, required=False)
@click.option(
    "--notifications/--no-notifications",
    "notifications_enabled",
    default=None,
    help="Enable or disable daily notifications.",
)
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def settings_set(
    daily_quota: int | None,
    notifications_enabled: bool | None,
    db_path: Path | None,
) -> None:
    """Set the daily quota (clamped to 1..10) and/or the notification switch."""

    _emit_lines(
        _invoke(
            CONTROLLER.settings_set,
            SettingsSetCommand(
                db_path=db_path,
                daily_quota=daily_quota,
                notifications_enabled=notifications_enabled,
            ),
        ),
    )


@leetcode_tracker.command("probe")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def probe(db_path: Path | None) -> None:
    """Probe the submissions API and print breaker metrics."""

    _emit_result(_invoke(CONTROLLER.probe, ProbeCommand(db_path=db_path)), "API probe failed.")


@leetcode_tracker.command("recover")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def recover(db_path: Path | None) -> None:
    """Re-apply the last persisted checkpoint to both state documents."""

    _emit_result(_invoke(CONTROLLER.recover, RecoverCommand(db_path=db_path)), "Recovery failed.")


def _invoke(handler: Callable[[C], R], command: C) -> R:
    try:
        return handler(command)
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_result(result: CommandResult, failure_message: str) -> None:
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(failure_message)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    leetcode_tracker()
