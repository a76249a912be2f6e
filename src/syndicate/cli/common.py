"""Shared utilities for Syndicate CLI commands."""
import sys
import json
from pathlib import Path
from typing import Any, Dict, Optional

import click

from ..config import get_base_path as _get_base_path
from ..errors import SyndicateError

# Verbosity levels
VERBOSITY_QUIET = 0
VERBOSITY_NORMAL = 1
VERBOSITY_VERBOSE = 2


def get_base_path(ctx_data_dir: Optional[Path] = None) -> Path:
    """Get the base path for Syndicate data.

    Priority: --data-dir flag > SYNDICATE_BASE_PATH env var > default path.

    Args:
        ctx_data_dir: Value from --data-dir CLI option, if provided.
    """
    return _get_base_path(ctx_data_dir)


def should_print(verbosity: int, message_level: int) -> bool:
    """Determine if a message should be printed based on verbosity settings.

    Args:
        verbosity: Current verbosity level (0=quiet, 1=normal, 2=verbose).
        message_level: Minimum verbosity level required for this message.
    """
    return verbosity >= message_level


def echo_verbose(message: str, verbosity: int) -> None:
    """Print a message only in verbose mode."""
    if should_print(verbosity, VERBOSITY_VERBOSE):
        click.echo(message, err=False)


def echo_normal(message: str, verbosity: int) -> None:
    """Print a message in normal and verbose modes."""
    if should_print(verbosity, VERBOSITY_NORMAL):
        click.echo(message, err=False)


def echo_quiet(message: str, verbosity: int) -> None:
    """Print a message that is shown even in quiet mode."""
    click.echo(message, err=False)


def fail(message: str) -> None:
    """Print an error to stderr and exit with status 1."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def open_manager(ctx):
    """Open a SyncManager on the data directory of the current invocation.

    The directory is created on first use.
    """
    from ..hooks import HookBus
    from ..sync import SyncManager

    base_path = get_base_path(ctx.obj.get('data_dir'))
    base_path.mkdir(parents=True, exist_ok=True)
    try:
        return SyncManager.open(base_path, hooks=HookBus())
    except (SyndicateError, ValueError) as e:
        fail(f"Could not open data directory {base_path}: {e}")


def filter_options(func):
    """Add the object query options shared by the bulk commands."""
    options = [
        click.option('--status', default=None, help='Only objects with this status'),
        click.option('--subtype', default=None, help='Only documents of this doc_type'),
        click.option('--taxonomy', default=None, help='Only terms of this taxonomy'),
        click.option('--name', default=None, help='Only objects with this title or term name'),
        click.option('--parent', type=int, default=None, help='Only children of this id'),
        click.option('--ids', default=None, help='Comma-separated object ids'),
        click.option('--limit', type=int, default=None, help='Maximum number of objects'),
        click.option('--offset', type=int, default=0, help='Objects to skip'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_filters(status=None, subtype=None, taxonomy=None, name=None, parent=None,
                  ids=None, limit=None, offset=0) -> Dict[str, Any]:
    """Turn filter option values into ContentStore.query keyword arguments."""
    filters: Dict[str, Any] = {}
    for key, value in (("status", status), ("subtype", subtype), ("taxonomy", taxonomy),
                       ("name", name), ("parent", parent), ("limit", limit)):
        if value is not None:
            filters[key] = value
    if offset:
        filters["offset"] = offset
    if ids:
        try:
            filters["ids"] = [int(part) for part in ids.split(",") if part.strip()]
        except ValueError:
            raise click.BadParameter(f"Invalid id list: {ids}", param_hint="--ids")
    return filters


def print_report(report, verbosity: int, as_json: bool = False) -> None:
    """Print a SyncReport: one line per outcome, then a summary."""
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    for outcome in report.outcomes:
        if outcome.status.value in ("synced", "detached"):
            echo_normal(click.style(outcome.message, fg="green"), verbosity)
        elif outcome.status.value == "failed":
            echo_quiet(click.style(outcome.message, fg="red"), verbosity)
        else:
            echo_verbose(click.style(outcome.message, fg="yellow"), verbosity)

    summary = report.summary()
    echo_normal(
        f"\n{report.operation}: {summary['objects']} object(s), {summary['synced']} synced, "
        f"{summary['detached']} detached, {summary['skipped']} skipped, {summary['failed']} failed",
        verbosity
    )
