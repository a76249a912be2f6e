"""Syndicate CLI - cross-node content replication

This module wires the command groups together:
- node.py: node add, list
- sync.py: sync by-query, resync, object
- detach.py: detach by-query, object, reattach, switch-source
- queue.py: queue show, flush
- config.py: config set, get, show
- common.py: shared utilities
"""
from pathlib import Path
import click

# Local imports
from .common import get_base_path
from .node import node_group
from .sync import sync_group
from .detach import detach_group, reattach, switch_source
from .queue import queue_group
from .config import config_group

# CLI version - matches project version
__version__ = "0.1.0"


@click.group()
@click.version_option(version=__version__, prog_name="syndicate")
@click.option('--data-dir', type=click.Path(), default=None, envvar='SYNDICATE_BASE_PATH',
              help='Base directory for Syndicate data (default: ~/.syndicate)')
@click.option('--verbose', '-v', is_flag=True, default=False,
              help='Enable verbose output')
@click.option('--quiet', '-q', is_flag=True, default=False,
              help='Suppress non-essential output')
@click.pass_context
def cli(ctx, data_dir, verbose, quiet):
    """Syndicate - cross-node content replication

    Replicates documents, assets, terms and comments between nodes.

    \b
    Key Commands:
        node add/list       Manage nodes
        sync by-query       Sync matching objects now
        sync resync         Re-sync objects already marked syncable
        detach by-query     Detach matching replicas
        reattach            Reattach a replica and pull from its source
        switch-source       Pick an alternative source for a replica
        queue show/flush    Inspect or replay queued actions
        config              Configuration management

    \b
    Examples:
        syndicate node add main --url https://main.example.com
        syndicate node add news --url https://news.example.com
        syndicate sync by-query document -n 1 -d 2 --status publish
        syndicate queue flush
    """
    from .common import VERBOSITY_QUIET, VERBOSITY_NORMAL, VERBOSITY_VERBOSE

    ctx.ensure_object(dict)

    # Validate mutually exclusive flags
    if verbose and quiet:
        raise click.UsageError("--verbose and --quiet are mutually exclusive")

    # Set verbosity level
    if quiet:
        ctx.obj['verbosity'] = VERBOSITY_QUIET
    elif verbose:
        ctx.obj['verbosity'] = VERBOSITY_VERBOSE
    else:
        ctx.obj['verbosity'] = VERBOSITY_NORMAL

    if data_dir:
        ctx.obj['data_dir'] = Path(data_dir)
    else:
        ctx.obj['data_dir'] = None


# Register node command group (node add, list)
cli.add_command(node_group, name='node')

# Register sync command group (sync by-query, resync, object)
cli.add_command(sync_group, name='sync')

# Register detach command group and single-object transitions
cli.add_command(detach_group, name='detach')
cli.add_command(reattach)
cli.add_command(switch_source)

# Register queue command group (queue show, flush)
cli.add_command(queue_group, name='queue')

# Register config command group (config set, get, show)
cli.add_command(config_group, name='config')


def main():
    """Entry point for the CLI."""
    cli()


__all__ = [
    '__version__',
    'cli',
    'main',
    'get_base_path',
]
