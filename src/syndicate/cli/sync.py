"""Replication commands for Syndicate CLI."""
import sys
import click

# Local imports
from .common import build_filters, fail, filter_options, open_manager, print_report
from ..errors import SyndicateError
from ..storage.models import OBJECT_TYPES

OBJECT_TYPE = click.Choice(list(OBJECT_TYPES))
METHOD = click.Choice(['sync', 'create'])


@click.group()
def sync_group():
    """Replicate objects to other nodes now, without the queue."""
    pass


@sync_group.command('by-query')
@click.argument('object_type', type=OBJECT_TYPE)
@click.option('--destination', '-d', 'destinations', type=int, multiple=True,
              help='Destination node id (repeatable, default: every other node)')
@click.option('--method', type=METHOD, default='sync', show_default=True,
              help="'sync' keeps replicas updated, 'create' copies once")
@click.option('--force', is_flag=True, help='Sync even where the source recorded a detach')
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Source node (default: 1)')
@filter_options
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_context
def sync_by_query(ctx, object_type, destinations, method, force, node_id, json_output, **filter_values):
    """Sync every object matching the filters.

    Examples:
        syndicate sync by-query document -d 2 -d 3 --status publish
        syndicate sync by-query term --taxonomy category -d 2 --method create
    """
    verbosity = ctx.obj.get('verbosity', 1)
    filters = build_filters(**filter_values)
    with open_manager(ctx) as manager:
        try:
            report = manager.sync_by_query(
                object_type, filters, destinations or None, method=method, force=force, node_id=node_id
            )
        except SyndicateError as e:
            fail(str(e))
    print_report(report, verbosity, json_output)


@sync_group.command('resync')
@click.argument('object_type', type=OBJECT_TYPE)
@click.option('--destination', '-d', 'destinations', type=int, multiple=True,
              help='Destination node id (repeatable, default: every enabled site)')
@click.option('--method', type=METHOD, default='sync', show_default=True)
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Source node (default: 1)')
@filter_options
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_context
def sync_resync(ctx, object_type, destinations, method, node_id, json_output, **filter_values):
    """Re-sync objects already configured as syncable.

    Examples:
        syndicate sync resync document
        syndicate sync resync document -d 3 --ids 10,11
    """
    verbosity = ctx.obj.get('verbosity', 1)
    filters = build_filters(**filter_values)
    with open_manager(ctx) as manager:
        try:
            report = manager.resync_by_query(
                object_type, filters, destinations or None, method=method, node_id=node_id
            )
        except SyndicateError as e:
            fail(str(e))
    print_report(report, verbosity, json_output)


@sync_group.command('object')
@click.argument('object_type', type=OBJECT_TYPE)
@click.argument('object_id', type=int)
@click.option('--destination', '-d', 'destinations', type=int, multiple=True,
              help='Destination node id (repeatable, default: every other node)')
@click.option('--method', type=METHOD, default='sync', show_default=True)
@click.option('--force', is_flag=True, help='Sync even where the source recorded a detach')
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Source node (default: 1)')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_context
def sync_object(ctx, object_type, object_id, destinations, method, force, node_id, json_output):
    """Sync a single object.

    Examples:
        syndicate sync object document 10 -d 2
    """
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        try:
            report = manager.sync_object(
                object_type, object_id, destinations or None, method=method, force=force, node_id=node_id
            )
        except SyndicateError as e:
            fail(str(e))
    print_report(report, verbosity, json_output)
    if report.skipped and report.skipped[0].reason == "not found":
        sys.exit(1)
