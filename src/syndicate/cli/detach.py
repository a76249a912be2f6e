"""Detach, reattach and source arbitration commands for Syndicate CLI."""
import click

# Local imports
from .common import (
    build_filters, echo_normal, echo_quiet, fail, filter_options, open_manager, print_report,
)
from ..errors import SyndicateError
from ..storage.models import OBJECT_TYPES

OBJECT_TYPE = click.Choice(list(OBJECT_TYPES))


@click.group()
def detach_group():
    """Stop replicas from receiving updates."""
    pass


@detach_group.command('by-query')
@click.argument('object_type', type=OBJECT_TYPE)
@click.option('--node', '-n', 'node_ids', type=int, multiple=True,
              help='Destination node to detach on (repeatable, default: 1)')
@filter_options
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_context
def detach_by_query(ctx, object_type, node_ids, json_output, **filter_values):
    """Detach every synced replica matching the filters.

    Examples:
        syndicate detach by-query document -n 2 --status draft
    """
    verbosity = ctx.obj.get('verbosity', 1)
    filters = build_filters(**filter_values)
    with open_manager(ctx) as manager:
        try:
            report = manager.detach_by_query(object_type, filters, node_ids or None)
        except SyndicateError as e:
            fail(str(e))
    print_report(report, verbosity, json_output)


@detach_group.command('object')
@click.argument('object_type', type=OBJECT_TYPE)
@click.argument('object_id', type=int)
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Destination node (default: 1)')
@click.pass_context
def detach_object(ctx, object_type, object_id, node_id):
    """Detach one replica.

    Examples:
        syndicate detach object document 4 -n 2
    """
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        try:
            detached = manager.detach(object_type, object_id, node_id=node_id)
        except SyndicateError as e:
            fail(str(e))
    if not detached:
        fail(f"{object_type} {object_id} not found")
    echo_normal(click.style(f"✓ Detached {object_type} {object_id}", fg="green"), verbosity)


@click.command('reattach')
@click.argument('object_type', type=OBJECT_TYPE)
@click.argument('object_id', type=int)
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Destination node (default: 1)')
@click.pass_context
def reattach(ctx, object_type, object_id, node_id):
    """Reattach a replica and pull the latest content from its source.

    Examples:
        syndicate reattach document 4 -n 2
    """
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        try:
            result = manager.reattach(object_type, object_id, node_id=node_id)
        except SyndicateError as e:
            fail(str(e))
    if result is None:
        fail(f"{object_type} {object_id} was reattached but could not be synced from its source")
    echo_normal(click.style(f"✓ Reattached {object_type} {object_id}", fg="green"), verbosity)
    echo_quiet(str(result), verbosity)


@click.command('switch-source')
@click.argument('object_type', type=OBJECT_TYPE)
@click.argument('object_id', type=int)
@click.argument('new_source', type=int)
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Destination node (default: 1)')
@click.pass_context
def switch_source(ctx, object_type, object_id, new_source, node_id):
    """Make an alternative source the current source of a replica.

    Examples:
        syndicate switch-source document 4 3 -n 2
    """
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        try:
            switched = manager.switch_source(object_type, object_id, new_source, node_id=node_id)
        except SyndicateError as e:
            fail(str(e))
    if not switched:
        fail(f"Node {new_source} is not an alternative source of {object_type} {object_id}")
    echo_normal(click.style(f"✓ {object_type} {object_id} now syncs from node {new_source}", fg="green"),
                verbosity)
