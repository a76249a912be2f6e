"""Action queue commands for Syndicate CLI."""
import json
import click

# Local imports
from .common import echo_normal, echo_quiet, echo_verbose, fail, open_manager
from ..errors import SyndicateError
from ..storage.models import OBJECT_TYPES


@click.group()
def queue_group():
    """Inspect and flush the durable action queues."""
    pass


@queue_group.command('show')
@click.argument('object_type', type=click.Choice(list(OBJECT_TYPES)))
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Node whose queue to show (default: 1)')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_context
def queue_show(ctx, object_type, node_id, json_output):
    """Show queued actions of one object type."""
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        try:
            actions = manager.get_queued_actions(object_type, node_id=node_id)
        except SyndicateError as e:
            fail(str(e))

    if json_output:
        click.echo(json.dumps(actions, indent=2))
        return

    if not actions:
        echo_normal(f"No queued {object_type} actions.", verbosity)
        return
    for object_id, kinds in actions.items():
        echo_quiet(f"{object_id}\t{', '.join(kinds)}", verbosity)
        for kind, args in kinds.items():
            if args:
                echo_verbose(f"  {kind}: {json.dumps(args)}", verbosity)


@queue_group.command('flush')
@click.option('--node', '-n', 'node_id', type=int, default=None, help='Only this node (default: every node)')
@click.option('--type', '-t', 'object_types', type=click.Choice(list(OBJECT_TYPES)), multiple=True,
              help='Only this object type (repeatable)')
@click.pass_context
def queue_flush(ctx, node_id, object_types):
    """Replay queued actions now.

    Examples:
        syndicate queue flush
        syndicate queue flush -n 1 -t document
    """
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        try:
            results = manager.flush_queue(node_id=node_id, object_types=object_types or None)
        except SyndicateError as e:
            fail(str(e))

    total = 0
    for node, counts in results.items():
        for object_type, processed in counts.items():
            total += processed
            if processed:
                echo_verbose(f"Node {node}: {processed} {object_type} object(s)", verbosity)
    echo_normal(click.style(f"✓ Flushed {total} queued object(s)", fg="green"), verbosity)
