"""Node directory commands for Syndicate CLI."""
import json
import click

# Local imports
from .common import echo_normal, echo_quiet, fail, open_manager
from ..errors import SyndicateError


@click.group()
def node_group():
    """Node (site) management commands."""
    pass


@node_group.command('add')
@click.argument('name')
@click.option('--url', default=None, help='Base URL used for canonical links')
@click.option('--id', 'node_id', type=int, default=None, help='Explicit node id')
@click.pass_context
def node_add(ctx, name: str, url: str, node_id: int) -> None:
    """Register a node.

    Examples:
        syndicate node add main --url https://main.example.com
        syndicate node add news --id 5
    """
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        try:
            node = manager.ctx.nodes.add(name, url=url, node_id=node_id)
        except SyndicateError as e:
            fail(str(e))
        echo_normal(click.style(f"✓ Added node {node.id} ({node.name})", fg="green"), verbosity)


@node_group.command('list')
@click.option('--json', 'json_output', is_flag=True, help='Output as JSON')
@click.pass_context
def node_list(ctx, json_output: bool) -> None:
    """List registered nodes."""
    verbosity = ctx.obj.get('verbosity', 1)
    with open_manager(ctx) as manager:
        nodes = manager.ctx.nodes.list()

    if json_output:
        click.echo(json.dumps([n.to_dict() for n in nodes], indent=2))
        return

    if not nodes:
        echo_normal("No nodes registered.", verbosity)
        return
    for node in nodes:
        echo_quiet(f"{node.id}\t{node.name}\t{node.url or ''}", verbosity)
