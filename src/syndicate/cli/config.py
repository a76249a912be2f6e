"""Configuration management commands for Syndicate CLI."""
import sys
import click
import yaml

# Local imports
from .common import get_base_path, echo_quiet, echo_normal
from ..config import SyncConfig, CONFIG_FILENAME


@click.group()
def config_group():
    """Configuration management commands."""
    pass


@config_group.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx, key: str, value: str) -> None:
    """Set a sync setting.

    Args:
        key: Setting name, optionally prefixed with 'sync.'
        value: Value to set

    Examples:
        syndicate config set queue_limit 5000
        syndicate config set sync.flush_interval 60
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    name = key[len("sync."):] if key.startswith("sync.") else key

    config = SyncConfig.load(base_path)
    data = config.to_dict()
    if name not in data:
        echo_quiet(click.style(f"Error: Unknown setting '{key}'", fg="red"), verbosity)
        sys.exit(1)

    data[name] = value
    try:
        config = SyncConfig.from_dict(data)
    except ValueError as e:
        echo_quiet(click.style(f"Error: {e}", fg="red"), verbosity)
        sys.exit(1)

    config.save(base_path)
    echo_normal(click.style(f"✓ Set sync.{name} = {getattr(config, name)}", fg="green"), verbosity)


@config_group.command('get')
@click.argument('key')
@click.pass_context
def config_get(ctx, key: str) -> None:
    """Get a sync setting (defaults included).

    Examples:
        syndicate config get lock_attempts
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    name = key[len("sync."):] if key.startswith("sync.") else key

    data = SyncConfig.load(base_path).to_dict()
    if name not in data:
        echo_quiet(click.style(f"Key '{key}' not found", fg="yellow"), verbosity)
        sys.exit(1)
    echo_quiet(str(data[name]), verbosity)


@config_group.command('show')
@click.pass_context
def config_show(ctx) -> None:
    """Display the effective sync configuration."""
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    config_path = base_path / CONFIG_FILENAME

    source = str(config_path) if config_path.exists() else "defaults"
    echo_normal(click.style(f"Current configuration ({source}):", fg="cyan", bold=True), verbosity)
    echo_quiet(yaml.dump({"sync": SyncConfig.load(base_path).to_dict()}, default_flow_style=False), verbosity)
