"""pkm configuration commands."""

import sys

import click

from .. import config as pkm_config
from ..deps.resolver import DependencyBehavior
from ..utils.console import _rich_error, _rich_info, _rich_success

SETTABLE_KEYS = ("packages_path", "framework", "dependency_behavior")


@click.group(name="config", help="⚙️ View and change pkm configuration")
def config():
    """pkm configuration commands."""
    pass


@config.command(name="get", help="Show configuration values")
@click.argument("key", required=False)
def get_value(key):
    settings = pkm_config.get_config()
    if key is None:
        for name in sorted(settings):
            value = settings[name]
            if isinstance(value, list):
                value = ", ".join(value) or "(none)"
            click.echo(f"{name}: {value}")
        return
    if key not in settings:
        _rich_error(f"Unknown configuration key '{key}'")
        sys.exit(1)
    value = settings[key]
    click.echo(", ".join(value) if isinstance(value, list) else value)


@config.command(name="set", help="Set a configuration value")
@click.argument("key", type=click.Choice(SETTABLE_KEYS))
@click.argument("value")
def set_value(key, value):
    if key == "dependency_behavior":
        try:
            value = DependencyBehavior.parse(value).value
        except ValueError as e:
            _rich_error(str(e))
            sys.exit(1)
    pkm_config.update_config({key: value})
    _rich_success(f"Set {key} to '{value}'")


@config.command(name="add-source", help="Add a package source (URL or folder)")
@click.argument("source")
@click.option("--index", type=int, default=None, help="Position in the priority order (0 = first)")
def add_source(source, index):
    sources = pkm_config.add_source(source, index)
    _rich_success(f"Package sources: {', '.join(sources)}")


@config.command(name="remove-source", help="Remove a package source")
@click.argument("source")
def remove_source(source):
    if not pkm_config.remove_source(source):
        _rich_info(f"'{source}' is not a configured package source")
        return
    _rich_success(f"Removed package source '{source}'")
