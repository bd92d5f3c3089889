import click
import os
import json
import toml
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions


def _parse_value(value):
    """Interpret `value` as a TOML literal (true, 8, "x"), falling back to a plain string."""
    try:
        return toml.loads(f"value = {value}")["value"]
    except toml.TomlDecodeError:
        return value


def _load(ctx):
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error("Error: No blasbuilder.toml found. Please run 'blasbuilder init' first.")
    return conf


@click.group()
@click.pass_context
def config(ctx):
    """View or edit the blasbuilder.toml configuration file."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("path", ".")

@config.command()
@click.pass_context
@handle_exceptions
def view(ctx):
    """View the contents of the blasbuilder.toml file."""
    if not _load(ctx):
        return
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    with open(config_file_path, 'r') as f:
        click.echo(f.read())

@config.command(name="list")
@click.pass_context
@handle_exceptions
def list_config(ctx):
    """List all configuration keys and values."""
    conf = _load(ctx)
    if conf:
        click.echo(json.dumps(conf, indent=4))

@config.command()
@click.argument('key')
@click.pass_context
@handle_exceptions
def get(ctx, key):
    """Get a value from the blasbuilder.toml file."""
    conf = _load(ctx)
    if not conf:
        return

    value = conf
    try:
        for k in key.split('.'):
            value = value[k]
        click.echo(value)
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in blasbuilder.toml")

@config.command(name="set")
@click.argument('key')
@click.argument('value')
@click.pass_context
@handle_exceptions
def set_value(ctx, key, value):
    """Set a value in the blasbuilder.toml file (TOML literals such as true or 8 are typed)."""
    conf = _load(ctx)
    if not conf:
        return

    keys = key.split('.')
    d = conf
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    d[keys[-1]] = _parse_value(value)

    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Set '{key}' to '{value}'")

@config.command()
@click.argument('key')
@click.pass_context
@handle_exceptions
def unset(ctx, key):
    """Remove a key from the blasbuilder.toml file."""
    conf = _load(ctx)
    if not conf:
        return

    keys = key.split('.')
    d = conf
    try:
        for k in keys[:-1]:
            d = d[k]
        del d[keys[-1]]
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in blasbuilder.toml")
        return
    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Unset '{key}'")
