import click
import json
import toml
from .. import config as config_module
from ..cli_logger import logger

def _load_or_report(ctx):
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(f"Error: No {config_module.CONFIG_FILE} found in {ctx.obj['path']}.")
    return conf

def _parse_value(value):
    """Values are TOML literals when they parse as one (lists, numbers, booleans), strings otherwise."""
    try:
        return toml.loads(f"v = {value}")["v"]
    except (toml.TomlDecodeError, ValueError, IndexError):
        return value

@click.group()
@click.pass_context
def config(ctx):
    """View or edit the conanbridge.toml configuration file."""
    pass

@config.command()
@click.pass_context
def list(ctx):
    """List all configuration keys and values."""
    conf = _load_or_report(ctx)
    if not conf:
        return
    click.echo(json.dumps(conf, indent=4))

@config.command()
@click.argument('key')
@click.pass_context
def get(ctx, key):
    """Get a value from the conanbridge.toml file."""
    conf = _load_or_report(ctx)
    if not conf:
        return

    keys = key.split('.')
    value = conf
    try:
        for k in keys:
            value = value[k]
        click.echo(value)
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in {config_module.CONFIG_FILE}")

@config.command()
@click.argument('key')
@click.argument('value')
@click.pass_context
def set(ctx, key, value):
    """Set a value in the conanbridge.toml file, creating the file if needed."""
    conf = config_module.load_config(path=ctx.obj["path"])

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
def unset(ctx, key):
    """Remove a key from the conanbridge.toml file."""
    conf = _load_or_report(ctx)
    if not conf:
        return

    keys = key.split('.')
    d = conf
    try:
        for k in keys[:-1]:
            d = d[k]
        del d[keys[-1]]
        if config_module.save_config(conf, path=ctx.obj["path"]):
            logger.info(f"Unset '{key}'")
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in {config_module.CONFIG_FILE}")
