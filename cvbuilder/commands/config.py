import click
import os
import json
from .. import config as config_module
from ..cli_logger import logger
from ..errors import CvBuilderError
from ..options import declare_opencv_options

OPTIONS_TABLE = "options"


def _load(ctx):
    """Return (conf, path) or (None, path) after reporting a missing file."""
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error("Error: No cvbuilder.toml found. Please run 'cvbuilder init' first.")
        return None, config_file_path
    return conf, config_file_path


def _split(key):
    keys = key.split('.')
    if keys[0] == OPTIONS_TABLE and len(keys) > 2:
        raise click.BadParameter(f"Option keys look like '{OPTIONS_TABLE}.<name>', got '{key}'.")
    return keys


def _option_value(name, value):
    """Check a selection against the declared build options."""
    try:
        return declare_opencv_options().option(name).check(value)
    except CvBuilderError as e:
        raise click.BadParameter(e.args[0])


def _lookup(conf, keys):
    value = conf
    for k in keys:
        value = value[k]
    return value


@click.group()
@click.pass_context
def config(ctx):
    """View or edit the cvbuilder.toml configuration file."""
    pass

@config.command()
@click.pass_context
def view(ctx):
    """View the contents of the cvbuilder.toml file."""
    conf, config_file_path = _load(ctx)
    if conf is None:
        return
    with open(config_file_path, 'r') as f:
        click.echo(f.read())

@config.command()
@click.pass_context
def edit(ctx):
    """Edit the cvbuilder.toml file in your default editor."""
    conf, config_file_path = _load(ctx)
    if conf is None:
        return
    click.edit(filename=config_file_path)

@config.command(name="list")
@click.pass_context
def list_config(ctx):
    """List all configuration keys and values."""
    conf, _ = _load(ctx)
    if conf is not None:
        click.echo(json.dumps(conf, indent=4))

@config.command()
@click.argument('key')
@click.pass_context
def get(ctx, key):
    """Get a value from the cvbuilder.toml file.

    For a declared build option that is not set, the option's default is shown.
    """
    conf, _ = _load(ctx)
    if conf is None:
        return
    keys = _split(key)
    try:
        click.echo(_lookup(conf, keys))
    except (KeyError, TypeError):
        if keys[0] != OPTIONS_TABLE or len(keys) != 2:
            logger.error(f"Error: Key '{key}' not found in cvbuilder.toml")
            return
        try:
            option = declare_opencv_options().option(keys[1])
        except CvBuilderError as e:
            raise click.BadParameter(e.args[0])
        click.echo(f"{option.default} (default)")

@config.command(name="set")
@click.argument('key')
@click.argument('value')
@click.pass_context
def set_value(ctx, key, value):
    """Set a value in the cvbuilder.toml file.

    Values under [options] must fit the declared option; booleans are stored
    as true/false.
    """
    conf, _ = _load(ctx)
    if conf is None:
        return
    keys = _split(key)
    if keys[0] == OPTIONS_TABLE:
        if len(keys) != 2:
            raise click.BadParameter(f"Set one option at a time, e.g. '{OPTIONS_TABLE}.tbb'.")
        value = _option_value(keys[1], value)

    table = conf
    for k in keys[:-1]:
        table = table.setdefault(k, {})
    table[keys[-1]] = value

    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Set '{key}' to '{value}'")

@config.command()
@click.argument('key')
@click.pass_context
def unset(ctx, key):
    """Remove a key from the cvbuilder.toml file."""
    conf, _ = _load(ctx)
    if conf is None:
        return
    keys = _split(key)
    try:
        del _lookup(conf, keys[:-1])[keys[-1]]
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in cvbuilder.toml")
        return
    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(f"Unset '{key}'")
