import click
import copy
import os
import json
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..options import BINARY_DEFAULTS, LIBRARY_DEFAULTS

NOT_FOUND = "Error: No acmake.toml found. Please run 'acmake init' first."


def _load(ctx):
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error(NOT_FOUND)
    return conf


def _lookup(conf, keys):
    value = conf
    for k in keys:
        value = value[k]
    return value


def _save_validated(ctx, conf, message):
    """Validate conf and write it; the file is left untouched when validation fails."""
    config_module.validate_config(conf)
    if config_module.save_config(conf, path=ctx.obj["path"]):
        logger.info(message)


def effective_config(conf):
    """The configuration as a configuration run sees it, defaults filled in."""
    custom, third_party = config_module.get_packages(conf)
    options = conf.get("options", {})
    return {
        "project": config_module.get_project(conf),
        "packages": {
            "custom": custom,
            "third_party": third_party,
            "search_paths": config_module.get_search_paths(conf),
        },
        "options": {
            "library": {k: options.get(k, v) for k, v in LIBRARY_DEFAULTS.items()},
            "binary": {k: options.get(k, v) for k, v in BINARY_DEFAULTS.items()},
        },
        "binaries": config_module.get_targets(conf, "binaries"),
        "tests": config_module.get_targets(conf, "tests"),
    }


@click.group()
@click.pass_context
def config(ctx):
    """View or edit the acmake.toml configuration file."""
    pass


@config.command()
@click.pass_context
def view(ctx):
    """View the contents of the acmake.toml file."""
    if not _load(ctx):
        return
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    try:
        with open(config_file_path, 'r') as f:
            click.echo(f.read())
    except IOError as e:
        logger.error(f"Error reading acmake.toml at {config_file_path}: {e}")
        logger.info("Please check file permissions.")


@config.command()
@click.pass_context
@handle_exceptions
def edit(ctx):
    """Edit the acmake.toml file in your default editor."""
    if not _load(ctx):
        return
    config_file_path = os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)
    try:
        click.edit(filename=config_file_path)
    except click.ClickException as e:
        logger.error(f"Click error editing acmake.toml: {e}")
        logger.info("This might indicate an issue with your editor configuration or environment variables.")
        return
    config_module.validate_config(config_module.load_config(path=ctx.obj["path"]))


@config.command(name="list")
@click.pass_context
@handle_exceptions
def list_config(ctx):
    """Show the project, packages, options and targets with defaults applied."""
    conf = _load(ctx)
    if not conf:
        return
    click.echo(json.dumps(effective_config(conf), indent=4))


@config.command()
@click.argument('key')
@click.pass_context
def get(ctx, key):
    """Get a value from the acmake.toml file; lists print one entry per line."""
    conf = _load(ctx)
    if not conf:
        return
    try:
        value = _lookup(conf, key.split('.'))
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in acmake.toml")
        return
    if config_module.is_list_key(key):
        for item in config_module.as_list(value):
            click.echo(item)
    else:
        click.echo(value)


@config.command(name="set")
@click.argument('key')
@click.argument('value')
@click.pass_context
@handle_exceptions
def set_value(ctx, key, value):
    """Set a value in the acmake.toml file.

    Package lists take ';' or ',' separated names; options take ON or OFF.
    """
    conf = _load(ctx)
    if not conf:
        return
    value = config_module.coerce_value(key, value)
    updated = copy.deepcopy(conf)
    keys = key.split('.')
    d = updated
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    d[keys[-1]] = value
    _save_validated(ctx, updated, f"Set '{key}' to '{value}'")


@config.command()
@click.argument('key')
@click.pass_context
@handle_exceptions
def unset(ctx, key):
    """Remove a key from the acmake.toml file."""
    conf = _load(ctx)
    if not conf:
        return
    keys = key.split('.')
    updated = copy.deepcopy(conf)
    try:
        del _lookup(updated, keys[:-1])[keys[-1]]
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in acmake.toml")
        return
    _save_validated(ctx, updated, f"Unset '{key}'")


@config.command()
@click.argument('key')
@click.argument('names', nargs=-1, required=True)
@click.pass_context
@handle_exceptions
def add(ctx, key, names):
    """Append package names to a list such as packages.third_party."""
    conf = _load(ctx)
    if not conf:
        return
    if not config_module.is_list_key(key):
        logger.error(f"Error: '{key}' is not a package or source list.")
        return
    updated = copy.deepcopy(conf)
    keys = key.split('.')
    d = updated
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    current = config_module.as_list(d.get(keys[-1]))
    d[keys[-1]] = current + [name for name in dict.fromkeys(names) if name not in current]
    _save_validated(ctx, updated, f"{key}: {';'.join(d[keys[-1]])}")


@config.command()
@click.argument('key')
@click.argument('names', nargs=-1, required=True)
@click.pass_context
@handle_exceptions
def remove(ctx, key, names):
    """Drop package names from a list such as packages.custom."""
    conf = _load(ctx)
    if not conf:
        return
    if not config_module.is_list_key(key):
        logger.error(f"Error: '{key}' is not a package or source list.")
        return
    updated = copy.deepcopy(conf)
    keys = key.split('.')
    try:
        table = _lookup(updated, keys[:-1])
        current = config_module.as_list(table[keys[-1]])
    except (KeyError, TypeError):
        logger.error(f"Error: Key '{key}' not found in acmake.toml")
        return
    missing = [name for name in names if name not in current]
    if missing:
        logger.warning(f"Not in {key}: {', '.join(missing)}")
    table[keys[-1]] = [name for name in current if name not in names]
    _save_validated(ctx, updated, f"{key}: {';'.join(table[keys[-1]])}")
