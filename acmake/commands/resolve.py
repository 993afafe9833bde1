import click
import contextlib
import json
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..resolver import resolver_from_config


@click.command()
@click.argument('names', nargs=-1)
@click.option('--optional', is_flag=True, help='Report missing packages instead of failing.')
@click.option('--search-path', 'search_paths', multiple=True, type=click.Path(),
              help='Extra directory to scan for CMake package configurations.')
@click.option('--json', 'as_json', is_flag=True, help='Print the results as JSON.')
@click.pass_context
@handle_exceptions
def resolve(ctx, names, optional, search_paths, as_json):
    """Locate packages or targets and report how each was found.

    Without NAMES, every package the project configuration mentions is resolved.
    """
    with (logger.redirect_to_stderr() if as_json else contextlib.nullcontext()):
        conf = config_module.load_config(path=ctx.obj["path"])
        if not names:
            custom, third_party = config_module.get_packages(conf)
            names = third_party + custom
        if not names:
            logger.warning("Nothing to resolve. Pass package names or list them in acmake.toml.")
            return
        resolver = resolver_from_config(conf, search_paths)
        results = resolver.resolve_all(names, required=not optional)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=4))
        return
    for result in results:
        if result.found:
            detail = ", ".join(result.targets) or ";".join(result.libraries)
            click.echo(f"{result.name}: {result.status} via {result.strategy}" + (f" ({detail})" if detail else ""))
        else:
            click.echo(f"{result.name}: {result.status}")
