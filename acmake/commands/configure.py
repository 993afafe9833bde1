import click
import contextlib
import json
import os
from .. import config as config_module
from ..cli_logger import logger
from ..coverage import detect_coverage
from ..decorators import handle_exceptions
from ..options import BuildOptions, select_c_standard
from ..packages import build_link_plan
from ..resolver import resolver_from_config


def configure_project(conf, kind, compiler, search_paths=None):
    """Resolve packages and options into one build description."""
    project = config_module.get_project(conf)
    options = BuildOptions.from_config(conf, kind=kind)
    logger.info(f"Configuring {kind} {project['name']} {project['version']}")

    resolver = resolver_from_config(conf, search_paths)
    plan = build_link_plan(conf, resolver, options)
    coverage = detect_coverage(options, compiler=compiler)

    description = {
        "project": project,
        "options": options.to_dict(),
        "c_standard": select_c_standard(compiler),
        "compile_options": options.compile_options() + coverage.compile_flags,
        "link_options": coverage.link_libs,
        "clang_tidy": options.clang_tidy,
        "coverage": coverage.to_dict(),
        "plan": plan,
        "found": sorted(resolver.cache.flags()),
        "targets": {name: resolver.targets.get(name).to_dict() for name in resolver.targets.names()},
    }
    if kind == "library":
        description["variants"] = {style: flags for style, flags in options.library_variants()}
        description["default_variant"] = options.default_variant()
    return description


@click.command()
@click.option('--kind', type=click.Choice(['library', 'binary']), default='library',
              help='Configure a library or the executables and tests of a project.')
@click.option('--compiler', default=lambda: os.environ.get("CC", "cc"), help='C compiler used for flag probes.')
@click.option('--search-path', 'search_paths', multiple=True, type=click.Path(),
              help='Extra directory to scan for CMake package configurations.')
@click.option('--output', '-o', type=click.Path(), default=None, help='Write the description to this file.')
@click.pass_context
@handle_exceptions
def configure(ctx, kind, compiler, search_paths, output):
    """Resolve all packages of the project and describe how to build it."""
    with (logger.redirect_to_stderr() if output is None else contextlib.nullcontext()):
        conf = config_module.load_config(path=ctx.obj["path"])
        if not conf:
            logger.error("Error: No acmake.toml found. Please run 'acmake init' first.")
            return
        description = configure_project(conf, kind, compiler, search_paths)
    text = json.dumps(description, indent=4)
    if output:
        with open(output, "w") as f:
            f.write(text + "\n")
        logger.success(f"Build description written to {output}")
    else:
        click.echo(text)
