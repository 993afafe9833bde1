import click
from .commands import *


@click.group()
@click.option("--path", "-p", default=".", help="Path to the project directory.")
@click.pass_context
def cli(ctx, path):
    """acmake: locate CMake packages and describe how to build against them."""
    ctx.obj = {"path": path}

cli.add_command(init)
cli.add_command(resolve)
cli.add_command(configure)
cli.add_command(export)
cli.add_command(uninstall)
cli.add_command(coverage)
cli.add_command(doctor)
cli.add_command(config)
cli.add_command(log)
cli.add_command(version)

if __name__ == '__main__':
    cli()
