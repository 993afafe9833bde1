import click
import os
from .. import config as config_module
from .. import export as export_module
from ..cli_logger import logger
from ..decorators import handle_exceptions


@click.command()
@click.option('--dest', type=click.Path(), default='build', help='Directory to write the package files to.')
@click.option('--compatibility', type=click.Choice(export_module.COMPATIBILITY_POLICIES),
              default='SameMajorVersion', help='Version compatibility policy.')
@click.option('--prefix', default='/usr/local', help='Install prefix the include directory lives under.')
@click.pass_context
@handle_exceptions
def export(ctx, dest, compatibility, prefix):
    """Write <name>Config.cmake, <name>ConfigVersion.cmake and an uninstall script."""
    conf = config_module.load_config(path=ctx.obj["path"])
    if not conf:
        logger.error("Error: No acmake.toml found. Please run 'acmake init' first.")
        return
    project = config_module.get_project(conf)
    custom, third_party = config_module.get_packages(conf)
    name = project["name"]
    include_dir = os.path.join(prefix, "include", project["include_dir_name"])

    logger.info(f"Exporting package files for {name} {project['version']}")
    export_module.write_version_file(name, project["version"], dest, compatibility)
    export_module.write_package_config(name, include_dir, dest, third_party + custom)
    export_module.write_uninstall_script(dest)
    logger.success(f"Package files written to {dest}")
