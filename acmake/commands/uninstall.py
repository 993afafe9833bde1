import click
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..export import uninstall_from_manifest


@click.command()
@click.option('--manifest', type=click.Path(), default='build/install_manifest.txt',
              help='Install manifest listing the installed files.')
@click.option('--destdir', default=None, help='Staging directory prepended to every path (defaults to $DESTDIR).')
@handle_exceptions
def uninstall(manifest, destdir):
    """Remove the files a previous install recorded in its manifest."""
    logger.info(f"Uninstalling files listed in {manifest}")
    removed, missing = uninstall_from_manifest(manifest, destdir)
    if removed:
        logger.success(f"Removed {len(removed)} files.")
    if missing:
        logger.warning(f"{len(missing)} files were already gone.")
    if not removed and not missing:
        logger.info("The install manifest is empty.")
