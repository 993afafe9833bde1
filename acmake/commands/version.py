import click
import importlib.metadata
from ..cli_logger import logger


@click.command()
def version():
    """Print the version of acmake."""
    try:
        ver = importlib.metadata.version("acmake")
        logger.info(f"acmake version {ver}")
    except importlib.metadata.PackageNotFoundError:
        logger.error("Error: Could not determine the version of acmake. Is it installed correctly?")
