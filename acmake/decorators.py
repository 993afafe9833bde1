import functools
import click
import sys # Import sys for sys.exc_info()
from .cli_logger import logger
from .errors import AcmakeError

def handle_exceptions(func):
    """A decorator to handle common exceptions for CLI commands.

    acmake errors are fatal for the configuration run and turn into a
    non-zero exit status; anything else is logged with its traceback.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.Abort:
            logger.warning("\nCommand aborted by user.")
        except AcmakeError as e:
            logger.error(str(e))
            sys.exit(1)
        except FileNotFoundError as e:
            logger.error(f"Error: File not found - {e}")
            logger.exception(*sys.exc_info())
            sys.exit(1)
        except click.ClickException:
            raise
        except Exception as e:
            logger.error(f"\nAn unexpected error occurred: {e}")
            logger.exception(*sys.exc_info())
            sys.exit(1)
    return wrapper
