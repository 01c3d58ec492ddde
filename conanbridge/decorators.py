import functools
import click
import sys
from .cli_logger import logger
from .errors import BridgeError

def handle_exceptions(func):
    """A decorator to report failures of CLI commands and turn them into a non-zero exit.

    CMake runs the commands through execute_process, so the exit status is what
    aborts the configuration pass.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.Abort:
            logger.warning("\nCommand aborted by user.")
            sys.exit(1)
        except BridgeError as e:
            logger.error(f"{type(e).__name__}: {e}")
            logger.exception(*sys.exc_info())
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
