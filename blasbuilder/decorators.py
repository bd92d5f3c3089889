import functools
import click
import sys
from .cli_logger import logger
from .errors import BuildError

def handle_exceptions(func):
    """A decorator that logs command failures and exits with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.Abort:
            logger.warning("\nCommand aborted by user.")
            raise click.exceptions.Exit(1)
        except BuildError as e:
            logger.error(e.format_message())
            raise click.exceptions.Exit(e.exit_code)
        except click.ClickException:
            raise
        except Exception as e:
            logger.error(f"\nAn unexpected error occurred: {e}")
            logger.exception(*sys.exc_info())
            raise click.exceptions.Exit(1)
    return wrapper
