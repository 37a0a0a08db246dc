import functools
import click
import sys
from .cli_logger import logger
from .builder import report_failure
from .errors import CvBuilderError

# Exit status of a process stopped by SIGINT.
INTERRUPTED_EXIT_CODE = 130

def handle_exceptions(func):
    """A decorator to handle common exceptions for CLI commands.

    Every handled failure is logged and then turned into a non-zero exit.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.Abort:
            logger.warning("\nCommand aborted by user.")
            raise
        except KeyboardInterrupt:
            logger.warning("\nInterrupted, the running build step was stopped.")
            raise click.exceptions.Exit(INTERRUPTED_EXIT_CODE)
        except CvBuilderError as e:
            report_failure(e)
            raise click.ClickException(f"{e.component} failed. Please check the logs for details.")
        except FileNotFoundError as e:
            logger.error(f"Error: File not found - {e}")
            logger.exception(*sys.exc_info())
            raise click.ClickException(str(e))
        except click.ClickException:
            raise
        except Exception as e:
            logger.error(f"\nAn unexpected error occurred: {e}")
            logger.exception(*sys.exc_info())
            raise click.ClickException("Unexpected error. Please check the logs for details.")
    return wrapper
