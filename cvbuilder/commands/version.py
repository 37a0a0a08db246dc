import click
import importlib.metadata
from ..cli_logger import logger

@click.command()
def version():
    """Print the version of the cvbuilder tool."""
    try:
        ver = importlib.metadata.version("cvbuilder")
        logger.info(f"cvbuilder version {ver}")
    except importlib.metadata.PackageNotFoundError:
        logger.error("Error: Could not determine the version of cvbuilder. Is it installed correctly?")
