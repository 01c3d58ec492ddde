import click
import sys
import importlib.metadata
from ..cli_logger import logger

@click.command()
def version():
    """Print the version of conanbridge."""
    try:
        ver = importlib.metadata.version("conanbridge")
        click.echo(f"conanbridge version {ver}")
    except importlib.metadata.PackageNotFoundError:
        logger.error("Error: Could not determine the version of conanbridge. Is it installed correctly?")
        sys.exit(1)
