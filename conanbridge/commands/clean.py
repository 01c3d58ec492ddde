import click
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..staleness import CacheStore

@click.command()
@click.pass_context
@click.option("--build-dir", "-B", required=True, type=click.Path(file_okay=False), help="CMake build directory.")
@handle_exceptions
def clean(ctx, build_dir):
    """Forget the install state of a build directory; the next configure installs again."""
    store = CacheStore(build_dir)
    logger.info(f"Removing install state in {store.state_dir}...")
    if store.clear():
        logger.success(f"Removed {store.state_dir}")
    else:
        logger.info("Build directory has no install state.")
