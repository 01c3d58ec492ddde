import click
from .cli_logger import logger
from .commands import *


@click.group()
@click.option("--path", "-p", default=".", type=click.Path(file_okay=False), help="Path to the project source directory.")
@click.option("--verbose", "-v", is_flag=True, help="Also print debug messages.")
@click.pass_context
def cli(ctx, path, verbose):
    """conanbridge: satisfy CMake find_package() calls with Conan."""
    ctx.obj = {"path": path}
    logger.verbose = verbose

cli.add_command(install)
cli.add_command(find)
cli.add_command(profile)
cli.add_command(provider)
cli.add_command(clean)
cli.add_command(config)
cli.add_command(log)
cli.add_command(version)


if __name__ == '__main__':
    cli()
