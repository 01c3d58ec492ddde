import click
import os
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..provider import render_provider_script, write_file

DEFAULT_OUTPUT = "conan_provider.cmake"

@click.command()
@click.pass_context
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help=f"Where to write the script (default: {DEFAULT_OUTPUT} in the project).")
@click.option("--command", "command", default="conanbridge", help="How CMake should invoke conanbridge.")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the script instead of writing it.")
@handle_exceptions
def provider(ctx, output, command, to_stdout):
    """Write the CMake dependency provider script.

    Configure a project with -DCMAKE_PROJECT_TOP_LEVEL_INCLUDES=conan_provider.cmake
    to route its find_package() calls through conanbridge.
    """
    script = render_provider_script(command=command)
    if to_stdout:
        click.echo(script, nl=False)
        return
    path = output or os.path.join(ctx.obj["path"], DEFAULT_OUTPUT)
    write_file(path, script)
    logger.success(f"Provider script written to {path}")
    if not os.path.exists(os.path.join(ctx.obj["path"], config_module.CONFIG_FILE)):
        logger.info(f"Optional settings can be placed in {config_module.CONFIG_FILE}.")
