import click
import os
from .. import installer
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..discovery import CMakeDiscovery
from ..errors import ResolutionError
from ..provider import SETTINGS_FILE, render_fragment, write_file
from ..resolver import LookupMode, ResolutionBridge, ResolutionRequest, Source
from ..settings import load_settings_file
from ..staleness import CacheStore

def _discovery_for(store):
    settings_file = os.path.join(store.state_dir, SETTINGS_FILE)
    if os.path.exists(settings_file):
        return CMakeDiscovery.from_settings(load_settings_file(settings_file))
    return CMakeDiscovery()

@click.command()
@click.pass_context
@click.argument("name")
@click.option("--build-dir", "-B", required=True, type=click.Path(file_okay=False), help="CMake build directory.")
@click.option("--module", "module_mode", is_flag=True, help="find_package() was called in MODULE mode.")
@click.option("--required", is_flag=True, help="find_package() was called with REQUIRED.")
@click.option("--components", default="", help="Comma separated list of requested components.")
@click.option("--build-type", default=None, help="Build type whose install result is used.")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write the CMake fragment to this file.")
@click.option("--strict", is_flag=True, help="Exit with an error when a required package is not found.")
@handle_exceptions
def find(ctx, name, build_dir, module_mode, required, components, build_type, output, strict):
    """Resolve one find_package(NAME) request against the installed dependencies."""
    store = CacheStore(build_dir)
    results = installer.load_results(store)
    if not results:
        logger.debug(f"No install state in {store.build_dir}, leaving {name} to CMake")

    request = ResolutionRequest(
        name=name,
        required=required,
        components=tuple(c.strip() for c in components.split(",") if c.strip()),
        mode=LookupMode.MODULE if module_mode else LookupMode.CONFIG,
    )
    bridge = ResolutionBridge(results, build_type=build_type, discovery=_discovery_for(store))
    response = bridge.resolve(request)

    if response.source is Source.PACKAGE_MANAGER and response.found and store.last_pass_installed():
        logger.status(f"find_package({name}) found, 'conan install' already ran")

    fragment = render_fragment(request, response)
    if output:
        write_file(output, fragment)
    else:
        click.echo(fragment, nl=False)

    if strict and required and not response.found:
        raise ResolutionError(f"Required package {name} was not found")
