import click
from .. import installer
from ..context import create_context
from ..decorators import handle_exceptions
from ..provider import write_discovery_file
from ..settings import parse_key_values

@click.command()
@click.pass_context
@click.option("--build-dir", "-B", required=True, type=click.Path(file_okay=False), help="CMake build directory.")
@click.option("--settings-file", required=True, type=click.Path(dir_okay=False), help="CMake variables dumped by the provider script.")
@click.option("--force", is_flag=True, help="Install even if nothing changed since the last install.")
@click.option("--setting", "-s", "settings", multiple=True, help="Extra Conan setting (key=value).")
@click.option("--conf", "-c", "confs", multiple=True, help="Extra Conan conf entry (key=value).")
@handle_exceptions
def install(ctx, build_dir, settings_file, force, settings, confs):
    """Install the project's dependencies for a CMake build directory, if needed.

    Does nothing, silently, when neither the conanfile nor the build settings
    changed since the last successful install in BUILD_DIR.
    """
    pass_ctx = create_context(
        ctx.obj["path"],
        build_dir,
        settings_file,
        extra_settings=parse_key_values(settings),
        extra_conf=parse_key_values(confs),
        force=force,
    )
    results = installer.ensure_installed(pass_ctx)
    write_discovery_file(pass_ctx.state_dir, results)
