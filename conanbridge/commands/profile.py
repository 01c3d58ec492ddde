import click
from .. import config as config_module
from ..decorators import handle_exceptions
from ..cli_logger import logger
from ..profile import derive
from ..settings import load_settings_file, parse_key_values

@click.command()
@click.pass_context
@click.option("--settings-file", required=True, type=click.Path(dir_okay=False), help="CMake variables dumped by the provider script.")
@click.option("--build-type", default=None, help="Only show the profile of this build type.")
@click.option("--setting", "-s", "settings", multiple=True, help="Extra Conan setting (key=value).")
@handle_exceptions
def profile(ctx, settings_file, build_type, settings):
    """Print the Conan profile(s) derived from a settings file."""
    conf = config_module.load_config(ctx.obj["path"])
    extra_settings = config_module.get_profile_settings(conf)
    extra_settings.update(parse_key_values(settings))
    build_settings = load_settings_file(
        settings_file,
        extra_settings=extra_settings,
        extra_conf=config_module.get_profile_conf(conf),
        multi_config_build_types=config_module.get_multi_config_build_types(conf),
    )
    build_types = [build_type] if build_type else list(build_settings.build_types)
    for bt in build_types:
        env_profile = derive(build_settings.for_build_type(bt), include=config_module.get_host_profile(conf))
        for warning in env_profile.warnings:
            logger.warning(warning)
        if len(build_types) > 1:
            click.echo(f"# {bt}")
        click.echo(env_profile.render())
