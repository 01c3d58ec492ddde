"""State of one configuration pass, passed explicitly to every component."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from . import config as config_module
from .settings import BuildSettings, load_settings_file
from .staleness import CacheStore, DependencySpec, find_dependency_spec

CONAN_OUTPUT_DIR = "conan"


@dataclass(frozen=True)
class PassContext:
    source_dir: str
    build_dir: str
    settings: BuildSettings
    spec: DependencySpec
    config: dict = field(default_factory=dict)
    force: bool = False

    @property
    def store(self):
        return CacheStore(self.build_dir)

    @property
    def state_dir(self):
        return self.store.state_dir

    @property
    def output_dir(self):
        """Where Conan writes the generated CMake files."""
        return os.path.join(self.state_dir, CONAN_OUTPUT_DIR)

    @property
    def conan_command(self):
        return config_module.get_conan_command(self.config)


def create_context(source_dir, build_dir, settings_file, extra_settings=None, extra_conf=None, force=False):
    """Assemble the context of a pass from the files CMake hands over.

    Settings given on the command line override those of ``conanbridge.toml``.
    """
    conf = config_module.load_config(source_dir)
    settings_overrides = config_module.get_profile_settings(conf)
    settings_overrides.update(extra_settings or {})
    conf_overrides = config_module.get_profile_conf(conf)
    conf_overrides.update(extra_conf or {})

    settings = load_settings_file(
        settings_file,
        extra_settings=settings_overrides,
        extra_conf=conf_overrides,
        multi_config_build_types=config_module.get_multi_config_build_types(conf),
    )
    return PassContext(
        source_dir=os.path.abspath(source_dir),
        build_dir=os.path.abspath(build_dir),
        settings=settings,
        spec=find_dependency_spec(source_dir),
        config=conf,
        force=force,
    )
