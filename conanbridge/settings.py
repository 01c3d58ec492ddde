"""Snapshot of the host CMake configuration for one configuration pass.

The provider script dumps the relevant CMake variables as ``NAME=VALUE`` lines
into a settings file; :func:`load_settings_file` turns that file into an
immutable :class:`BuildSettings`.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import os
from dataclasses import dataclass

from .cli_logger import logger
from .errors import ConfigurationError

MULTI_CONFIG_GENERATORS = ("Ninja Multi-Config", "Xcode")

# CMake variables read from the settings file, mapped to BuildSettings fields
CMAKE_VARIABLES = {
    "CMAKE_SYSTEM_NAME": "system_name",
    "CMAKE_HOST_SYSTEM_NAME": "host_system_name",
    "CMAKE_SYSTEM_PROCESSOR": "system_processor",
    "CMAKE_SYSTEM_VERSION": "system_version",
    "CMAKE_OSX_SYSROOT": "osx_sysroot",
    "CMAKE_OSX_DEPLOYMENT_TARGET": "osx_deployment_target",
    "CMAKE_CXX_COMPILER_ID": "cxx_compiler_id",
    "CMAKE_CXX_COMPILER_VERSION": "cxx_compiler_version",
    "CMAKE_CXX_COMPILER_ARCHITECTURE_ID": "cxx_compiler_architecture_id",
    "CMAKE_C_COMPILER": "c_compiler",
    "CMAKE_CXX_COMPILER": "cxx_compiler",
    "CMAKE_CXX_STANDARD": "cxx_standard",
    "CMAKE_MSVC_RUNTIME_LIBRARY": "msvc_runtime_library",
    "CMAKE_GENERATOR": "generator",
    "CMAKE_ROOT": "cmake_root",
    "ANDROID_ABI": "android_abi",
    "ANDROID_PLATFORM": "android_platform",
    "ANDROID_STL": "android_stl",
}

_TRUE_VALUES = ("1", "ON", "YES", "TRUE", "Y")
_FALSE_VALUES = ("0", "OFF", "NO", "FALSE", "N", "IGNORE", "NOTFOUND", "")


def _cmake_bool(value):
    if value is None:
        return None
    upper = value.strip().upper()
    if upper in _TRUE_VALUES:
        return True
    if upper in _FALSE_VALUES or upper.endswith("-NOTFOUND"):
        return False
    return None


def _cmake_list(value):
    if not value:
        return ()
    return tuple(item for item in value.split(";") if item)


@dataclass(frozen=True)
class BuildSettings:
    """Immutable view of the CMake state that matters to Conan."""

    system_name: str = ""
    host_system_name: str = ""
    system_processor: str = ""
    system_version: str = ""
    osx_architectures: tuple[str, ...] = ()
    osx_sysroot: str = ""
    osx_deployment_target: str = ""
    android_abi: str = ""
    android_platform: str = ""
    android_stl: str = ""
    android_ndk: str = ""
    cxx_compiler_id: str = ""
    cxx_compiler_version: str = ""
    cxx_compiler_architecture_id: str = ""
    c_compiler: str = ""
    cxx_compiler: str = ""
    cxx_standard: str = ""
    cxx_extensions: bool | None = None
    msvc_runtime_library: str = ""
    generator: str = ""
    multi_config: bool = False
    build_types: tuple[str, ...] = ("Release",)
    cmake_root: str = ""
    prefix_paths: tuple[str, ...] = ()
    module_paths: tuple[str, ...] = ()
    extra_settings: tuple[tuple[str, str], ...] = ()
    extra_conf: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_cmake_variables(cls, variables, extra_settings=None, extra_conf=None, multi_config_build_types=None):
        """Build the snapshot from a mapping of CMake variable name to value."""
        values = {}
        for cmake_name, field_name in CMAKE_VARIABLES.items():
            value = variables.get(cmake_name)
            if value:
                values[field_name] = value.strip()

        values["osx_architectures"] = _cmake_list(variables.get("CMAKE_OSX_ARCHITECTURES"))
        values["android_ndk"] = (variables.get("ANDROID_NDK") or variables.get("CMAKE_ANDROID_NDK") or "").strip()
        values["cxx_extensions"] = _cmake_bool(variables.get("CMAKE_CXX_EXTENSIONS"))
        values["prefix_paths"] = _cmake_list(variables.get("CMAKE_PREFIX_PATH"))
        values["module_paths"] = _cmake_list(variables.get("CMAKE_MODULE_PATH"))

        generator = values.get("generator", "")
        multi_config = _cmake_bool(variables.get("GENERATOR_IS_MULTI_CONFIG"))
        if multi_config is None:
            multi_config = generator in MULTI_CONFIG_GENERATORS or generator.startswith("Visual Studio")
        values["multi_config"] = multi_config

        if multi_config:
            build_types = tuple(multi_config_build_types or ("Release", "Debug"))
            configuration_types = _cmake_list(variables.get("CMAKE_CONFIGURATION_TYPES"))
            if configuration_types:
                # restricted to the configurations CMake declares
                build_types = tuple(bt for bt in build_types if bt in configuration_types) or configuration_types
        else:
            build_type = (variables.get("CMAKE_BUILD_TYPE") or "").strip()
            if not build_type:
                logger.debug("CMAKE_BUILD_TYPE is not set, using Release")
                build_type = "Release"
            build_types = (build_type,)
        values["build_types"] = build_types

        values["extra_settings"] = tuple(sorted((extra_settings or {}).items()))
        values["extra_conf"] = tuple(sorted((extra_conf or {}).items()))
        return cls(**values)

    @property
    def build_type(self):
        """The build type of a single-configuration snapshot."""
        return self.build_types[0]

    @property
    def is_cross_compiling(self):
        return bool(self.host_system_name) and self.system_name != self.host_system_name

    def for_build_type(self, build_type):
        """The single-configuration view of this snapshot for one build type."""
        if build_type not in self.build_types:
            raise ConfigurationError(f"Build type '{build_type}' is not one of {', '.join(self.build_types)}")
        return dataclasses.replace(self, build_types=(build_type,))

    def fingerprint(self):
        payload = json.dumps(dataclasses.asdict(self), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def parse_settings_text(text, source="<settings>"):
    """Parse ``NAME=VALUE`` lines; blank lines and ``#`` comments are ignored."""
    variables = {}
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ConfigurationError(f"{source}:{lineno}: expected NAME=VALUE, got '{raw_line}'")
        variables[name] = value
    return variables


def load_settings_file(path, extra_settings=None, extra_conf=None, multi_config_build_types=None):
    if not os.path.isfile(path):
        raise ConfigurationError(f"Settings file not found: {path}")
    with open(path, "r") as f:
        variables = parse_settings_text(f.read(), source=path)
    return BuildSettings.from_cmake_variables(
        variables,
        extra_settings=extra_settings,
        extra_conf=extra_conf,
        multi_config_build_types=multi_config_build_types,
    )


def parse_key_values(pairs):
    """Turn ``["a=b", ...]`` command line options into a dict."""
    result = {}
    for pair in pairs or ():
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Expected key=value, got '{pair}'")
        result[key.strip()] = value.strip()
    return result
