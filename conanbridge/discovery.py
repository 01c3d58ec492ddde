"""CMake's own name based lookup, as far as the bridge needs to predict it.

Config files are searched as ``<Name>Config.cmake`` / ``<lower-name>-config.cmake``
in each prefix and its conventional subdirectories; Find modules as
``Find<Name>.cmake`` in the module path and then in CMake's Modules directory.
"""

import os

# Relative locations CMake checks below every prefix
CONFIG_SUBDIRS = (
    "",
    "cmake",
    os.path.join("lib", "cmake", "{name}"),
    os.path.join("lib64", "cmake", "{name}"),
    os.path.join("share", "{name}", "cmake"),
    os.path.join("share", "{name}"),
    os.path.join("{name}", "cmake"),
    "{name}",
)


def config_file_names(name):
    return (f"{name}Config.cmake", f"{name.lower()}-config.cmake")


def module_file_name(name):
    return f"Find{name}.cmake"


class CMakeDiscovery:
    def __init__(self, prefix_paths=(), module_paths=(), cmake_root=""):
        self.prefix_paths = tuple(prefix_paths)
        self.module_paths = tuple(module_paths)
        self.cmake_root = cmake_root

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.prefix_paths, settings.module_paths, settings.cmake_root)

    @property
    def builtin_module_dir(self):
        return os.path.join(self.cmake_root, "Modules") if self.cmake_root else ""

    def find_config(self, name, paths=(), default_paths=True):
        """Path of the config file for ``name``, searching ``paths`` first."""
        search = tuple(paths) + (self.prefix_paths if default_paths else ())
        for prefix in search:
            for subdir in CONFIG_SUBDIRS:
                directory = os.path.join(prefix, subdir.format(name=name))
                for file_name in config_file_names(name):
                    candidate = os.path.join(directory, file_name)
                    if os.path.isfile(candidate):
                        return candidate
        return None

    def find_module(self, name, paths=(), default_paths=True):
        """Path of ``Find<name>.cmake``; built-in modules come last."""
        search = list(paths)
        if default_paths:
            search.extend(self.module_paths)
            if self.builtin_module_dir:
                search.append(self.builtin_module_dir)
        for directory in search:
            candidate = os.path.join(directory, module_file_name(name))
            if os.path.isfile(candidate):
                return candidate
        return None

    def find_builtin_module(self, name):
        if not self.builtin_module_dir:
            return None
        candidate = os.path.join(self.builtin_module_dir, module_file_name(name))
        return candidate if os.path.isfile(candidate) else None
