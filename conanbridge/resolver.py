"""Answer find_package() requests from the install results of the pass."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field

from .cli_logger import logger
from .discovery import CMakeDiscovery
from .errors import ConfigurationError


class LookupMode(enum.Enum):
    CONFIG = "config"
    MODULE = "module"


class Source(enum.Enum):
    """Where the answer to a request comes from."""

    PACKAGE_MANAGER = "conan"
    BUILTIN = "builtin"
    ABSENT = "absent"


@dataclass(frozen=True)
class ResolutionRequest:
    name: str
    required: bool = False
    components: tuple = ()
    mode: LookupMode = LookupMode.CONFIG


@dataclass(frozen=True)
class ResolutionResponse:
    name: str
    found: bool
    source: Source
    targets: tuple = ()
    components: tuple = ()
    missing_components: tuple = ()
    descriptor: str = ""
    synthesized: bool = False
    version: str = ""
    variables: dict = field(default_factory=dict)
    reason: str = ""


def legacy_variables(name, targets, version="", components=()):
    """Result variables a Find module would have set for ``name``."""
    variables = {
        f"{name}_FOUND": "TRUE",
        f"{name.upper()}_FOUND": "TRUE",
        f"{name}_LIBRARIES": ";".join(targets),
    }
    if version:
        variables[f"{name}_VERSION"] = version
        variables[f"{name}_VERSION_STRING"] = version
    for component in components:
        variables[f"{name}_{component}_FOUND"] = "TRUE"
    return variables


class ResolutionBridge:
    """Resolve requests against the InstallResult of the active build type.

    Packages Conan did not install are left to CMake's own discovery, exactly as
    if the bridge were not there.
    """

    def __init__(self, results, build_type=None, discovery=None):
        self.results = dict(results)
        self.discovery = discovery or CMakeDiscovery()
        self.result = self._select(build_type)

    def _select(self, build_type):
        if not self.results:
            return None
        if build_type is None:
            return next(iter(self.results.values()))
        if build_type not in self.results:
            raise ConfigurationError(
                f"No install result for build type '{build_type}' (have {', '.join(self.results)})"
            )
        return self.results[build_type]

    @property
    def discovery_paths(self):
        return self.result.discovery_paths if self.result else ()

    def resolve(self, request):
        package = self.result.get(request.name) if self.result else None
        if package is None:
            return self._resolve_native(request)

        if not package.available:
            reason = f"Conan has no binary for {package.name}"
            logger.warning(f"{reason}, {request.name} is not available")
            return ResolutionResponse(name=request.name, found=False, source=Source.PACKAGE_MANAGER, reason=reason)

        missing = tuple(c for c in request.components if c not in package.components)
        if missing:
            reason = f"{request.name} does not provide the components: {', '.join(missing)}"
            logger.warning(reason)
            return ResolutionResponse(
                name=request.name,
                found=False,
                source=Source.PACKAGE_MANAGER,
                missing_components=missing,
                reason=reason,
            )

        if request.components:
            targets = tuple(package.components[c] for c in request.components)
        else:
            targets = package.targets

        if request.mode is LookupMode.MODULE:
            descriptor = None
            if package.has_module_output:
                descriptor = self.discovery.find_module(package.file_name, self.discovery_paths, default_paths=False)
            if descriptor is None:
                return self._synthesize_module(request, package, targets)
            variables = {}
        else:
            descriptor = self.discovery.find_config(package.file_name, self.discovery_paths, default_paths=False)
            if descriptor is None:
                reason = f"Conan did not generate a config file for {request.name}"
                logger.warning(reason)
                return ResolutionResponse(name=request.name, found=False, source=Source.PACKAGE_MANAGER, reason=reason)
            variables = {f"{package.file_name}_DIR": os.path.dirname(descriptor)}

        self._declare(targets)
        return ResolutionResponse(
            name=request.name,
            found=True,
            source=Source.PACKAGE_MANAGER,
            targets=targets,
            components=tuple(request.components),
            descriptor=descriptor,
            version=package.version,
            variables=variables,
        )

    def _synthesize_module(self, request, package, targets):
        """Module style request for a package that only has config output."""
        descriptor = self.discovery.find_config(package.file_name, self.discovery_paths, default_paths=False)
        if descriptor is None:
            return ResolutionResponse(name=request.name, found=False, source=Source.PACKAGE_MANAGER,
                                      reason=f"Conan did not generate a config file for {request.name}")
        self._declare(targets)
        return ResolutionResponse(
            name=request.name,
            found=True,
            source=Source.PACKAGE_MANAGER,
            targets=targets,
            components=tuple(request.components),
            descriptor=descriptor,
            synthesized=True,
            version=package.version,
            variables=legacy_variables(request.name, targets, package.version, request.components),
        )

    def _resolve_native(self, request):
        if request.mode is LookupMode.MODULE:
            descriptor = self.discovery.find_module(request.name)
        else:
            descriptor = self.discovery.find_config(request.name)
        if descriptor is None:
            if request.required:
                logger.debug(f"{request.name} is not provided by Conan and was not found by CMake")
            return ResolutionResponse(name=request.name, found=False, source=Source.ABSENT)
        return ResolutionResponse(
            name=request.name,
            found=True,
            source=Source.BUILTIN,
            components=tuple(request.components),
            descriptor=descriptor,
        )

    def _declare(self, targets):
        for target in targets:
            logger.status(f"Target declared '{target}'")
