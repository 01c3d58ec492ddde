"""Run ``conan install`` for the build types of a stale pass and parse what it produced."""

from __future__ import annotations

import hashlib
import json
import os
import re
from dataclasses import dataclass, field

from packaging.version import InvalidVersion, Version

from . import config as config_module
from .cli_logger import logger
from .errors import InstallError
from .profile import derive_all
from .staleness import CacheEntry, is_stale, settings_fingerprints
from .utils import run_command

ANNOUNCEMENT = "first find_package() found. Installing dependencies with Conan"

UNAVAILABLE_BINARIES = ("Missing", "Invalid")
FIND_MODES = ("config", "module", "both", "none")

_VERSION_RE = re.compile(r"(\d+\.\d+(?:\.\d+)?)")


@dataclass(frozen=True)
class PackageInfo:
    """What Conan generated for one package."""

    name: str
    file_name: str
    version: str = ""
    available: bool = True
    direct: bool = True
    find_mode: str = "config"
    target: str = ""
    components: dict = field(default_factory=dict)

    @property
    def targets(self):
        """The package target followed by the component targets."""
        targets = [self.target] if self.target else []
        targets.extend(t for t in self.components.values() if t not in targets)
        return tuple(targets)

    @property
    def has_config_output(self):
        return self.find_mode in ("config", "both")

    @property
    def has_module_output(self):
        return self.find_mode in ("module", "both")

    def to_dict(self):
        return {
            "name": self.name,
            "file_name": self.file_name,
            "version": self.version,
            "available": self.available,
            "direct": self.direct,
            "find_mode": self.find_mode,
            "target": self.target,
            "components": dict(self.components),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data["name"],
            file_name=data["file_name"],
            version=data.get("version", ""),
            available=data.get("available", True),
            direct=data.get("direct", True),
            find_mode=data.get("find_mode", "config"),
            target=data.get("target", ""),
            components=dict(data.get("components", {})),
        )


@dataclass(frozen=True)
class InstallResult:
    """Output of one successful ``conan install`` for one build type."""

    build_type: str
    discovery_paths: tuple = ()
    packages: dict = field(default_factory=dict)

    def get(self, name):
        """Look a package up by the name passed to find_package()."""
        if name in self.packages:
            return self.packages[name]
        lowered = name.lower()
        for file_name, package in self.packages.items():
            if file_name.lower() == lowered:
                return package
        return None

    def to_dict(self):
        return {
            "build_type": self.build_type,
            "discovery_paths": list(self.discovery_paths),
            "packages": {name: package.to_dict() for name, package in self.packages.items()},
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            build_type=data["build_type"],
            discovery_paths=tuple(data.get("discovery_paths", ())),
            packages={name: PackageInfo.from_dict(p) for name, p in data.get("packages", {}).items()},
        )


# -------------------- Conan JSON graph --------------------

def _package_from_node(node, direct):
    name = node.get("name") or node.get("ref", "").split("/")[0]
    if not name:
        raise InstallError(f"Conan graph node without a name: {node.get('ref')!r}")
    cpp_info = node.get("cpp_info") or {}
    root_properties = (cpp_info.get("root") or {}).get("properties") or {}

    file_name = root_properties.get("cmake_file_name") or name
    target = root_properties.get("cmake_target_name") or f"{name}::{name}"
    find_mode = str(root_properties.get("cmake_find_mode") or "config").lower()
    if find_mode not in FIND_MODES:
        logger.warning(f"Unknown cmake_find_mode '{find_mode}' for {name}, assuming config")
        find_mode = "config"

    namespace = target.split("::")[0] if "::" in target else name
    components = {}
    for component, info in cpp_info.items():
        if component == "root" or component.startswith("_"):
            continue
        properties = (info or {}).get("properties") or {}
        components[component] = properties.get("cmake_target_name") or f"{namespace}::{component}"

    return PackageInfo(
        name=name,
        file_name=file_name,
        version=str(node.get("version") or ""),
        available=node.get("binary") not in UNAVAILABLE_BINARIES,
        direct=direct,
        find_mode=find_mode,
        target=target,
        components=components,
    )


def parse_install_output(text, build_type):
    """Build an InstallResult from the ``--format=json`` output of ``conan install``."""
    try:
        data = json.loads(text)
        nodes = data["graph"]["nodes"]
        root = nodes["0"]
    except (ValueError, KeyError, TypeError) as e:
        raise InstallError(f"Could not parse the output of conan install: {e}", output=text) from e

    generators_folder = root.get("generators_folder")
    if not generators_folder:
        raise InstallError("conan install did not report a generators folder", output=text)

    direct_ids = {
        node_id for node_id, edge in (root.get("dependencies") or {}).items()
        if edge.get("direct") and not edge.get("build")
    }

    packages = {}
    for node_id, node in nodes.items():
        if node_id == "0" or node.get("context", "host") != "host" or node.get("binary") == "Skip":
            continue
        package = _package_from_node(node, direct=node_id in direct_ids)
        packages[package.file_name] = package

    return InstallResult(
        build_type=build_type,
        discovery_paths=(os.path.abspath(generators_folder),),
        packages=packages,
    )


# -------------------- Conan invocation --------------------

def get_conan_version(command):
    """Ask ``conan version --format=json`` first and fall back to ``conan --version``."""
    stdout, _, returncode = run_command([command, "version", "--format=json"])
    if returncode == 0:
        try:
            return str(json.loads(stdout)["version"])
        except (ValueError, KeyError, TypeError):
            logger.debug(f"Unexpected output of '{command} version': {stdout.strip()}")

    stdout, stderr, returncode = run_command([command, "--version"])
    if returncode != 0:
        raise InstallError(f"Could not run '{command} --version': {stderr.strip() or stdout.strip()}", returncode=returncode)
    match = _VERSION_RE.search(stdout)
    if not match:
        raise InstallError(f"Could not determine the Conan version from '{stdout.strip()}'", output=stdout)
    return match.group(1)


def check_conan_version(command, minimum):
    current = get_conan_version(command)
    try:
        too_old = Version(current) < Version(minimum)
    except InvalidVersion as e:
        raise InstallError(f"Invalid Conan version: {e}") from e
    if too_old:
        raise InstallError(f"Conan {current} found, version {minimum} or newer is required")
    logger.debug(f"Using Conan {current}")
    return current


def write_profile(ctx, profile):
    os.makedirs(ctx.state_dir, exist_ok=True)
    profile_path = os.path.join(ctx.state_dir, f"profile-{profile.build_type}")
    with open(profile_path, "w") as f:
        f.write(profile.render())
    return profile_path


def build_install_command(ctx, profile_path):
    conf = ctx.config
    command = [
        ctx.conan_command,
        "install",
        ctx.spec.path,
        f"--profile:host={profile_path}",
        f"--profile:build={config_module.get_build_profile(conf)}",
        f"--output-folder={ctx.output_dir}",
        "--format=json",
    ]
    command.extend(f"--build={policy}" for policy in config_module.get_build_policies(conf))
    for generator in config_module.get_generators(conf):
        command.extend(["--generator", generator])
    command.extend(config_module.get_install_args(conf))
    return command


def run_conan_install(ctx, profile):
    """One ``conan install`` for one profile. Any failure is fatal for the pass."""
    profile_path = write_profile(ctx, profile)
    command = build_install_command(ctx, profile_path)
    logger.info(f"Installing dependencies for build type {profile.build_type} with profile:")
    for line in profile.render().splitlines():
        logger.step_info(line, indent=2)

    stdout, stderr, returncode = run_command(command, cwd=ctx.source_dir)
    for line in stderr.splitlines():
        logger.step_info(line, indent=2)
    if returncode != 0:
        raise InstallError(
            f"conan install failed for build type {profile.build_type} (Exit Code: {returncode})",
            returncode=returncode,
            output=stderr,
        )
    return parse_install_output(stdout, profile.build_type)


def install(ctx, profiles):
    """Install every profile in order; the results are kept per build type."""
    check_conan_version(ctx.conan_command, config_module.get_minimum_version(ctx.config))
    results = {}
    for profile in profiles:
        for warning in profile.warnings:
            logger.warning(warning)
        results[profile.build_type] = run_conan_install(ctx, profile)
    return results


def install_fingerprints(ctx, profiles):
    """One fingerprint per build type over the rendered profile and the install command."""
    fingerprints = {}
    for profile in profiles:
        digest = hashlib.sha256(profile.fingerprint().encode("utf-8"))
        # the profile path is fixed per build directory and build type
        digest.update(json.dumps(build_install_command(ctx, "")).encode("utf-8"))
        fingerprints[profile.build_type] = digest.hexdigest()
    return fingerprints


def load_results(store):
    entry = store.load()
    if entry is None:
        return {}
    return {build_type: InstallResult.from_dict(data) for build_type, data in entry.results.items()}


def ensure_installed(ctx):
    """Run a configuration pass: reuse the stored results when fresh, install otherwise.

    A fresh pass produces no output at all.
    """
    store = ctx.store
    profiles = derive_all(ctx.settings, include=config_module.get_host_profile(ctx.config))
    fingerprints = install_fingerprints(ctx, profiles)
    if not is_stale(ctx.spec, ctx.settings, store, force=ctx.force, install_fingerprints=fingerprints):
        store.mark_pass(installed=False)
        results = load_results(store)
        return {build_type: results[build_type] for build_type in ctx.settings.build_types}

    logger.status(ANNOUNCEMENT)
    results = install(ctx, profiles)
    store.save(CacheEntry(
        spec_fingerprint=ctx.spec.fingerprint,
        settings_fingerprints=settings_fingerprints(ctx.settings),
        results={build_type: result.to_dict() for build_type, result in results.items()},
        install_fingerprints=fingerprints,
    ))
    store.mark_pass(installed=True)
    logger.success(f"Dependencies installed for {', '.join(results)}")
    return results
