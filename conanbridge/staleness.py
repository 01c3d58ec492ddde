"""Decide whether ``conan install`` has to run for the current configuration pass.

One cache slot exists per CMake build directory, stored in
``<build dir>/conanbridge/state.json`` together with the install results it
was written for.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import time
from dataclasses import dataclass, field

from .cli_logger import logger
from .errors import ConfigurationError

SPEC_FILES = ("conanfile.py", "conanfile.txt")
STATE_DIR = "conanbridge"
STATE_FILE = "state.json"
PASS_FILE = "pass.json"
STATE_VERSION = 1


@dataclass(frozen=True)
class DependencySpec:
    """The project's conanfile, referenced by path and fingerprint only."""

    path: str
    fingerprint: str

    @classmethod
    def from_file(cls, path):
        path = os.path.abspath(path)
        try:
            stat = os.stat(path)
            with open(path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read dependency file {path}: {e}") from e
        digest = hashlib.sha256()
        digest.update(path.encode("utf-8"))
        # a touch without a content change still counts as a modification
        digest.update(str(stat.st_mtime_ns).encode("utf-8"))
        digest.update(content)
        return cls(path=path, fingerprint=digest.hexdigest())

    @property
    def source_dir(self):
        return os.path.dirname(self.path)


def find_dependency_spec(source_dir):
    for name in SPEC_FILES:
        candidate = os.path.join(source_dir, name)
        if os.path.isfile(candidate):
            return DependencySpec.from_file(candidate)
    raise ConfigurationError(
        f"No {' or '.join(SPEC_FILES)} found in {os.path.abspath(source_dir)}"
    )


def settings_fingerprints(settings):
    """One fingerprint per build type of the snapshot."""
    return {build_type: settings.for_build_type(build_type).fingerprint() for build_type in settings.build_types}


@dataclass
class CacheEntry:
    spec_fingerprint: str
    settings_fingerprints: dict
    timestamp: float = field(default_factory=time.time)
    results: dict = field(default_factory=dict)
    install_fingerprints: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "version": STATE_VERSION,
            "spec_fingerprint": self.spec_fingerprint,
            "settings_fingerprints": dict(self.settings_fingerprints),
            "timestamp": self.timestamp,
            "results": dict(self.results),
            "install_fingerprints": dict(self.install_fingerprints),
        }

    @classmethod
    def from_dict(cls, data):
        if data.get("version") != STATE_VERSION:
            raise ValueError(f"unsupported state version {data.get('version')!r}")
        return cls(
            spec_fingerprint=data["spec_fingerprint"],
            settings_fingerprints=dict(data["settings_fingerprints"]),
            timestamp=float(data["timestamp"]),
            results=dict(data.get("results", {})),
            install_fingerprints=dict(data.get("install_fingerprints", {})),
        )


class CacheStore:
    """The cache slot of one build directory."""

    def __init__(self, build_dir):
        self.build_dir = os.path.abspath(build_dir)
        self.state_dir = os.path.join(self.build_dir, STATE_DIR)
        self.state_file = os.path.join(self.state_dir, STATE_FILE)
        self.pass_file = os.path.join(self.state_dir, PASS_FILE)

    def load(self):
        if not os.path.exists(self.state_file):
            return None
        try:
            with open(self.state_file, "r") as f:
                return CacheEntry.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable install state {self.state_file}: {e}")
            return None

    def save(self, entry):
        os.makedirs(self.state_dir, exist_ok=True)
        tmp_file = self.state_file + ".tmp"
        with open(tmp_file, "w") as f:
            json.dump(entry.to_dict(), f, indent=2, sort_keys=True)
        os.replace(tmp_file, self.state_file)

    def mark_pass(self, installed):
        """Record whether the current configuration pass ran an install."""
        os.makedirs(self.state_dir, exist_ok=True)
        with open(self.pass_file, "w") as f:
            json.dump({"installed": bool(installed), "timestamp": time.time()}, f)

    def last_pass_installed(self):
        try:
            with open(self.pass_file, "r") as f:
                return bool(json.load(f).get("installed"))
        except (OSError, ValueError, AttributeError):
            return False

    def clear(self):
        if os.path.isdir(self.state_dir):
            shutil.rmtree(self.state_dir)
            return True
        return False


def is_stale(spec, settings, store, force=False, install_fingerprints=None):
    """True when an install is required for this build directory.

    ``install_fingerprints`` maps each build type to a fingerprint of what Conan
    would be asked to do (rendered profile and install command). It is compared
    when given.
    """
    if force:
        logger.debug("Reconfigure requested, install state ignored")
        return True
    entry = store.load()
    if entry is None:
        return True
    if entry.spec_fingerprint != spec.fingerprint:
        logger.debug(f"{spec.path} changed since the last install")
        return True
    current = settings_fingerprints(settings)
    if entry.settings_fingerprints != current:
        logger.debug("Build settings changed since the last install")
        return True
    if install_fingerprints is not None and entry.install_fingerprints != install_fingerprints:
        logger.debug("Conan profile or install options changed since the last install")
        return True
    missing = [build_type for build_type in current if build_type not in entry.results]
    if missing:
        logger.debug(f"No stored install result for {', '.join(missing)}")
        return True
    return False
