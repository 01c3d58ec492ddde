"""Derive a Conan environment profile from a BuildSettings snapshot.

Platform specific behaviour lives in a registry keyed by ``(os family, variant)``.
New platforms are added with the :func:`platform_rule` decorator; :func:`derive`
never needs to change for that.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
from dataclasses import dataclass, field

from .cli_logger import logger
from .errors import ConfigurationError

# CMake processor / architecture tokens to Conan's arch vocabulary
ARCH_MAP = {
    "aarch64": "armv8",
    "arm64": "armv8",
    "armv8": "armv8",
    "armv8-a": "armv8",
    "arm64_32": "armv8_32",
    "armv7": "armv7",
    "armv7-a": "armv7",
    "armv7l": "armv7",
    "armv7s": "armv7s",
    "armv7k": "armv7k",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "x64": "x86_64",
    "ppc64le": "ppc64le",
    "ppc64": "ppc64",
    "s390x": "s390x",
    "riscv64": "riscv64",
}

DESKTOP_OS_NAMES = {
    "Linux": "Linux",
    "Windows": "Windows",
    "Darwin": "Macos",
    "FreeBSD": "FreeBSD",
}

# ABI -> (arch, lowest API level the NDK supports for it)
ANDROID_ABIS = {
    "arm64-v8a": ("armv8", 21),
    "armeabi-v7a": ("armv7", 19),
    "x86": ("x86", 19),
    "x86_64": ("x86_64", 21),
}

ANDROID_DEFAULT_STL = "c++_static"

# Letter codenames accepted by the NDK toolchain in ANDROID_PLATFORM
ANDROID_PLATFORM_ALIASES = {
    "J": 16,
    "J-MR1": 17,
    "J-MR2": 18,
    "K": 19,
    "L": 21,
    "L-MR1": 22,
    "M": 23,
    "N": 24,
    "N-MR1": 25,
    "O": 26,
    "O-MR1": 27,
    "P": 28,
    "Q": 29,
    "R": 30,
    "S": 31,
    "SV2": 32,
    "T": 33,
    "U": 34,
    "V": 35,
}

# OS family -> (device sdk, simulator sdk)
APPLE_MOBILE_SDKS = {
    "iOS": ("iphoneos", "iphonesimulator"),
    "tvOS": ("appletvos", "appletvsimulator"),
    "watchOS": ("watchos", "watchsimulator"),
    "visionOS": ("xros", "xrsimulator"),
}

COMPILER_IDS = {
    "GNU": "gcc",
    "Clang": "clang",
    "AppleClang": "apple-clang",
    "MSVC": "msvc",
    "IntelLLVM": "intel-cc",
}

MSVC_RUNTIMES = {
    "MultiThreaded": ("static", "Release"),
    "MultiThreadedDLL": ("dynamic", "Release"),
    "MultiThreadedDebug": ("static", "Debug"),
    "MultiThreadedDebugDLL": ("dynamic", "Debug"),
}

_CONFIG_GENEX_RE = re.compile(r"\$<\$<CONFIG:([^>]+)>:([^>]*)>")


@dataclass(frozen=True)
class EnvironmentProfile:
    """Conan facing description of the target platform for one build type."""

    build_type: str
    settings: dict = field(default_factory=dict)
    conf: dict = field(default_factory=dict)
    include: str = "default"
    variant: str = ""
    warnings: tuple = ()

    def get(self, key, default=None):
        return self.settings.get(key, default)

    @property
    def tool_paths(self):
        return {key: value for key, value in self.conf.items() if key.endswith("_path")}

    def render(self):
        """The profile in Conan's INI-like text format."""
        lines = []
        if self.include:
            lines.append(f"include({self.include})")
            lines.append("")
        lines.append("[settings]")
        lines.extend(f"{key}={value}" for key, value in self.settings.items())
        if self.conf:
            lines.append("")
            lines.append("[conf]")
            lines.extend(f"{key}={value}" for key, value in self.conf.items())
        return "\n".join(lines) + "\n"

    def fingerprint(self):
        return hashlib.sha256(self.render().encode("utf-8")).hexdigest()


class _ProfileBuilder:
    def __init__(self):
        self.settings = {}
        self.conf = {}
        self.warnings = []
        self.variant = ""

    def set(self, key, value):
        if value is not None and value != "":
            self.settings[key] = str(value)

    def setdefault(self, key, value):
        if key not in self.settings:
            self.set(key, value)

    def set_conf(self, key, value):
        if value is not None and value != "":
            self.conf[key] = str(value)

    def warn(self, message):
        self.warnings.append(message)


# -------------------- Rule registry --------------------

_PLATFORM_RULES = {}


def platform_rule(family, variant=None):
    """Register the decorated function as the rule for ``(family, variant)``."""
    def decorator(func):
        _PLATFORM_RULES[(family, variant)] = func
        return func
    return decorator


def registered_platforms():
    return sorted(_PLATFORM_RULES, key=lambda key: (key[0], key[1] or ""))


def platform_key(settings):
    family = settings.system_name or settings.host_system_name
    variant = None
    if family in APPLE_MOBILE_SDKS:
        variant = "simulator" if "simulator" in settings.osx_sysroot.lower() else "device"
    return family, variant


# -------------------- Shared detection helpers --------------------

def normalize_arch(token):
    return ARCH_MAP.get(token.strip().lower()) if token else None


def detect_arch(settings, profile):
    """Pick the target architecture token and map it, warning when it is unknown."""
    if settings.osx_architectures:
        if len(settings.osx_architectures) > 1:
            profile.warn(
                f"Multiple architectures {';'.join(settings.osx_architectures)} are not supported, "
                f"using {settings.osx_architectures[0]}"
            )
        token = settings.osx_architectures[0]
    elif settings.cxx_compiler_id == "MSVC" and settings.cxx_compiler_architecture_id:
        token = settings.cxx_compiler_architecture_id
    else:
        token = settings.system_processor

    if not token:
        return None
    arch = normalize_arch(token)
    if arch is None:
        profile.warn(f"Unrecognized architecture '{token}', leaving arch to the base profile")
    return arch


def apple_sdk_name(sysroot):
    """``/path/iPhoneSimulator17.0.sdk`` and ``iphonesimulator`` both give ``iphonesimulator``."""
    if not sysroot:
        return ""
    name = os.path.basename(sysroot.rstrip("/"))
    if name.lower().endswith(".sdk"):
        name = name[:-4]
    return re.sub(r"[\d.]+$", "", name).lower()


def android_api_level(abi, platform, system_version=""):
    """Resolve ANDROID_PLATFORM (``android-28``, ``28``, ``android-N``, ``N``) to an API level.

    The result is never lower than the ABI's floor. Without any declared level the
    floor itself is used.
    """
    floor = ANDROID_ABIS[abi][1] if abi in ANDROID_ABIS else None
    declared = platform or system_version
    if not declared:
        return floor

    token = declared.strip()
    if token.lower().startswith("android-"):
        token = token[len("android-"):]
    if token.isdigit():
        level = int(token)
    elif token.upper() in ANDROID_PLATFORM_ALIASES:
        level = ANDROID_PLATFORM_ALIASES[token.upper()]
    else:
        raise ConfigurationError(f"Unrecognized Android platform '{declared}'")

    if floor is not None and level < floor:
        logger.debug(f"Android API level {level} is below the {abi} minimum, using {floor}")
        return floor
    return level


def _compiler_version(compiler, version):
    parts = version.split(".")
    if not parts[0].isdigit():
        return None
    if compiler == "msvc":
        # 19.38.33130 -> 193
        minor = parts[1] if len(parts) > 1 and parts[1].isdigit() else "0"
        return f"{parts[0]}{minor[0]}"
    return parts[0]


def _msvc_runtime(value, build_type):
    def _evaluate(match):
        configs = [c.strip() for c in match.group(1).split(",")]
        return match.group(2) if build_type in configs else ""
    return MSVC_RUNTIMES.get(_CONFIG_GENEX_RE.sub(_evaluate, value))


def _compiler_settings(settings, profile):
    compiler_id = settings.cxx_compiler_id
    if not compiler_id:
        return
    compiler = COMPILER_IDS.get(compiler_id)
    if compiler is None:
        profile.warn(f"Unrecognized compiler '{compiler_id}', leaving compiler to the base profile")
        return

    profile.setdefault("compiler", compiler)
    if settings.cxx_compiler_version:
        profile.setdefault("compiler.version", _compiler_version(compiler, settings.cxx_compiler_version))

    os_name = profile.settings.get("os", "")
    if compiler == "gcc":
        profile.setdefault("compiler.libcxx", "libstdc++11")
    elif compiler == "apple-clang":
        profile.setdefault("compiler.libcxx", "libc++")
    elif compiler == "clang":
        apple = os_name == "Macos" or os_name in APPLE_MOBILE_SDKS
        profile.setdefault("compiler.libcxx", "libc++" if apple else "libstdc++11")

    if settings.cxx_standard:
        gnu = settings.cxx_extensions and compiler != "msvc"
        profile.setdefault("compiler.cppstd", f"{'gnu' if gnu else ''}{settings.cxx_standard}")

    if compiler == "msvc" and settings.msvc_runtime_library:
        runtime = _msvc_runtime(settings.msvc_runtime_library, settings.build_type)
        if runtime is None:
            profile.warn(f"Unrecognized MSVC runtime '{settings.msvc_runtime_library}'")
        else:
            profile.set("compiler.runtime", runtime[0])
            profile.set("compiler.runtime_type", runtime[1])


def _common_conf(settings, profile):
    executables = {}
    if settings.c_compiler:
        executables["c"] = settings.c_compiler
    if settings.cxx_compiler:
        executables["cpp"] = settings.cxx_compiler
    if executables:
        profile.set_conf("tools.build:compiler_executables", json.dumps(executables, sort_keys=True))
    profile.set_conf("tools.cmake.cmaketoolchain:generator", settings.generator)


# -------------------- Platform rules --------------------

@platform_rule("Linux")
@platform_rule("Windows")
@platform_rule("Darwin")
@platform_rule("FreeBSD")
def _desktop(settings, profile):
    profile.set("arch", detect_arch(settings, profile))
    profile.set("os", DESKTOP_OS_NAMES[settings.system_name or settings.host_system_name])
    # only an explicit deployment target produces os.version
    if settings.osx_deployment_target and profile.settings["os"] == "Macos":
        profile.set("os.version", settings.osx_deployment_target)


@platform_rule("Android")
def _android(settings, profile):
    abi = settings.android_abi
    if not abi:
        raise ConfigurationError("ANDROID_ABI must be set when CMAKE_SYSTEM_NAME is Android")
    if not settings.android_ndk:
        raise ConfigurationError("ANDROID_NDK (or CMAKE_ANDROID_NDK) must be set when CMAKE_SYSTEM_NAME is Android")

    if abi in ANDROID_ABIS:
        profile.set("arch", ANDROID_ABIS[abi][0])
    else:
        profile.warn(f"Unrecognized Android ABI '{abi}', leaving arch to the base profile")
    profile.set("os", "Android")
    profile.set("os.api_level", android_api_level(abi, settings.android_platform, settings.system_version))
    profile.set("compiler", "clang")
    profile.set("compiler.libcxx", settings.android_stl or ANDROID_DEFAULT_STL)
    profile.set_conf("tools.android:ndk_path", settings.android_ndk)


def _apple_mobile(settings, profile):
    arch = detect_arch(settings, profile)
    if arch is None and not (settings.osx_architectures or settings.system_processor):
        raise ConfigurationError(f"CMAKE_OSX_ARCHITECTURES must be set when building for {settings.system_name}")
    family, variant = platform_key(settings)
    device_sdk, simulator_sdk = APPLE_MOBILE_SDKS[family]

    profile.variant = variant
    profile.set("arch", arch)
    profile.set("os", family)
    profile.set("os.sdk", apple_sdk_name(settings.osx_sysroot) or (simulator_sdk if variant == "simulator" else device_sdk))
    if settings.osx_deployment_target:
        profile.set("os.version", settings.osx_deployment_target)


for _family in APPLE_MOBILE_SDKS:
    for _variant in ("device", "simulator"):
        platform_rule(_family, _variant)(_apple_mobile)


# -------------------- Entry points --------------------

def derive(settings, include="default"):
    """Translate one single-configuration BuildSettings into an EnvironmentProfile.

    Raises ConfigurationError when a recognized platform lacks a mandatory setting.
    Unrecognized platforms, architectures or compilers only add warnings.
    """
    profile = _ProfileBuilder()
    family, variant = platform_key(settings)
    rule = _PLATFORM_RULES.get((family, variant))
    if rule is None:
        label = f"{family}/{variant}" if variant else family
        profile.warn(f"Unrecognized platform '{label or 'unknown'}', OS settings are left to the base profile")
        profile.set("arch", detect_arch(settings, profile))
    else:
        rule(settings, profile)

    _compiler_settings(settings, profile)
    profile.set("build_type", settings.build_type)
    for key, value in settings.extra_settings:
        profile.set(key, value)

    _common_conf(settings, profile)
    for key, value in settings.extra_conf:
        profile.set_conf(key, value)

    return EnvironmentProfile(
        build_type=settings.build_type,
        settings=dict(profile.settings),
        conf=dict(profile.conf),
        include=include,
        variant=profile.variant,
        warnings=tuple(profile.warnings),
    )


def derive_all(settings, include="default"):
    """One profile per build type, in build type order."""
    return [derive(settings.for_build_type(build_type), include=include) for build_type in settings.build_types]
