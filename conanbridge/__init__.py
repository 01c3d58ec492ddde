"""Bridge between CMake's dependency provider hook and the Conan package manager."""

__version__ = "0.1.0"
