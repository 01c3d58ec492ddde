"""Exception taxonomy for a configuration pass.

Everything raised from here aborts the pass, except that an unrecognized
platform dimension is reported as a profile warning and never raised.
"""


class BridgeError(Exception):
    """Base class for all conanbridge failures."""


class ConfigurationError(BridgeError):
    """A build setting required by a recognized platform is missing or malformed."""


class InstallError(BridgeError):
    """Conan could not be run, exited non-zero or produced unparsable output."""

    def __init__(self, message, returncode=None, output=""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class ResolutionError(BridgeError):
    """A required dependency request could not be satisfied."""
