"""Error types raised across the resolver and installer."""


class InvalidVersionError(ValueError):
    """A version string could not be parsed."""


class InvalidVersionRangeError(ValueError):
    """A version range string could not be parsed."""


class InvalidPackageRequestError(ValueError):
    """A package request violates its construction rules."""


class ConfigError(ValueError):
    """A configuration file could not be read or has invalid content."""


class SourceQueryError(RuntimeError):
    """A source repository failed to answer a query.

    Args:
        source: Display name of the failing source.
        message: Failure description.
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class PackageInstallError(RuntimeError):
    """The package manager failed to install a package identity."""

    def __init__(self, identity, message: str):
        super().__init__(f"Could not install {identity}: {message}")
        self.identity = identity
