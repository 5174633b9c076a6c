"""Constants used in the project."""

from enum import Enum


class DependencyBehavior(Enum):
    """Strategy the package manager applies to transitive dependencies.

    Args:
        Enum (string): Dependency selection strategy.
    """

    IGNORE = "ignore"
    LOWEST = "lowest"
    HIGHEST = "highest"


class InstallStatus(Enum):
    """Outcome of a single package install request.

    Args:
        Enum (string): Install outcome.
    """

    INSTALLED = "installed"
    ALREADY_INSTALLED = "already_installed"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_NUGET_SOURCE = "https://api.nuget.org/v3/index.json"
    PACKAGES_FOLDER = "packages"
    PACKAGE_EXTENSION = ".nupkg"
    NUSPEC_EXTENSION = ".nuspec"
    CONFIG_FILENAMES = ["depfetch.yml", "depfetch.yaml", "depfetch.json"]
    CONFIG_USER_DIR = "~/.config/depfetch"
    ENV_PREFIX = "DEPFETCH_"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    USER_AGENT = "depfetch/1.0"

    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    SOURCE_QUERY_TIMEOUT = 60  # Upper bound for one source's version query
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300
    MAX_CONCURRENCY = 8

    # NuGet V3 service index resource types
    REGISTRATIONS_RESOURCE = "RegistrationsBaseUrl"
    REGISTRATIONS_RESOURCE_PREFERRED = "RegistrationsBaseUrl/3.6.0"
    PACKAGE_BASE_ADDRESS_RESOURCE = "PackageBaseAddress/3.0.0"
