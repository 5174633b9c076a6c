"""Package versions, version ranges and identities."""

from .models import PackageIdentity, is_valid_package_id
from .ranges import VersionRange
from .version import NuGetVersion

__all__ = [
    "NuGetVersion",
    "PackageIdentity",
    "VersionRange",
    "is_valid_package_id",
]
