"""Data models for package identities."""

import re
from dataclasses import dataclass

from .version import NuGetVersion

# NuGet package id rules: word characters joined by single '.', '-' or '_'
_PACKAGE_ID_RE = re.compile(r"\w+(?:[_.-]\w+)*")
MAX_PACKAGE_ID_LENGTH = 100


def is_valid_package_id(package_id: object) -> bool:
    """Return True if ``package_id`` is a well-formed NuGet package id."""
    return (
        isinstance(package_id, str)
        and len(package_id) <= MAX_PACKAGE_ID_LENGTH
        and _PACKAGE_ID_RE.fullmatch(package_id) is not None
    )


@dataclass(frozen=True)
class PackageIdentity:
    """A package id paired with one concrete version; the unit of installation."""
    package_id: str
    version: NuGetVersion

    def __str__(self) -> str:
        return f"{self.package_id} {self.version.normalized}"
