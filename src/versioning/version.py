"""NuGet package versions on top of semantic_version.

NuGet versions allow one to four numeric components; the fourth is kept as a
separate revision since semantic_version only models three. Prerelease
precedence is delegated to semantic_version.
"""
from __future__ import annotations

import functools
import re
from typing import Optional, Tuple

import semantic_version

from common.errors import InvalidVersionError

_VERSION_RE = re.compile(
    r"^(?P<numbers>\d+(?:\.\d+){0,3})"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<metadata>[0-9A-Za-z.-]+))?$"
)


@functools.total_ordering
class NuGetVersion:
    """A parsed package version.

    Equality, ordering and hashing ignore build metadata and compare
    prerelease labels case-insensitively.
    """

    __slots__ = ("_semver", "_revision", "_precedence")

    def __init__(self, semver: semantic_version.Version, revision: int = 0):
        self._semver = semver
        self._revision = revision
        self._precedence = semantic_version.Version(
            major=0,
            minor=0,
            patch=0,
            prerelease=tuple(label.lower() for label in semver.prerelease),
        )

    @classmethod
    def parse(cls, text: str) -> "NuGetVersion":
        """Parse a version string such as ``1.0``, ``1.2.3.4`` or ``2.0.0-beta.1+abc``.

        Raises:
            InvalidVersionError: If ``text`` is not a valid version.
        """
        if not isinstance(text, str):
            raise InvalidVersionError(f"Invalid version: {text!r}")
        match = _VERSION_RE.match(text.strip())
        if not match:
            raise InvalidVersionError(f"Invalid version: {text!r}")

        numbers = [int(part) for part in match.group("numbers").split(".")]
        numbers.extend([0] * (4 - len(numbers)))
        prerelease = match.group("prerelease")
        metadata = match.group("metadata")
        try:
            semver = semantic_version.Version(
                major=numbers[0],
                minor=numbers[1],
                patch=numbers[2],
                prerelease=tuple(prerelease.split(".")) if prerelease else (),
                build=tuple(metadata.split(".")) if metadata else (),
            )
        except ValueError as exc:
            raise InvalidVersionError(f"Invalid version: {text!r} ({exc})") from exc
        return cls(semver, numbers[3])

    @classmethod
    def try_parse(cls, text: Optional[str]) -> Optional["NuGetVersion"]:
        """Parse ``text``, returning None instead of raising."""
        if not text:
            return None
        try:
            return cls.parse(text)
        except InvalidVersionError:
            return None

    @classmethod
    def from_parts(cls, major: int, minor: int = 0, patch: int = 0, revision: int = 0) -> "NuGetVersion":
        """Build a release version from numeric components."""
        return cls(semantic_version.Version(major=major, minor=minor, patch=patch), revision)

    @property
    def major(self) -> int:
        return self._semver.major

    @property
    def minor(self) -> int:
        return self._semver.minor

    @property
    def patch(self) -> int:
        return self._semver.patch

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def release(self) -> Tuple[int, int, int, int]:
        """Numeric components as a 4-tuple."""
        return self._semver.major, self._semver.minor, self._semver.patch, self._revision

    @property
    def prerelease(self) -> str:
        """Prerelease label without the leading dash, or an empty string."""
        return ".".join(self._semver.prerelease)

    @property
    def is_prerelease(self) -> bool:
        return bool(self._semver.prerelease)

    @property
    def metadata(self) -> str:
        return ".".join(self._semver.build)

    @property
    def normalized(self) -> str:
        """Normalized string: three components (four when revision is set), no metadata."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self._revision:
            text += f".{self._revision}"
        if self.is_prerelease:
            text += f"-{self.prerelease}"
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self.release == other.release and self._precedence == other._precedence

    def __lt__(self, other: "NuGetVersion") -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        if self.release != other.release:
            return self.release < other.release
        return self._precedence < other._precedence

    def __hash__(self) -> int:
        return hash((self.release, self._precedence.prerelease))

    def __str__(self) -> str:
        return self.normalized

    def __repr__(self) -> str:
        return f"NuGetVersion('{self.normalized}')"
