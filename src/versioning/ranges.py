"""NuGet version range notation.

Supported forms::

    1.0          >= 1.0.0
    [1.0]        == 1.0.0
    (1.0,)       >  1.0.0
    [1.0,2.0)    >= 1.0.0 and < 2.0.0
    (,1.0]       <= 1.0.0
    *            any version
    1.* / 1.2.*  floating, bounded to the next major / minor

Floating ranges deliberately differ from NuGet, which only enforces the
floating minimum: here ``1.*`` never matches 2.x.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from common.errors import InvalidVersionError, InvalidVersionRangeError

from .version import NuGetVersion

_FLOAT_RE = re.compile(r"^(?P<numbers>\d+(?:\.\d+){0,2})\.\*$")


@dataclass(frozen=True)
class VersionRange:
    """A bounded or half-open interval of versions; ``None`` bounds are open."""

    min_version: Optional[NuGetVersion] = None
    max_version: Optional[NuGetVersion] = None
    include_min: bool = True
    include_max: bool = False

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        """Parse NuGet range notation.

        Raises:
            InvalidVersionRangeError: If ``text`` is not a valid range.
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidVersionRangeError(f"Invalid version range: {text!r}")
        s = text.strip()
        try:
            if s == "*":
                return cls.any()
            if s[0] in "[(":
                return cls._parse_interval(s)
            if "*" in s:
                return cls._parse_floating(s)
            return cls(min_version=NuGetVersion.parse(s), include_min=True)
        except InvalidVersionError as exc:
            raise InvalidVersionRangeError(f"Invalid version range: {text!r} ({exc})") from exc

    @classmethod
    def any(cls) -> "VersionRange":
        """Range satisfied by every version."""
        return cls(include_min=False)

    @classmethod
    def exact(cls, version: NuGetVersion) -> "VersionRange":
        return cls(min_version=version, max_version=version, include_min=True, include_max=True)

    @classmethod
    def _parse_interval(cls, s: str) -> "VersionRange":
        if s[-1] not in "])":
            raise InvalidVersionRangeError(f"Unbalanced version range: {s!r}")
        include_min = s[0] == "["
        include_max = s[-1] == "]"
        body = s[1:-1]
        parts = [part.strip() for part in body.split(",")]

        if len(parts) == 1:
            # Only [x] is allowed without a comma
            if not (include_min and include_max) or not parts[0]:
                raise InvalidVersionRangeError(f"Invalid exact version range: {s!r}")
            return cls.exact(NuGetVersion.parse(parts[0]))
        if len(parts) != 2:
            raise InvalidVersionRangeError(f"Too many bounds in version range: {s!r}")

        low = NuGetVersion.parse(parts[0]) if parts[0] else None
        high = NuGetVersion.parse(parts[1]) if parts[1] else None
        if low is None and high is None:
            raise InvalidVersionRangeError(f"Version range has no bounds: {s!r}")
        if low is not None and high is not None:
            if high < low:
                raise InvalidVersionRangeError(f"Version range minimum exceeds maximum: {s!r}")
            if low == high and not (include_min and include_max):
                raise InvalidVersionRangeError(f"Empty version range: {s!r}")
        return cls(
            min_version=low,
            max_version=high,
            include_min=include_min if low is not None else False,
            include_max=include_max if high is not None else False,
        )

    @classmethod
    def _parse_floating(cls, s: str) -> "VersionRange":
        match = _FLOAT_RE.match(s)
        if not match:
            raise InvalidVersionRangeError(f"Unsupported floating version range: {s!r}")
        numbers = [int(part) for part in match.group("numbers").split(".")]
        low = NuGetVersion.from_parts(*numbers)
        bumped = numbers[:-1] + [numbers[-1] + 1]
        high = NuGetVersion.from_parts(*bumped)
        return cls(min_version=low, max_version=high, include_min=True, include_max=False)

    @property
    def is_any(self) -> bool:
        return self.min_version is None and self.max_version is None

    def satisfies(self, version: NuGetVersion) -> bool:
        """Check ``version`` against both bounds. Prerelease versions are not filtered here."""
        if self.min_version is not None:
            if self.include_min:
                if version < self.min_version:
                    return False
            elif version <= self.min_version:
                return False
        if self.max_version is not None:
            if self.include_max:
                if version > self.max_version:
                    return False
            elif version >= self.max_version:
                return False
        return True

    def __str__(self) -> str:
        if self.is_any:
            return "*"
        if self.min_version is not None and self.min_version == self.max_version:
            return f"[{self.min_version}]"
        if self.max_version is None and self.include_min:
            return f"[{self.min_version}, )"
        opener = "[" if self.include_min else "("
        closer = "]" if self.include_max else ")"
        low = str(self.min_version) if self.min_version is not None else ""
        high = str(self.max_version) if self.max_version is not None else ""
        return f"{opener}{low}, {high}{closer}"
