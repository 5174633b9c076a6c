"""Data models for package requests, resolution results and install outcomes."""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from constants import DependencyBehavior, InstallStatus
from common.errors import InvalidPackageRequestError, InvalidVersionRangeError
from registry import SourceRepository
from versioning import NuGetVersion, PackageIdentity, VersionRange, is_valid_package_id


@dataclass(frozen=True)
class PackageRequest:
    """A request to resolve and install one package.

    ``version_range`` of None means any version. A range and ``get_latest``
    are mutually exclusive.
    """
    package_id: str
    version_range: Optional[VersionRange] = None
    get_latest: bool = False
    allow_prerelease: bool = False
    allow_unlisted: bool = False
    exclusive_sources: bool = False  # Only explicit_sources may be searched
    explicit_sources: Tuple[SourceRepository, ...] = ()

    def __post_init__(self):
        if not is_valid_package_id(self.package_id):
            raise InvalidPackageRequestError(f"Invalid package id: {self.package_id!r}")
        if self.get_latest and self.version_range is not None:
            raise InvalidPackageRequestError("Can not specify both a version and the latest package")
        object.__setattr__(self, "explicit_sources", tuple(self.explicit_sources or ()))

    @classmethod
    def create(
        cls,
        package_id: str,
        version_range: Optional[str] = None,
        get_latest: bool = False,
        allow_prerelease: bool = False,
        allow_unlisted: bool = False,
        exclusive_sources: bool = False,
        explicit_sources: Optional[Iterable[SourceRepository]] = None,
    ) -> "PackageRequest":
        """Build a request from a version range string.

        Raises:
            InvalidPackageRequestError: On an invalid id, a malformed range, or a
                range combined with ``get_latest``.
        """
        has_range = version_range is not None and bool(version_range.strip())
        if get_latest and has_range:
            raise InvalidPackageRequestError("Can not specify both a version and the latest package")
        parsed = None
        if has_range:
            try:
                parsed = VersionRange.parse(version_range)
            except InvalidVersionRangeError as exc:
                raise InvalidPackageRequestError(str(exc)) from exc
        return cls(
            package_id=package_id,
            version_range=parsed,
            get_latest=get_latest,
            allow_prerelease=allow_prerelease,
            allow_unlisted=allow_unlisted,
            exclusive_sources=exclusive_sources,
            explicit_sources=tuple(explicit_sources or ()),
        )

    def describe(self) -> str:
        """Package id with its range, for log messages."""
        if self.version_range is None:
            return self.package_id
        return f"{self.package_id} {self.version_range}"


@dataclass(frozen=True)
class ResolvedVersion:
    """Result of resolving one request; ``version`` is None when nothing matched."""
    package_id: str
    version: Optional[NuGetVersion] = None

    @property
    def found(self) -> bool:
        return self.version is not None

    @property
    def identity(self) -> Optional[PackageIdentity]:
        if self.version is None:
            return None
        return PackageIdentity(self.package_id, self.version)


@dataclass(frozen=True)
class ResolutionContext:
    """Policy handed to the package manager for a delegated install."""
    dependency_behavior: DependencyBehavior = DependencyBehavior.LOWEST
    include_prerelease: bool = False
    include_unlisted: bool = False


@dataclass
class PackageOutcome:
    """Per-package result of a batch install."""
    package_id: str
    version: Optional[NuGetVersion]
    status: InstallStatus
    error: Optional[str] = None
