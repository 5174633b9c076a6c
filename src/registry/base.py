"""Source repository boundary shared by local and remote package sources."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from versioning import NuGetVersion, PackageIdentity, VersionRange


@dataclass(frozen=True)
class PackageSource:
    """Location of a package source: an http(s) feed URL or a local folder path."""
    source: str
    name: Optional[str] = field(default=None, compare=False)

    @property
    def is_http(self) -> bool:
        return self.source.lower().startswith(("http://", "https://"))

    def __str__(self) -> str:
        return self.name or self.source


@dataclass(frozen=True)
class PackageDependency:
    """A dependency declared by a package version."""
    package_id: str
    version_range: Optional[VersionRange] = None  # None means any version


@dataclass(frozen=True)
class PackageDependencyInfo:
    """One version of a package as reported by a source."""
    package_id: str
    version: Optional[NuGetVersion]
    dependencies: Tuple[PackageDependency, ...] = ()
    listed: bool = True

    @property
    def identity(self) -> Optional[PackageIdentity]:
        if self.version is None:
            return None
        return PackageIdentity(self.package_id, self.version)


def filter_dependency_infos(
    infos: Iterable[PackageDependencyInfo],
    include_prerelease: bool,
    include_unlisted: bool,
) -> List[PackageDependencyInfo]:
    """Apply the prerelease/unlisted inclusion filters every source honours."""
    kept = []
    for info in infos:
        if info.version is not None and info.version.is_prerelease and not include_prerelease:
            continue
        if not info.listed and not include_unlisted:
            continue
        kept.append(info)
    return kept


class SourceRepository(ABC):
    """A queryable package source.

    Repositories are stateless, shareable handles. Two repositories of the
    same kind pointing at the same source compare equal, so duplicates can be
    dropped when source lists are merged.
    """

    def __init__(self, source: PackageSource):
        self._source = source

    @property
    def source(self) -> PackageSource:
        return self._source

    @abstractmethod
    async def list_versions(
        self,
        package_id: str,
        framework: Optional[str] = None,
        include_prerelease: bool = False,
        include_unlisted: bool = False,
    ) -> List[PackageDependencyInfo]:
        """Return every known version of ``package_id`` with its dependencies.

        Args:
            package_id: Package identifier.
            framework: Target framework used to pick dependency groups.
            include_prerelease: Whether prerelease versions are returned.
            include_unlisted: Whether unlisted versions are returned.

        Raises:
            SourceQueryError: If the source could not be queried.
        """

    @abstractmethod
    async def download_package(self, identity: PackageIdentity) -> Optional[bytes]:
        """Return the package archive for ``identity``, or None if the source lacks it."""

    async def get_dependency_info(
        self, identity: PackageIdentity, framework: Optional[str] = None
    ) -> Optional[PackageDependencyInfo]:
        """Return the entry for one exact identity, including unlisted and prerelease versions."""
        infos = await self.list_versions(
            identity.package_id, framework, include_prerelease=True, include_unlisted=True
        )
        for info in infos:
            if info.version == identity.version:
                return info
        return None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SourceRepository):
            return NotImplemented
        return type(self) is type(other) and self._source == other._source

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._source))

    def __str__(self) -> str:
        return str(self._source)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._source.source!r})"
