"""Package management boundary: presence checks and delegated installs."""
from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import xml.etree.ElementTree as ET
import zipfile
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Set, Tuple

from constants import DependencyBehavior
from common.errors import PackageInstallError
from common.logging_utils import extra_context, is_debug_enabled
from registry import PackageDependency, SourceRepository
from registry.local import package_archive_path
from registry.nuspec import NuspecMetadata, read_nuspec_from_archive
from versioning import PackageIdentity

from .models import ResolutionContext

logger = logging.getLogger(__name__)


class PackageManager(ABC):
    """Fetches and stores packages on behalf of the installer."""

    @abstractmethod
    def is_installed(self, identity: PackageIdentity) -> bool:
        """Return True if ``identity`` is already present in the package store."""

    @abstractmethod
    async def install_package(
        self,
        identity: PackageIdentity,
        context: ResolutionContext,
        sources: Sequence[SourceRepository],
    ) -> None:
        """Install ``identity`` (and, per ``context``, its dependencies) from ``sources``.

        Raises:
            PackageInstallError: If the package could not be installed.
        """


class FolderPackageManager(PackageManager):
    """Stores package archives in a packages folder.

    Dependencies are walked without backtracking: each one is pinned to the
    lowest (or highest) available version satisfying its declared range.
    """

    def __init__(self, packages_folder: str, framework: Optional[str] = None):
        self._packages_folder = os.path.abspath(os.path.expanduser(packages_folder))
        self._framework = framework

    @property
    def packages_folder(self) -> str:
        return self._packages_folder

    def is_installed(self, identity: PackageIdentity) -> bool:
        return os.path.isfile(package_archive_path(self._packages_folder, identity))

    async def install_package(
        self,
        identity: PackageIdentity,
        context: ResolutionContext,
        sources: Sequence[SourceRepository],
    ) -> None:
        """Install ``identity`` and its dependencies.

        The whole graph is downloaded and validated before anything is
        written, so a failure leaves the packages folder unchanged.
        """
        pending: Dict[PackageIdentity, Tuple[SourceRepository, bytes]] = {}
        await self._collect(identity, context, list(sources), set(), pending)
        await asyncio.to_thread(self._commit, pending)
        for stored, (source, _) in pending.items():
            logger.info("Stored package %s from %s", stored, source)

    async def _collect(
        self,
        identity: PackageIdentity,
        context: ResolutionContext,
        sources: Sequence[SourceRepository],
        visited: Set[PackageIdentity],
        pending: Dict[PackageIdentity, Tuple[SourceRepository, bytes]],
    ) -> None:
        """Download every missing package in the dependency graph of ``identity`` into ``pending``."""
        if identity in visited:
            return
        visited.add(identity)

        if self.is_installed(identity):
            if is_debug_enabled(logger):
                logger.debug("Package already stored", extra=extra_context(
                    event="skip", component="package_manager", action="install", target=str(identity)
                ))
            if context.dependency_behavior is DependencyBehavior.IGNORE:
                return
            dependencies = await asyncio.to_thread(self._read_dependencies, identity)
        else:
            source, archive = await self._download(identity, sources)
            nuspec = self._validate_archive(identity, archive)
            pending[identity] = (source, archive)
            if context.dependency_behavior is DependencyBehavior.IGNORE:
                return
            dependencies = nuspec.dependencies_for(self._framework)

        for dependency in dependencies:
            dep_identity = await self._select_dependency(identity, dependency, context, sources)
            await self._collect(dep_identity, context, sources, visited, pending)

    async def _download(
        self, identity: PackageIdentity, sources: Sequence[SourceRepository]
    ) -> Tuple[SourceRepository, bytes]:
        """Fetch the archive from the first source that has it."""
        last_error: Optional[Exception] = None
        for source in sources:
            try:
                archive = await source.download_package(identity)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Could not download package %s from source %s: %s", identity, source, exc)
                last_error = exc
                continue
            if archive:
                return source, archive
        raise PackageInstallError(identity, "package was not found on any source") from last_error

    @staticmethod
    def _validate_archive(identity: PackageIdentity, archive: bytes) -> NuspecMetadata:
        try:
            nuspec = read_nuspec_from_archive(archive)
        except (zipfile.BadZipFile, FileNotFoundError, ET.ParseError, ValueError) as exc:
            raise PackageInstallError(identity, f"invalid package archive ({exc})") from exc
        if nuspec.package_id.lower() != identity.package_id.lower():
            raise PackageInstallError(identity, f"archive contains package {nuspec.package_id}")
        return nuspec

    def _commit(self, pending: Dict[PackageIdentity, Tuple[SourceRepository, bytes]]) -> None:
        """Write collected archives, dependencies first; on failure remove what this call wrote."""
        written: List[str] = []
        try:
            for identity, (_, archive) in reversed(list(pending.items())):
                written.append(self._write_archive(identity, archive))
        except PackageInstallError:
            for path in written:
                try:
                    os.remove(path)
                except OSError as exc:
                    logger.warning("Could not remove partially installed archive %s: %s", path, exc)
            raise

    def _write_archive(self, identity: PackageIdentity, archive: bytes) -> str:
        """Atomically store one archive and return its path."""
        target = package_archive_path(self._packages_folder, identity)
        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(target), suffix=".tmp")
        except OSError as exc:
            raise PackageInstallError(identity, f"could not write archive ({exc})") from exc
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(archive)
            os.replace(tmp_path, target)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PackageInstallError(identity, f"could not write archive ({exc})") from exc
        return target

    def _read_dependencies(self, identity: PackageIdentity) -> Tuple[PackageDependency, ...]:
        archive = package_archive_path(self._packages_folder, identity)
        try:
            return read_nuspec_from_archive(archive).dependencies_for(self._framework)
        except (zipfile.BadZipFile, FileNotFoundError, ET.ParseError, ValueError, OSError) as exc:
            raise PackageInstallError(identity, f"could not read dependencies ({exc})") from exc

    async def _select_dependency(
        self,
        parent: PackageIdentity,
        dependency: PackageDependency,
        context: ResolutionContext,
        sources: Sequence[SourceRepository],
    ) -> PackageIdentity:
        """Pin a dependency to one version according to the dependency behavior."""
        candidates = []
        for source in sources:
            try:
                infos = await source.list_versions(
                    dependency.package_id,
                    self._framework,
                    include_prerelease=context.include_prerelease,
                    include_unlisted=context.include_unlisted,
                )
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning(
                    "Could not list versions of dependency %s from source %s: %s",
                    dependency.package_id, source, exc,
                )
                continue
            candidates.extend(
                info.version for info in infos
                if info.version is not None
                and (dependency.version_range is None or dependency.version_range.satisfies(info.version))
            )

        if not candidates:
            wanted = f"{dependency.package_id} {dependency.version_range or '*'}"
            raise PackageInstallError(parent, f"dependency {wanted} was not found on any source")
        pick = max if context.dependency_behavior is DependencyBehavior.HIGHEST else min
        return PackageIdentity(dependency.package_id, pick(candidates))
