"""Local folder package source.

Packages are stored as archives in a lowercase id/version tree::

    <root>/<id>/<version>/<id>.<version>.nupkg

The same layout is written by ``FolderPackageManager``, so a packages folder
doubles as the local cache source.
"""
from __future__ import annotations

import asyncio
import logging
import os
import xml.etree.ElementTree as ET
import zipfile
from typing import List, Optional

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from versioning import NuGetVersion, PackageIdentity, is_valid_package_id

from .base import PackageDependencyInfo, PackageSource, SourceRepository, filter_dependency_infos
from .nuspec import read_nuspec_from_archive

logger = logging.getLogger(__name__)


def package_directory(root: str, identity: PackageIdentity) -> str:
    """Directory holding one package identity.

    Raises:
        ValueError: If the package id could escape ``root``.
    """
    if not is_valid_package_id(identity.package_id):
        raise ValueError(f"Invalid package id: {identity.package_id!r}")
    return os.path.join(root, identity.package_id.lower(), identity.version.normalized.lower())


def package_archive_path(root: str, identity: PackageIdentity) -> str:
    """Archive path for one package identity."""
    file_name = f"{identity.package_id.lower()}.{identity.version.normalized.lower()}{Constants.PACKAGE_EXTENSION}"
    return os.path.join(package_directory(root, identity), file_name)


class LocalFolderRepository(SourceRepository):
    """Package source backed by a folder on disk."""

    def __init__(self, root: str, name: Optional[str] = None):
        super().__init__(PackageSource(os.path.abspath(os.path.expanduser(root)), name))

    @property
    def root(self) -> str:
        return self.source.source

    async def list_versions(
        self,
        package_id: str,
        framework: Optional[str] = None,
        include_prerelease: bool = False,
        include_unlisted: bool = False,
    ) -> List[PackageDependencyInfo]:
        infos = await asyncio.to_thread(self._scan, package_id, framework)
        return filter_dependency_infos(infos, include_prerelease, include_unlisted)

    def _scan(self, package_id: str, framework: Optional[str]) -> List[PackageDependencyInfo]:
        if not is_valid_package_id(package_id):
            return []
        package_dir = os.path.join(self.root, package_id.lower())
        if not os.path.isdir(package_dir):
            return []

        infos: List[PackageDependencyInfo] = []
        for entry in sorted(os.listdir(package_dir)):
            version = NuGetVersion.try_parse(entry)
            if version is None:
                continue
            archive = package_archive_path(self.root, PackageIdentity(package_id, version))
            if not os.path.isfile(archive):
                continue
            try:
                nuspec = read_nuspec_from_archive(archive)
            except (zipfile.BadZipFile, FileNotFoundError, ET.ParseError, ValueError, OSError) as e:
                logger.warning("Couldn't read package archive %s: %s", archive, e)
                continue
            infos.append(PackageDependencyInfo(
                package_id=nuspec.package_id,
                version=version,
                dependencies=nuspec.dependencies_for(framework),
            ))

        if is_debug_enabled(logger):
            logger.debug("Scanned local packages", extra=extra_context(
                event="scan", component="local_repository", action="list_versions",
                target=package_id, count=len(infos)
            ))
        return infos

    async def download_package(self, identity: PackageIdentity) -> Optional[bytes]:
        return await asyncio.to_thread(self._read_archive, identity)

    def _read_archive(self, identity: PackageIdentity) -> Optional[bytes]:
        archive = package_archive_path(self.root, identity)
        if not os.path.isfile(archive):
            return None
        with open(archive, "rb") as f:
            return f.read()
