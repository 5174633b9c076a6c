"""Nuspec reader: package id, version and dependency groups from .nupkg archives."""
from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from common.errors import InvalidVersionRangeError
from constants import Constants
from versioning import NuGetVersion, VersionRange, is_valid_package_id

from .base import PackageDependency

logger = logging.getLogger(__name__)


DependencyGroups = Dict[str, Tuple[PackageDependency, ...]]


def select_dependency_group(groups: DependencyGroups, framework: Optional[str]) -> Tuple[PackageDependency, ...]:
    """Pick the dependency group for ``framework``.

    Exact (case-insensitive) framework match first, then the group with no
    target framework, otherwise no dependencies.
    """
    if framework and framework.lower() in groups:
        return groups[framework.lower()]
    return groups.get("", ())


def parse_dependency_range(raw_range: Optional[str], dep_id: str) -> Optional[VersionRange]:
    """Parse a declared dependency range; blank or invalid ranges mean any version."""
    if not raw_range or not raw_range.strip():
        return None
    try:
        return VersionRange.parse(raw_range)
    except InvalidVersionRangeError:
        logger.warning("Ignoring invalid dependency range %r for %s", raw_range, dep_id)
        return None


@dataclass(frozen=True)
class NuspecMetadata:
    """The subset of nuspec metadata the installer needs."""
    package_id: str
    version: Optional[NuGetVersion]
    # targetFramework (lowercased, "" for framework-less) -> dependencies
    dependency_groups: DependencyGroups

    def dependencies_for(self, framework: Optional[str]) -> Tuple[PackageDependency, ...]:
        return select_dependency_group(self.dependency_groups, framework)


def _parse_dependency(elem: ET.Element) -> Optional[PackageDependency]:
    dep_id = elem.get("id")
    if not dep_id:
        return None
    if not is_valid_package_id(dep_id):
        logger.warning("Ignoring dependency with invalid package id %r", dep_id)
        return None
    return PackageDependency(dep_id, parse_dependency_range(elem.get("version"), dep_id))


def parse_nuspec(content: Union[str, bytes]) -> NuspecMetadata:
    """Parse nuspec XML content.

    Raises:
        ET.ParseError: If the XML is malformed.
        ValueError: If the nuspec has no package id.
    """
    root = ET.fromstring(content)
    # Remove namespace for easier parsing
    for elem in root.iter():
        if "}" in elem.tag:
            elem.tag = elem.tag.split("}")[1]

    metadata = root.find("metadata")
    if metadata is None:
        metadata = root
    package_id = (metadata.findtext("id") or "").strip()
    if not package_id:
        raise ValueError("nuspec has no package id")
    version = NuGetVersion.try_parse((metadata.findtext("version") or "").strip())

    groups: Dict[str, List[PackageDependency]] = {}
    dependencies = metadata.find("dependencies")
    if dependencies is not None:
        for child in dependencies:
            if child.tag == "group":
                framework = (child.get("targetFramework") or "").lower()
                deps = groups.setdefault(framework, [])
                for dep_elem in child.findall("dependency"):
                    dep = _parse_dependency(dep_elem)
                    if dep:
                        deps.append(dep)
            elif child.tag == "dependency":
                dep = _parse_dependency(child)
                if dep:
                    groups.setdefault("", []).append(dep)

    return NuspecMetadata(
        package_id=package_id,
        version=version,
        dependency_groups={key: tuple(value) for key, value in groups.items()},
    )


def read_nuspec_from_archive(archive: Union[str, bytes]) -> NuspecMetadata:
    """Read the root-level .nuspec from a package archive (path or bytes).

    Raises:
        zipfile.BadZipFile: If the archive is not a zip file.
        FileNotFoundError: If the archive holds no nuspec.
    """
    source = io.BytesIO(archive) if isinstance(archive, bytes) else archive
    with zipfile.ZipFile(source) as zf:
        for name in zf.namelist():
            if "/" not in name and name.lower().endswith(Constants.NUSPEC_EXTENSION):
                return parse_nuspec(zf.read(name))
    raise FileNotFoundError("package archive contains no .nuspec")
