"""NuGet V3 feed client: versions, dependency groups and archives over HTTP."""
from __future__ import annotations

import logging
import urllib.parse
from typing import Any, Dict, List, Optional, Union

from constants import Constants
from common.errors import SourceQueryError
from common.http_client import AsyncHttpClient
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from versioning import NuGetVersion, PackageIdentity, is_valid_package_id

from ..base import (
    PackageDependency,
    PackageDependencyInfo,
    PackageSource,
    SourceRepository,
    filter_dependency_infos,
)
from ..nuspec import parse_dependency_range, select_dependency_group

logger = logging.getLogger(__name__)


def _get_resource_url(service_index: Dict[str, Any], resource_type: str, preferred: Optional[str] = None) -> Optional[str]:
    """Find a resource URL in a service index.

    Args:
        service_index: Service index dictionary
        resource_type: Resource @type, matched exactly or as a "<type>/<version>" prefix
        preferred: Exact @type to use when the index advertises it

    Returns:
        Resource URL or None
    """
    resources = [r for r in service_index.get("resources", []) if isinstance(r, dict)]
    if preferred:
        for resource in resources:
            if resource.get("@type") == preferred and resource.get("@id"):
                return resource["@id"]
    for resource in resources:
        rtype = str(resource.get("@type", ""))
        if (rtype == resource_type or rtype.startswith(resource_type + "/")) and resource.get("@id"):
            return resource["@id"]
    return None


def _parse_catalog_entry(
    package_id: str, catalog_entry: Dict[str, Any], framework: Optional[str]
) -> Optional[PackageDependencyInfo]:
    """Turn a registration leaf's catalogEntry into a dependency info record."""
    version = NuGetVersion.try_parse(catalog_entry.get("version"))
    if version is None:
        return None

    groups = {}
    for group in catalog_entry.get("dependencyGroups") or []:
        if not isinstance(group, dict):
            continue
        deps = []
        for dep in group.get("dependencies") or []:
            dep_id = dep.get("id") if isinstance(dep, dict) else None
            if dep_id and not is_valid_package_id(dep_id):
                logger.warning("Ignoring dependency with invalid package id %r", dep_id)
                continue
            if dep_id:
                deps.append(PackageDependency(dep_id, parse_dependency_range(dep.get("range"), dep_id)))
        groups[(group.get("targetFramework") or "").lower()] = tuple(deps)

    return PackageDependencyInfo(
        package_id=catalog_entry.get("id") or package_id,
        version=version,
        dependencies=select_dependency_group(groups, framework),
        listed=catalog_entry.get("listed", True) is not False,
    )


class NuGetV3Repository(SourceRepository):
    """Remote package source speaking the NuGet V3 protocol."""

    def __init__(self, source: Union[PackageSource, str], http_client: AsyncHttpClient):
        super().__init__(source if isinstance(source, PackageSource) else PackageSource(source))
        self._http = http_client
        self._service_index: Optional[Dict[str, Any]] = None

    async def _get_service_index(self) -> Dict[str, Any]:
        """Fetch and cache the feed's service index.

        Raises:
            SourceQueryError: If the index is unavailable.
        """
        if self._service_index is None:
            status_code, _, data = await self._http.get_json(self.source.source)
            if status_code != 200 or not isinstance(data, dict):
                raise SourceQueryError(str(self), f"service index unavailable (status {status_code})")
            self._service_index = data
        return self._service_index

    async def _resource(self, resource_type: str, preferred: Optional[str] = None) -> str:
        url = _get_resource_url(await self._get_service_index(), resource_type, preferred)
        if not url:
            raise SourceQueryError(str(self), f"service index has no {resource_type} resource")
        return url.rstrip("/") + "/"

    async def _fetch_json(self, url: str, what: str) -> Dict[str, Any]:
        status_code, _, data = await self._http.get_json(url)
        if status_code != 200 or not isinstance(data, dict):
            raise SourceQueryError(str(self), f"{what} unavailable at {safe_url(url)} (status {status_code})")
        return data

    async def list_versions(
        self,
        package_id: str,
        framework: Optional[str] = None,
        include_prerelease: bool = False,
        include_unlisted: bool = False,
    ) -> List[PackageDependencyInfo]:
        base = await self._resource(Constants.REGISTRATIONS_RESOURCE, Constants.REGISTRATIONS_RESOURCE_PREFERRED)
        encoded_id = urllib.parse.quote(package_id.lower(), safe="")
        registration_url = f"{base}{encoded_id}/index.json"

        status_code, _, reg_data = await self._http.get_json(registration_url)
        if status_code == 404:
            return []
        if status_code != 200 or not isinstance(reg_data, dict):
            raise SourceQueryError(
                str(self), f"registration index unavailable for {package_id} (status {status_code})"
            )

        infos: List[PackageDependencyInfo] = []
        for page in reg_data.get("items", []):
            if not isinstance(page, dict):
                continue
            leaves = page.get("items")
            if leaves is None and page.get("@id"):
                # Large packages keep their pages out of line
                leaves = (await self._fetch_json(page["@id"], "registration page")).get("items", [])
            for leaf in leaves or []:
                catalog_entry = leaf.get("catalogEntry") if isinstance(leaf, dict) else None
                if not isinstance(catalog_entry, dict):
                    continue
                info = _parse_catalog_entry(package_id, catalog_entry, framework)
                if info is not None:
                    infos.append(info)

        if is_debug_enabled(logger):
            logger.debug("NuGet versions fetched", extra=extra_context(
                event="package_found", component="client", action="list_versions",
                outcome="success", target=package_id, count=len(infos), package_manager="nuget"
            ))
        return filter_dependency_infos(infos, include_prerelease, include_unlisted)

    async def download_package(self, identity: PackageIdentity) -> Optional[bytes]:
        base = await self._resource(Constants.PACKAGE_BASE_ADDRESS_RESOURCE)
        lower_id = urllib.parse.quote(identity.package_id.lower(), safe="")
        lower_version = identity.version.normalized.lower()
        url = f"{base}{lower_id}/{lower_version}/{lower_id}.{lower_version}{Constants.PACKAGE_EXTENSION}"

        status_code, _, body = await self._http.get(url)
        if status_code == 404:
            return None
        if status_code != 200:
            raise SourceQueryError(str(self), f"download of {identity} failed (status {status_code})")
        return body
