"""Batch installer: resolve and install many package requests in one run."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from constants import InstallStatus
from common.errors import PackageInstallError
from common.http_client import AsyncHttpClient
from registry import LocalFolderRepository, SourceRepository, create_repository

from .config import InstallerConfig, requests_from_config
from .ledger import InstalledPackageCache
from .models import PackageOutcome, PackageRequest
from .orchestrator import InstallOrchestrator
from .package_manager import FolderPackageManager, PackageManager
from .resolver import VersionResolver

logger = logging.getLogger(__name__)


class PackageInstaller:
    """Resolves and installs a set of package requests concurrently.

    One package failing to install is logged and reported; it never stops the
    remaining packages.
    """

    def __init__(
        self,
        config: Optional[InstallerConfig] = None,
        package_manager: Optional[PackageManager] = None,
        http_client: Optional[AsyncHttpClient] = None,
        local_source: Optional[SourceRepository] = None,
        remote_sources: Optional[Iterable[SourceRepository]] = None,
    ):
        """Initialize the installer.

        Args:
            config: Run configuration; defaults apply when omitted.
            package_manager: Package store; a FolderPackageManager on the packages folder by default.
            http_client: Shared HTTP client; created (and closed) by the installer when omitted.
            local_source: Local cache source; the packages folder by default.
            remote_sources: Remote sources; built from the configured sources by default.
        """
        self._config = config or InstallerConfig()
        self._owns_http = http_client is None
        self._http = http_client or AsyncHttpClient(timeout=self._config.request_timeout)
        self._package_manager = package_manager or FolderPackageManager(
            self._config.packages_folder, self._config.framework
        )
        self._local_source = local_source or LocalFolderRepository(self._config.packages_folder, "local")
        if remote_sources is None:
            remote_sources = [create_repository(s, self._http) for s in self._config.effective_sources]
        self._remote_sources: List[SourceRepository] = list(remote_sources)
        self._cache = InstalledPackageCache(self._package_manager)
        self._resolver = VersionResolver(self._config.framework, self._config.source_timeout)
        self._orchestrator = InstallOrchestrator(
            self._package_manager, self._cache, self._config.framework, self._config.install_timeout
        )
        self._requests: List[PackageRequest] = []

    @property
    def cache(self) -> InstalledPackageCache:
        return self._cache

    @property
    def remote_sources(self) -> List[SourceRepository]:
        return list(self._remote_sources)

    @property
    def requests(self) -> List[PackageRequest]:
        return list(self._requests)

    def add_package(self, request: PackageRequest) -> None:
        self._requests.append(request)

    def add_packages_from_config(self) -> None:
        """Queue every package listed in the configuration."""
        for request in requests_from_config(self._config, self._http):
            self.add_package(request)

    async def install_packages(self) -> List[PackageOutcome]:
        """Resolve and install every queued request.

        Returns:
            One outcome per request, in the order the requests were added.
        """
        if not self._requests:
            logger.info("No packages to install")
            return []
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def _bounded(request: PackageRequest) -> PackageOutcome:
            async with semaphore:
                return await self._process(request)

        outcomes = await asyncio.gather(*(_bounded(r) for r in self._requests))
        failed = [o for o in outcomes if o.status is InstallStatus.FAILED]
        if failed:
            logger.warning("%d of %d packages failed to install", len(failed), len(outcomes))
        return list(outcomes)

    async def _process(self, request: PackageRequest) -> PackageOutcome:
        version = None
        try:
            resolved = await self._resolver.resolve(
                request, self._remote_sources, self._local_source, self._config.update_packages
            )
            version = resolved.version
            status = await self._orchestrator.install(request, resolved, self._remote_sources)
        except PackageInstallError as exc:
            logger.error("%s", exc)
            return PackageOutcome(request.package_id, version, InstallStatus.FAILED, str(exc))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error while installing package %s", request.describe())
            return PackageOutcome(request.package_id, version, InstallStatus.FAILED, str(exc))
        return PackageOutcome(request.package_id, version, status)

    async def close(self) -> None:
        """Close the HTTP client if the installer created it."""
        if self._owns_http:
            await self._http.stop()

    async def __aenter__(self) -> "PackageInstaller":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
