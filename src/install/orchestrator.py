"""Install orchestration for one resolved package."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from constants import DependencyBehavior, InstallStatus
from common.errors import PackageInstallError
from common.logging_utils import Timer
from registry import SourceRepository

from .ledger import InstalledPackageCache
from .models import PackageRequest, ResolutionContext, ResolvedVersion
from .package_manager import PackageManager
from .selector import select_sources

logger = logging.getLogger(__name__)


class InstallOrchestrator:
    """Installs resolved versions at most once per identity per run."""

    def __init__(
        self,
        package_manager: PackageManager,
        cache: InstalledPackageCache,
        framework: Optional[str] = None,
        install_timeout: Optional[float] = None,
    ):
        """Initialize the orchestrator.

        Args:
            package_manager: Performs the actual fetch and store.
            cache: Ledger shared by every install in this run.
            framework: Target framework recorded with each install.
            install_timeout: Seconds a delegated install may take; None waits indefinitely.
        """
        self._package_manager = package_manager
        self._cache = cache
        self._framework = framework
        self._install_timeout = install_timeout

    @property
    def cache(self) -> InstalledPackageCache:
        return self._cache

    async def install(
        self,
        request: PackageRequest,
        resolved: ResolvedVersion,
        remote_sources: Sequence[SourceRepository],
    ) -> InstallStatus:
        """Install the resolved version of ``request`` unless already present.

        Raises:
            PackageInstallError: If the delegated install failed; the identity stays retryable.
        """
        identity = resolved.identity
        if identity is None:
            return InstallStatus.NOT_FOUND

        logger.debug("Installing package %s", identity)
        if self._cache.verify(identity):
            logger.debug("Package %s was already installed", identity)
            return InstallStatus.ALREADY_INSTALLED

        sources = select_sources(request.explicit_sources, request.exclusive_sources, remote_sources)
        context = ResolutionContext(
            dependency_behavior=DependencyBehavior.LOWEST,
            include_prerelease=request.allow_prerelease,
            include_unlisted=request.allow_unlisted,
        )
        async with self._cache.install_scope(identity, self._framework) as scope:
            if scope.already_installed:
                logger.debug("Package %s was installed concurrently", identity)
                return InstallStatus.ALREADY_INSTALLED
            with Timer() as t:
                try:
                    await asyncio.wait_for(
                        self._package_manager.install_package(identity, context, sources),
                        timeout=self._install_timeout,
                    )
                except PackageInstallError:
                    raise
                except asyncio.TimeoutError as exc:
                    raise PackageInstallError(
                        identity, f"timed out after {self._install_timeout} seconds"
                    ) from exc
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    raise PackageInstallError(identity, str(exc)) from exc
            logger.info("Installed package %s in %d ms", identity, t.duration_ms())
        return InstallStatus.INSTALLED
