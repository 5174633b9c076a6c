"""Version resolution across a local cache and remote package sources.

Resolution is a two-step pipeline: the local phase answers from the local
cache alone, and only when it yields nothing (or is skipped because the
latest version or an update was requested) does the remote phase fan out to
every effective source at once. A source that fails or times out counts as
having no candidate.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Sequence

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, Timer
from registry import SourceRepository
from versioning import NuGetVersion

from .models import PackageRequest, ResolvedVersion
from .selector import select_sources

logger = logging.getLogger(__name__)


def _max_version(versions: Iterable[Optional[NuGetVersion]]) -> Optional[NuGetVersion]:
    """Maximum of the non-None versions, or None."""
    candidates = [v for v in versions if v is not None]
    return max(candidates) if candidates else None


class VersionResolver:
    """Resolves a package request to the single best matching version."""

    def __init__(
        self,
        framework: Optional[str] = None,
        source_timeout: Optional[float] = Constants.SOURCE_QUERY_TIMEOUT,
    ):
        """Initialize the resolver.

        Args:
            framework: Target framework forwarded to source queries.
            source_timeout: Seconds one source may take to answer; None waits indefinitely.
        """
        self._framework = framework
        self._source_timeout = source_timeout

    async def resolve(
        self,
        request: PackageRequest,
        remote_sources: Sequence[SourceRepository],
        local_source: Optional[SourceRepository] = None,
        update_packages: bool = False,
    ) -> ResolvedVersion:
        """Resolve ``request`` against the local cache and the effective sources.

        Args:
            request: The package request.
            remote_sources: Ambient remote sources, narrowed per request.
            local_source: Local cache consulted first unless latest/update was asked for.
            update_packages: Skip the local phase to pick up newer remote versions.

        Returns:
            ResolvedVersion whose version is None when no source matched.
        """
        logger.debug("Resolving package version for %s", request.describe())
        sources = select_sources(request.explicit_sources, request.exclusive_sources, remote_sources)

        version = None
        if not request.get_latest and not update_packages:
            version = await self.resolve_local(request, local_source)
        if version is not None:
            logger.debug("Package %s is satisfied by local version %s", request.describe(), version)
        else:
            version = await self.resolve_remote(request, sources)
            if version is None:
                logger.info("Package %s was not found on any source repository", request.describe())
            else:
                logger.info("Package %s resolved to version %s", request.describe(), version)
        return ResolvedVersion(request.package_id, version)

    async def resolve_local(
        self, request: PackageRequest, local_source: Optional[SourceRepository]
    ) -> Optional[NuGetVersion]:
        """Local phase: highest matching version in the local cache only."""
        if local_source is None:
            return None
        return await self._latest_matching_version(request, local_source)

    async def resolve_remote(
        self, request: PackageRequest, sources: Sequence[SourceRepository]
    ) -> Optional[NuGetVersion]:
        """Remote phase: query every source concurrently and keep the maximum."""
        if not sources:
            return None
        with Timer() as t:
            matches = await asyncio.gather(
                *(self._latest_matching_version(request, source) for source in sources)
            )
        if is_debug_enabled(logger):
            logger.debug("Remote version query finished", extra=extra_context(
                event="resolve", component="resolver", action="resolve_remote",
                target=request.package_id, count=len(sources), duration_ms=t.duration_ms()
            ))
        return _max_version(matches)

    async def _latest_matching_version(
        self, request: PackageRequest, source: SourceRepository
    ) -> Optional[NuGetVersion]:
        """Highest version from one source satisfying the request, or None on any failure."""
        try:
            infos = await asyncio.wait_for(
                source.list_versions(
                    request.package_id,
                    self._framework,
                    include_prerelease=request.allow_prerelease,
                    include_unlisted=request.allow_unlisted,
                ),
                timeout=self._source_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Could not get latest version for package %s from source %s: timed out after %s seconds",
                request.package_id, source, self._source_timeout,
            )
            return None
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.warning(
                "Could not get latest version for package %s from source %s: %s",
                request.package_id, source, ex,
            )
            return None

        version_range = request.version_range
        return _max_version(
            info.version for info in infos
            if info.version is not None and (version_range is None or version_range.satisfies(info.version))
        )
