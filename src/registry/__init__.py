"""Package source repositories.

- base.py: SourceRepository boundary and shared records
- local.py: local folder source (also the packages folder layout)
- nuget/: NuGet V3 HTTP feeds
- nuspec.py: nuspec metadata reader
"""
from typing import Union

from common.http_client import AsyncHttpClient

from .base import (
    PackageDependency,
    PackageDependencyInfo,
    PackageSource,
    SourceRepository,
)
from .local import LocalFolderRepository
from .nuget import NuGetV3Repository


def create_repository(source: Union[PackageSource, str], http_client: AsyncHttpClient) -> SourceRepository:
    """Build the repository matching a source: http(s) feeds use NuGet V3, anything else is a folder."""
    if isinstance(source, str):
        source = PackageSource(source.strip())
    if source.is_http:
        return NuGetV3Repository(source, http_client)
    return LocalFolderRepository(source.source, source.name)


__all__ = [
    "LocalFolderRepository",
    "NuGetV3Repository",
    "PackageDependency",
    "PackageDependencyInfo",
    "PackageSource",
    "SourceRepository",
    "create_repository",
]
