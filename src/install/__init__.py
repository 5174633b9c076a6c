"""Package resolution and idempotent installation.

- selector.py: effective source list per request
- resolver.py: local-first, concurrent remote version resolution
- ledger.py: per-run installed package ledger and install scopes
- package_manager.py: package store boundary and the folder implementation
- orchestrator.py: verify, scope and delegate one install
- installer.py: batch pipeline over many requests
- config.py: configuration loading
"""

from .config import InstallerConfig, load_config, requests_from_config
from .installer import PackageInstaller
from .ledger import InstallScope, InstallState, InstalledPackageCache
from .models import PackageOutcome, PackageRequest, ResolutionContext, ResolvedVersion
from .orchestrator import InstallOrchestrator
from .package_manager import FolderPackageManager, PackageManager
from .resolver import VersionResolver
from .selector import select_sources

__all__ = [
    "FolderPackageManager",
    "InstallOrchestrator",
    "InstallScope",
    "InstallState",
    "InstalledPackageCache",
    "InstallerConfig",
    "PackageInstaller",
    "PackageManager",
    "PackageOutcome",
    "PackageRequest",
    "ResolutionContext",
    "ResolvedVersion",
    "VersionResolver",
    "load_config",
    "requests_from_config",
    "select_sources",
]
