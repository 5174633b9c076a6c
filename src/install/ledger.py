"""Installed package ledger.

Records which package identities were verified or installed during this run
and serializes install attempts per identity. The ledger is an explicit
object shared by whoever installs packages in the same run; nothing is kept
in module state and nothing is persisted.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional

from versioning import PackageIdentity

from .package_manager import PackageManager

logger = logging.getLogger(__name__)


class InstallState(Enum):
    """Ledger state of one package identity."""
    PENDING = "pending"
    VERIFIED = "verified"
    COMPLETED = "completed"


@dataclass
class _LedgerEntry:
    # Install lock of the event loop that last installed this identity
    lock: Optional[asyncio.Lock] = None
    loop: Optional[asyncio.AbstractEventLoop] = None
    state: Optional[InstallState] = None
    framework: Optional[str] = None


class InstallScope:
    """Exclusive right to install one identity, obtained from the ledger.

    Call ``complete()`` once the install succeeded and ``release()`` on every
    exit path. Releasing without completing leaves the identity installable
    by a later attempt.
    """

    def __init__(
        self,
        ledger: "InstalledPackageCache",
        identity: PackageIdentity,
        lock: asyncio.Lock,
        already_installed: bool,
    ):
        self._ledger = ledger
        self._lock = lock
        self.identity = identity
        self.already_installed = already_installed
        self._completed = already_installed
        self._released = False

    @property
    def completed(self) -> bool:
        return self._completed

    def complete(self) -> None:
        self._completed = True

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._ledger._release(self.identity, self._lock, self._completed)


class InstalledPackageCache:
    """Per-run idempotency ledger keyed by package identity."""

    def __init__(self, package_manager: PackageManager):
        """Initialize the ledger.

        Args:
            package_manager: Answers whether an identity is already present on disk.
        """
        self._package_manager = package_manager
        self._entries: Dict[PackageIdentity, _LedgerEntry] = {}
        self._entries_lock = threading.Lock()

    def _entry(self, identity: PackageIdentity) -> _LedgerEntry:
        with self._entries_lock:
            entry = self._entries.get(identity)
            if entry is None:
                entry = _LedgerEntry()
                self._entries[identity] = entry
            return entry

    def _is_done(self, identity: PackageIdentity) -> bool:
        with self._entries_lock:
            entry = self._entries.get(identity)
            return entry is not None and entry.state in (InstallState.VERIFIED, InstallState.COMPLETED)

    def state(self, identity: PackageIdentity) -> Optional[InstallState]:
        """Current ledger state of ``identity``, or None if never seen."""
        with self._entries_lock:
            entry = self._entries.get(identity)
            return entry.state if entry else None

    def installed(self) -> List[PackageIdentity]:
        """Identities verified present or installed during this run."""
        with self._entries_lock:
            return [
                identity for identity, entry in self._entries.items()
                if entry.state in (InstallState.VERIFIED, InstallState.COMPLETED)
            ]

    def verify(self, identity: PackageIdentity) -> bool:
        """Return True if ``identity`` is installed, without installing anything.

        A positive answer from the package manager is recorded so the
        on-disk check is not repeated.
        """
        with self._entries_lock:
            entry = self._entries.get(identity)
            state = entry.state if entry else None
        if state in (InstallState.VERIFIED, InstallState.COMPLETED):
            return True
        if state is InstallState.PENDING:
            # Files of an unfinished install are not proof of presence
            return False
        if not self._package_manager.is_installed(identity):
            return False
        entry = self._entry(identity)
        with self._entries_lock:
            if entry.state is None:
                entry.state = InstallState.VERIFIED
        return True

    async def acquire_install_scope(self, identity: PackageIdentity, framework: Optional[str] = None) -> InstallScope:
        """Wait for exclusive install rights on ``identity``.

        A caller that waited behind a successful install gets a scope with
        ``already_installed`` set and should skip its own install.
        """
        loop = asyncio.get_running_loop()
        entry = self._entry(identity)
        with self._entries_lock:
            if entry.lock is None or entry.loop is not loop:
                entry.lock = asyncio.Lock()
                entry.loop = loop
            lock = entry.lock
        await lock.acquire()
        with self._entries_lock:
            if entry.state in (InstallState.VERIFIED, InstallState.COMPLETED):
                return InstallScope(self, identity, lock, already_installed=True)
            entry.state = InstallState.PENDING
            entry.framework = framework
        return InstallScope(self, identity, lock, already_installed=False)

    def _release(self, identity: PackageIdentity, lock: asyncio.Lock, completed: bool) -> None:
        entry = self._entry(identity)
        with self._entries_lock:
            if entry.state is InstallState.PENDING:
                entry.state = InstallState.COMPLETED if completed else None
        lock.release()

    @asynccontextmanager
    async def install_scope(
        self, identity: PackageIdentity, framework: Optional[str] = None
    ) -> AsyncIterator[InstallScope]:
        """Acquire the install scope, completing it on normal exit and releasing it always."""
        scope = await self.acquire_install_scope(identity, framework)
        try:
            yield scope
            scope.complete()
        finally:
            scope.release()

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, PackageIdentity) and self._is_done(identity)

    def __len__(self) -> int:
        return len(self.installed())
