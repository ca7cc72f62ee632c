"""
Per-tenant sync lease.

At most one orchestration runs per tenant at a time. The lease is a
non-blocking lock: a second attempt is rejected, never queued.
"""
import threading
from contextlib import contextmanager
from typing import Iterator

from storesync.errors import SyncInProgress


class TenantLeases:
    """In-memory map of tenant id -> lock, shared by the HTTP path and the fleet loop."""

    def __init__(self):
        self._locks: dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, tenant_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = self._locks[tenant_id] = threading.Lock()
            return lock

    def is_held(self, tenant_id: int) -> bool:
        return self._lock_for(tenant_id).locked()

    @contextmanager
    def hold(self, tenant_id: int) -> Iterator[None]:
        """Hold the tenant's lease for the block; raise SyncInProgress if taken."""
        lock = self._lock_for(tenant_id)
        if not lock.acquire(blocking=False):
            raise SyncInProgress(tenant_id)
        try:
            yield
        finally:
            lock.release()


# Built once at import; request handlers and the scheduler share this instance
_leases = TenantLeases()


def get_leases() -> TenantLeases:
    return _leases
