"""
Per-product exclusive locks for the consistency engine.

One ``threading.Lock`` exists per product id, so writers on different
products never wait on each other. The registry covers writers inside one
process; writers in other processes are serialized by the
``SELECT ... FOR UPDATE`` the engine issues while holding the lock.

Entries are reference counted: a lock lives in the registry only while some
thread holds it or waits for it, so ids that are never seen again (unknown
or deleted products) do not accumulate.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from stockledger.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0  # holders plus waiters


class ProductLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._slots: dict[str, _Slot] = {}

    def _checkout(self, product_id: str) -> _Slot:
        with self._guard:
            slot = self._slots.get(product_id)
            if slot is None:
                slot = self._slots[product_id] = _Slot()
            slot.users += 1
            return slot

    def _checkin(self, product_id: str, slot: _Slot) -> None:
        with self._guard:
            slot.users -= 1
            if slot.users == 0:
                del self._slots[product_id]

    @contextmanager
    def hold(self, product_id: str, timeout: float) -> Iterator[None]:
        """Hold the product's lock for the body; raise LockTimeoutError if not granted in time."""
        slot = self._checkout(product_id)
        try:
            if not slot.lock.acquire(timeout=timeout):
                logger.warning("Lock wait on product %s exceeded %ss", product_id, timeout)
                raise LockTimeoutError(product_id, timeout)
            try:
                yield
            finally:
                slot.lock.release()
        finally:
            self._checkin(product_id, slot)

    def is_locked(self, product_id: str) -> bool:
        with self._guard:
            slot = self._slots.get(product_id)
            return slot is not None and slot.lock.locked()

    def __len__(self) -> int:
        """Number of products currently held or waited on."""
        with self._guard:
            return len(self._slots)


# Shared by every StockLedger in this process unless one is injected
default_locks = ProductLocks()
