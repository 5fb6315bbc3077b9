"""
"Now serving" pointer of the selected scope.
"""

import logging
from typing import Iterable, Optional

from ..exceptions import ScopeNotSelected
from ..models.queue import QueueEntry, QueueStatus, Scope
from .queue_sync import QueueSynchronizer
from .store import QueueStore

logger = logging.getLogger(__name__)


class OrderPointerController:
    """Moves the pointer by writing to the store.

    Nothing is changed locally: the value shown is the one echoed back on the
    synchronizer's pointer stream, and concurrent writers are last-write-wins.
    """

    def __init__(self, store: QueueStore, synchronizer: QueueSynchronizer):
        self.store = store
        self.synchronizer = synchronizer

    @property
    def current(self) -> int:
        return self.synchronizer.current_order

    def _scope(self) -> Scope:
        if self.synchronizer.scope is None:
            raise ScopeNotSelected("Select a doctor and day first")
        return self.synchronizer.scope

    async def _write(self, value: int) -> int:
        await self.store.set_current_order(self._scope(), value)
        return value

    async def increment(self) -> int:
        return await self._write(self.current + 1)

    async def decrement(self) -> Optional[int]:
        # Floor is 1: a pointer that has left 0 never returns to it
        if self.current <= 1:
            return None
        return await self._write(self.current - 1)

    async def reset(self) -> int:
        return await self._write(1)

    async def auto_advance(
        self,
        just_transitioned_id: str,
        entries: Optional[Iterable[QueueEntry]] = None
    ) -> Optional[int]:
        """Point at the lowest waiting position ahead of the pointer, if any."""
        if entries is None:
            entries = self.synchronizer.entries
        current = self.current
        ahead = [
            entry.position
            for entry in entries
            if entry.id != just_transitioned_id
            and entry.status is QueueStatus.WAITING
            and entry.position > current
        ]
        if not ahead:
            logger.debug("No waiting patient after %s; pointer unchanged", current)
            return None
        return await self._write(min(ahead))
