"""
Interfaces of the primary document store: writes and push streams.
"""

from typing import Any, AsyncIterator, Dict, List, Protocol

from ..models.queue import QueueEntry, QueueStatus, Scope


class QueueStore(Protocol):
    """Authoritative writes. Failures raise ``WriteRejected``."""

    async def create_entry(self, scope: Scope, document: Dict[str, Any]) -> QueueEntry:
        """Insert a new entry, assigning the next queue position of ``scope``."""
        ...

    async def update_status(self, entry_id: str, status: QueueStatus) -> None:
        ...

    async def update_consultation_payment(self, entry_id: str, fields: Dict[str, Any]) -> None:
        """Set ``consultationPayment.<field>`` for each item of ``fields``."""
        ...

    async def replace_bills(self, entry_id: str, bills: List[Dict[str, Any]]) -> None:
        ...

    async def set_current_order(self, scope: Scope, value: int) -> None:
        """Merge ``currentOrder`` into the scope's pointer document."""
        ...


class ChangeFeed(Protocol):
    """Long-lived push streams. Errors raise ``SubscriptionFault``."""

    def entries(self, scope: Scope) -> AsyncIterator[List[Dict[str, Any]]]:
        """Full-collection snapshots of the scope's entries, current one first."""
        ...

    def current_order(self, scope: Scope) -> AsyncIterator[int]:
        """The scope's pointer value, current one first (0 when unset)."""
        ...

    def messages(self, assistant_id: str) -> AsyncIterator[Dict[str, Any]]:
        """Doctor messages addressed to ``assistant_id``, recent backlog first."""
        ...
