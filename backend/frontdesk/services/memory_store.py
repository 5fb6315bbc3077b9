"""
In-process primary store and change feed.

Documents live in dictionaries; every write pushes a fresh full snapshot to the
subscribers of the affected scope. Serves single-process consoles
(``STORE_BACKEND=memory``) and the test-suite.
"""

import asyncio
import copy
import uuid
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Dict, List

from ..exceptions import SubscriptionFault, WriteRejected
from ..models.queue import QueueEntry, QueueStatus, Scope


class InMemoryQueueStore:
    """Dictionary-backed implementation of ``QueueStore`` and ``ChangeFeed``."""

    def __init__(self, message_backlog: int = 10):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.pointers: Dict[str, Dict[str, Any]] = {}
        self.counters: Dict[str, int] = defaultdict(int)
        self.notifications: List[Dict[str, Any]] = []
        self.message_backlog = message_backlog
        self._entry_watchers: Dict[str, List[asyncio.Queue]] = defaultdict(list)
        self._pointer_watchers: Dict[str, List[asyncio.Queue]] = defaultdict(list)
        self._message_watchers: Dict[str, List[asyncio.Queue]] = defaultdict(list)

    # ------------------------------------------------------------------ writes

    async def create_entry(self, scope: Scope, document: Dict[str, Any]) -> QueueEntry:
        self.counters[scope.key] += 1
        position = self.counters[scope.key]

        entry_doc = copy.deepcopy(document)
        entry_doc.update(scope.as_filter())
        entry_doc["_id"] = uuid.uuid4().hex
        entry_doc["position"] = position
        entry_doc["user_order_in_queue"] = position
        self.documents[entry_doc["_id"]] = entry_doc

        self._publish_entries(scope)
        return QueueEntry.model_validate(copy.deepcopy(entry_doc))

    async def update_status(self, entry_id: str, status: QueueStatus) -> None:
        entry_doc = self._get(entry_id)
        entry_doc["status"] = status.value
        self._publish_entries(self._scope_of(entry_doc))

    async def update_consultation_payment(self, entry_id: str, fields: Dict[str, Any]) -> None:
        entry_doc = self._get(entry_id)
        payment = entry_doc.get("consultationPayment") or {}
        payment.update(fields)
        entry_doc["consultationPayment"] = payment
        self._publish_entries(self._scope_of(entry_doc))

    async def replace_bills(self, entry_id: str, bills: List[Dict[str, Any]]) -> None:
        entry_doc = self._get(entry_id)
        entry_doc["bills"] = copy.deepcopy(bills)
        self._publish_entries(self._scope_of(entry_doc))

    async def set_current_order(self, scope: Scope, value: int) -> None:
        self.pointers.setdefault(scope.key, {})["currentOrder"] = value
        for queue in self._pointer_watchers[scope.key]:
            queue.put_nowait(value)

    def post_message(self, assistant_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
        """Deliver a doctor message to ``assistant_id`` (the doctor-side write)."""
        notification = dict(message)
        notification.setdefault("_id", uuid.uuid4().hex)
        notification.setdefault("createdAt", datetime.now(timezone.utc))
        notification["assistant_id"] = assistant_id
        self.notifications.append(notification)
        for queue in self._message_watchers[assistant_id]:
            queue.put_nowait(copy.deepcopy(notification))
        return notification

    def interrupt(self, scope: Scope, detail: str = "connection lost") -> None:
        """Fail every entries subscription of ``scope``."""
        for queue in self._entry_watchers[scope.key]:
            queue.put_nowait(SubscriptionFault("entries", detail))

    def interrupt_messages(self, assistant_id: str, detail: str = "connection lost") -> None:
        """Fail every message subscription of ``assistant_id``."""
        for queue in self._message_watchers[assistant_id]:
            queue.put_nowait(SubscriptionFault("messages", detail))

    # ----------------------------------------------------------------- streams

    async def entries(self, scope: Scope) -> AsyncIterator[List[Dict[str, Any]]]:
        queue: asyncio.Queue = asyncio.Queue()
        watchers = self._entry_watchers[scope.key]
        watchers.append(queue)
        try:
            yield self.snapshot(scope)
            while True:
                item = await queue.get()
                if isinstance(item, SubscriptionFault):
                    raise item
                yield item
        finally:
            watchers.remove(queue)

    async def current_order(self, scope: Scope) -> AsyncIterator[int]:
        queue: asyncio.Queue = asyncio.Queue()
        watchers = self._pointer_watchers[scope.key]
        watchers.append(queue)
        try:
            yield self.pointers.get(scope.key, {}).get("currentOrder", 0)
            while True:
                yield await queue.get()
        finally:
            watchers.remove(queue)

    async def messages(self, assistant_id: str) -> AsyncIterator[Dict[str, Any]]:
        queue: asyncio.Queue = asyncio.Queue()
        watchers = self._message_watchers[assistant_id]
        watchers.append(queue)
        try:
            backlog = [n for n in self.notifications if n["assistant_id"] == assistant_id]
            backlog.sort(key=lambda n: n["createdAt"], reverse=True)
            for notification in backlog[:self.message_backlog]:
                yield copy.deepcopy(notification)
            while True:
                item = await queue.get()
                if isinstance(item, SubscriptionFault):
                    raise item
                yield item
        finally:
            watchers.remove(queue)

    # ----------------------------------------------------------------- helpers

    def snapshot(self, scope: Scope) -> List[Dict[str, Any]]:
        """Current documents of ``scope``, deep-copied."""
        wanted = scope.as_filter()
        return [
            copy.deepcopy(entry_doc)
            for entry_doc in self.documents.values()
            if all(entry_doc.get(field) == value for field, value in wanted.items())
        ]

    def _get(self, entry_id: str) -> Dict[str, Any]:
        entry_doc = self.documents.get(entry_id)
        if entry_doc is None:
            raise WriteRejected("Queue entry not found", entry_id=entry_id)
        return entry_doc

    def _publish_entries(self, scope: Scope) -> None:
        for queue in self._entry_watchers[scope.key]:
            queue.put_nowait(self.snapshot(scope))

    @staticmethod
    def _scope_of(entry_doc: Dict[str, Any]) -> Scope:
        return Scope(
            clinic_id=entry_doc["clinic_id"],
            doctor_id=entry_doc["doctor_id"],
            day=date.fromisoformat(entry_doc["date"]),
        )
