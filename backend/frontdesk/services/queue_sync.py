"""
Live queue synchronization.

``QueueSynchronizer`` owns the subscriptions of one console: the selected
scope's entries and pointer streams plus the operator's doctor message stream.
Every item is applied sequentially on the event loop; derived state is only
ever replaced by what the store echoes back.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ValidationError

from ..exceptions import SubscriptionFault
from ..models.notification import BillAdded, DoctorMessage, SubscriptionFaultNotice
from ..models.queue import QueueEntry, QueueStatus, QueueView, Scope
from .delta import SeenSet, detect_bill_additions
from .ordering import order_entries
from .store import ChangeFeed

logger = logging.getLogger(__name__)

Listener = Callable[[BaseModel], None]


def _describe(error: Exception) -> str:
    return f"{type(error).__name__}: {error}"


class SyncSession:
    """Replay-sensitive state of one synchronizer."""

    def __init__(self):
        self.baseline: Optional[Dict[str, QueueEntry]] = None
        self.seen = SeenSet()


class QueueSynchronizer:
    """Derives the ordered queue and operator notifications from the change feed."""

    def __init__(self, feed: ChangeFeed):
        self.feed = feed
        self.session = SyncSession()
        self.scope: Optional[Scope] = None
        self.entries: List[QueueEntry] = []
        self.current_order = 0
        self.fault: Optional[SubscriptionFault] = None
        self.assistant_id: Optional[str] = None
        self.message_fault: Optional[SubscriptionFault] = None
        self._synced = False
        self._listeners: List[Listener] = []
        self._scope_tasks: List[asyncio.Task] = []
        self._message_task: Optional[asyncio.Task] = None

    # --------------------------------------------------------------- listeners

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: BaseModel) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------ derived state

    def view(self) -> Optional[QueueView]:
        """Current queue, or None before the first snapshot and while faulted."""
        if self.scope is None or not self._synced or self.fault is not None:
            return None
        return QueueView(
            scope=self.scope,
            entries=self.entries,
            current_order=self.current_order,
            total_waiting=sum(1 for e in self.entries if e.status is QueueStatus.WAITING),
            total_finished=sum(1 for e in self.entries if e.status is QueueStatus.FINISHED),
        )

    def get_entry(self, entry_id: str) -> Optional[QueueEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    # --------------------------------------------------------- apply one item

    def apply_snapshot(self, records: Iterable[Mapping[str, Any]]) -> List[BillAdded]:
        """Apply a full snapshot of the current scope; return the new notifications."""
        parsed = []
        for record in records:
            try:
                parsed.append(QueueEntry.model_validate(record))
            except ValidationError as e:
                logger.warning("Dropping malformed queue record %s: %s", record.get("_id"), e)

        current = order_entries(parsed)
        additions = detect_bill_additions(self.session.baseline, current)
        fresh = [event for event in additions if self.session.seen.first_sight(event.key)]

        self.session.baseline = {entry.id: entry for entry in current}
        self.entries = current
        self._synced = True

        view = self.view()
        if view is not None:
            self._emit(view)
        for event in fresh:
            self._emit(event)
        return fresh

    def apply_current_order(self, value: Optional[int]) -> None:
        self.current_order = int(value or 0)
        view = self.view()
        if view is not None:
            self._emit(view)

    def apply_message(self, record: Mapping[str, Any]) -> Optional[DoctorMessage]:
        """Surface a doctor message unless billing, already read, or already seen."""
        try:
            message = DoctorMessage.model_validate(record)
        except ValidationError as e:
            logger.warning("Dropping malformed doctor message: %s", e)
            return None

        # Bills are detected on the queue stream itself
        if message.is_billing or message.read:
            return None
        if not self.session.seen.first_sight(message.key):
            return None
        self._emit(message)
        return message

    # ------------------------------------------------------------ subscriptions

    async def select_scope(self, scope: Scope) -> None:
        """Switch to ``scope``; the old scope's streams are gone before new ones start."""
        await self._stop_scope_streams()
        self.scope = scope
        self.session.baseline = None
        self.entries = []
        self.current_order = 0
        self.fault = None
        self._synced = False
        self._start_scope_streams()

    async def resubscribe(self) -> None:
        """Re-open the streams after a fault. Baseline and seen set are kept.

        A failed message stream is re-opened too; its replayed backlog is
        absorbed by the seen set.
        """
        if self.message_fault is not None and self.assistant_id:
            self.watch_messages(self.assistant_id)
        if self.scope is None:
            return
        await self._stop_scope_streams()
        self.fault = None
        self._synced = False
        self._start_scope_streams()

    def watch_messages(self, assistant_id: str) -> None:
        if self._message_task is not None:
            self._message_task.cancel()
        self.assistant_id = assistant_id
        self.message_fault = None
        self._message_task = asyncio.create_task(
            self._consume_messages(self.feed.messages(assistant_id)),
            name=f"messages:{assistant_id}"
        )

    async def close(self) -> None:
        await self._stop_scope_streams()
        if self._message_task is not None:
            self._message_task.cancel()
            await asyncio.gather(self._message_task, return_exceptions=True)
            self._message_task = None

    def _start_scope_streams(self) -> None:
        scope = self.scope
        self._scope_tasks = [
            asyncio.create_task(
                self._consume(scope, "entries", self.feed.entries(scope), self.apply_snapshot),
                name=f"entries:{scope.key}"
            ),
            asyncio.create_task(
                self._consume(scope, "current_order", self.feed.current_order(scope), self.apply_current_order),
                name=f"current_order:{scope.key}"
            ),
        ]

    async def _stop_scope_streams(self) -> None:
        tasks, self._scope_tasks = self._scope_tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _consume(
        self,
        scope: Scope,
        stream_name: str,
        stream: AsyncIterator,
        apply: Callable
    ) -> None:
        try:
            async for item in stream:
                # Items of a scope that is no longer selected must not touch state
                if scope != self.scope or self.fault is not None:
                    break
                apply(item)
        except SubscriptionFault as fault:
            if scope == self.scope:
                self._fail(scope, fault)
        except Exception as e:
            logger.exception("Unexpected error on the %s stream of %s", stream_name, scope.key)
            if scope == self.scope:
                self._fail(scope, SubscriptionFault(stream_name, _describe(e)))
        finally:
            await stream.aclose()

    async def _consume_messages(self, stream: AsyncIterator) -> None:
        try:
            async for record in stream:
                self.apply_message(record)
        except SubscriptionFault as fault:
            self._fail_messages(fault)
        except Exception as e:
            logger.exception("Unexpected error on the doctor message stream")
            self._fail_messages(SubscriptionFault("messages", _describe(e)))
        finally:
            await stream.aclose()

    def _fail_messages(self, fault: SubscriptionFault) -> None:
        logger.error("Doctor message stream stopped: %s", fault)
        self.message_fault = fault
        self._emit(SubscriptionFaultNotice(scope=self.scope, stream=fault.stream, detail=fault.detail))

    def _fail(self, scope: Scope, fault: SubscriptionFault) -> None:
        logger.error("Subscription fault on %s: %s", scope.key, fault)
        self.fault = fault
        current = asyncio.current_task()
        for task in self._scope_tasks:
            if task is not current:
                task.cancel()
        self._emit(SubscriptionFaultNotice(scope=scope, stream=fault.stream, detail=fault.detail))
