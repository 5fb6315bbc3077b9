"""
MongoDB primary store and change feed.

Push streams are MongoDB change streams (a replica set is required). Each
change on a scope triggers a re-read of the whole scope, so subscribers always
receive complete snapshots.
"""

import logging
from typing import Any, AsyncIterator, Dict, List

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from ..database import NOTIFICATIONS, ORDER_POINTERS, QUEUE_COUNTERS, QUEUE_ENTRIES
from ..exceptions import SubscriptionFault, WriteRejected
from ..models.queue import QueueEntry, QueueStatus, Scope

logger = logging.getLogger(__name__)


def entries_pipeline(scope: Scope) -> List[Dict[str, Any]]:
    """Change stream filter for ``scope``.

    Delete events carry no ``fullDocument``, so they cannot be matched to a
    scope and all of them pass; the re-read decides whether anything changed.
    """
    in_scope = {f"fullDocument.{field}": value for field, value in scope.as_filter().items()}
    return [{"$match": {"$or": [in_scope, {"operationType": "delete"}]}}]


class MongoQueueStore:
    """Queue writes against MongoDB."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.entries = db[QUEUE_ENTRIES]
        self.pointers = db[ORDER_POINTERS]
        self.counters = db[QUEUE_COUNTERS]

    async def _next_position(self, scope: Scope) -> int:
        """Atomically take the next queue position of ``scope``."""
        # Entries written before the counter existed still reserve their positions
        latest = await self.entries.find_one(
            scope.as_filter(),
            sort=[("user_order_in_queue", -1)]
        )
        floor = int(latest.get("user_order_in_queue") or 0) if latest else 0
        await self.counters.update_one(
            {"_id": scope.key},
            {"$max": {"seq": floor}},
            upsert=True
        )

        counter = await self.counters.find_one_and_update(
            {"_id": scope.key},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return counter["seq"]

    async def create_entry(self, scope: Scope, document: Dict[str, Any]) -> QueueEntry:
        entry_doc = dict(document)
        entry_doc.update(scope.as_filter())
        try:
            position = await self._next_position(scope)
            entry_doc["position"] = position
            entry_doc["user_order_in_queue"] = position
            result = await self.entries.insert_one(entry_doc)
        except PyMongoError as e:
            raise WriteRejected(f"Could not add patient: {e}") from e

        entry_doc["_id"] = str(result.inserted_id)
        return QueueEntry.model_validate(entry_doc)

    async def _update_entry(self, entry_id: str, update: Dict[str, Any]) -> None:
        try:
            object_id = ObjectId(entry_id)
        except (InvalidId, TypeError):
            raise WriteRejected("Invalid queue entry id", entry_id=entry_id)

        try:
            result = await self.entries.update_one({"_id": object_id}, update)
        except PyMongoError as e:
            raise WriteRejected(str(e), entry_id=entry_id) from e

        if result.matched_count == 0:
            raise WriteRejected("Queue entry not found", entry_id=entry_id)

    async def update_status(self, entry_id: str, status: QueueStatus) -> None:
        await self._update_entry(entry_id, {"$set": {"status": status.value}})

    async def update_consultation_payment(self, entry_id: str, fields: Dict[str, Any]) -> None:
        update = {f"consultationPayment.{name}": value for name, value in fields.items()}
        await self._update_entry(entry_id, {"$set": update})

    async def replace_bills(self, entry_id: str, bills: List[Dict[str, Any]]) -> None:
        await self._update_entry(entry_id, {"$set": {"bills": bills}})

    async def set_current_order(self, scope: Scope, value: int) -> None:
        try:
            await self.pointers.update_one(
                {"_id": scope.key},
                {"$set": {"currentOrder": value}},
                upsert=True
            )
        except PyMongoError as e:
            raise WriteRejected(f"Could not update current order: {e}") from e


class MongoChangeFeed:
    """Snapshot streams built on MongoDB change streams."""

    def __init__(self, db: AsyncIOMotorDatabase, message_backlog: int = 10):
        self.entry_collection = db[QUEUE_ENTRIES]
        self.pointers = db[ORDER_POINTERS]
        self.notifications = db[NOTIFICATIONS]
        self.message_backlog = message_backlog

    async def _snapshot(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        documents = await self.entry_collection.find(query).to_list(length=None)
        for entry_doc in documents:
            entry_doc["_id"] = str(entry_doc["_id"])
        return documents

    async def entries(self, scope: Scope) -> AsyncIterator[List[Dict[str, Any]]]:
        query = scope.as_filter()
        try:
            # The stream is opened before the first read so no change falls in between
            async with self.entry_collection.watch(
                entries_pipeline(scope), full_document="updateLookup"
            ) as stream:
                yield await self._snapshot(query)
                async for _change in stream:
                    yield await self._snapshot(query)
        except PyMongoError as e:
            logger.error("Queue stream for %s failed: %s", scope.key, e)
            raise SubscriptionFault("entries", str(e)) from e

    async def current_order(self, scope: Scope) -> AsyncIterator[int]:
        pipeline = [{"$match": {"documentKey._id": scope.key}}]
        try:
            async with self.pointers.watch(pipeline, full_document="updateLookup") as stream:
                pointer = await self.pointers.find_one({"_id": scope.key})
                yield (pointer or {}).get("currentOrder", 0)
                async for change in stream:
                    yield (change.get("fullDocument") or {}).get("currentOrder", 0)
        except PyMongoError as e:
            logger.error("Current order stream for %s failed: %s", scope.key, e)
            raise SubscriptionFault("current_order", str(e)) from e

    async def messages(self, assistant_id: str) -> AsyncIterator[Dict[str, Any]]:
        pipeline = [{"$match": {
            "operationType": "insert",
            "fullDocument.assistant_id": assistant_id
        }}]
        try:
            async with self.notifications.watch(pipeline) as stream:
                cursor = self.notifications.find(
                    {"assistant_id": assistant_id}
                ).sort("createdAt", -1).limit(self.message_backlog)
                async for notification in cursor:
                    yield notification
                async for change in stream:
                    yield change["fullDocument"]
        except PyMongoError as e:
            logger.error("Message stream for assistant %s failed: %s", assistant_id, e)
            raise SubscriptionFault("messages", str(e)) from e
