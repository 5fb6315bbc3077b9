"""
MongoDB async database connection using Motor.
Provides database instance and collection access.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

QUEUE_ENTRIES = "queue_entries"
ORDER_POINTERS = "order_pointers"
QUEUE_COUNTERS = "queue_counters"
NOTIFICATIONS = "doctor_assistant_notifications"


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)
        cls.db = cls.client[settings.DATABASE_NAME]

        # Verify connection
        await cls.client.admin.command('ping')
        logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

        await cls._create_indexes()

    @classmethod
    async def disconnect(cls):
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls):
        """Create database indexes."""
        if cls.db is None:
            return

        # Queue positions are unique within a doctor's day
        await cls.db[QUEUE_ENTRIES].create_index(
            [("clinic_id", 1), ("date", 1), ("doctor_id", 1), ("user_order_in_queue", 1)],
            unique=True,
            partialFilterExpression={"user_order_in_queue": {"$type": "number"}}
        )
        await cls.db[QUEUE_ENTRIES].create_index("createdAt")

        await cls.db[NOTIFICATIONS].create_index([("assistant_id", 1), ("createdAt", -1)])

        logger.info("Database indexes created")

    @classmethod
    def get_collection(cls, name: str):
        """Get a collection by name."""
        if cls.db is None:
            raise RuntimeError("Database not connected")
        return cls.db[name]
