"""Services package for the front desk console."""

from .ordering import order_entries, ordering_key
from .delta import SeenSet, detect_bill_additions
from .queue_sync import QueueSynchronizer, SyncSession
from .order_pointer import OrderPointerController
from .payments import PaymentCommitProtocol, settle_bill
from .reconciliation import DetachedTaskRunner, ReconciliationClient, RetryPolicy
from .ledger_client import LedgerClient
from .memory_store import InMemoryQueueStore
from .mongo_store import MongoChangeFeed, MongoQueueStore
from .front_desk import FrontDeskConsole

__all__ = [
    "order_entries",
    "ordering_key",
    "SeenSet",
    "detect_bill_additions",
    "QueueSynchronizer",
    "SyncSession",
    "OrderPointerController",
    "PaymentCommitProtocol",
    "settle_bill",
    "DetachedTaskRunner",
    "ReconciliationClient",
    "RetryPolicy",
    "LedgerClient",
    "InMemoryQueueStore",
    "MongoChangeFeed",
    "MongoQueueStore",
    "FrontDeskConsole",
]
