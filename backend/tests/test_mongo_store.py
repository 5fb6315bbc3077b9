import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from frontdesk.database import ORDER_POINTERS, QUEUE_COUNTERS, QUEUE_ENTRIES
from frontdesk.exceptions import WriteRejected
from frontdesk.models.queue import QueueStatus
from frontdesk.services.mongo_store import MongoQueueStore, entries_pipeline

from .helpers import OTHER_SCOPE, SCOPE, entry_doc

pytestmark = pytest.mark.anyio


@pytest.fixture
def db(anyio_backend):
    return AsyncMongoMockClient()["frontdesk_test"]


@pytest.fixture
def mongo_store(db):
    return MongoQueueStore(db)


def _patient(name="Mona"):
    return {"patient_name": name, "status": "WAITING", "consultationPayment": {"amount": 200}}


async def test_positions_count_up_per_scope(mongo_store):
    first = await mongo_store.create_entry(SCOPE, _patient())
    second = await mongo_store.create_entry(SCOPE, _patient("Ali"))
    other = await mongo_store.create_entry(OTHER_SCOPE, _patient("Omar"))

    assert (first.position, second.position, other.position) == (1, 2, 1)
    assert first.doctor_id == SCOPE.doctor_id
    assert ObjectId.is_valid(first.id)


async def test_counter_starts_above_existing_entries(db, mongo_store):
    # written by a client that predates the counter
    legacy = entry_doc("ignored", 5)
    legacy.pop("_id")
    await db[QUEUE_ENTRIES].insert_one(legacy)

    entry = await mongo_store.create_entry(SCOPE, _patient())

    assert entry.position == 6
    counter = await db[QUEUE_COUNTERS].find_one({"_id": SCOPE.key})
    assert counter["seq"] == 6


async def test_status_and_payment_updates(db, mongo_store):
    entry = await mongo_store.create_entry(SCOPE, _patient())

    await mongo_store.update_status(entry.id, QueueStatus.FINISHED)
    await mongo_store.update_consultation_payment(entry.id, {"paymentStatus": "paid", "paidBy": "a-1"})

    stored = await db[QUEUE_ENTRIES].find_one({"_id": ObjectId(entry.id)})
    assert stored["status"] == "FINISHED"
    assert stored["consultationPayment"] == {"amount": 200, "paymentStatus": "paid", "paidBy": "a-1"}


@pytest.mark.parametrize("entry_id, detail", [
    ("not-an-object-id", "Invalid queue entry id"),
    (str(ObjectId()), "Queue entry not found"),
])
async def test_update_of_bad_entry_is_rejected(mongo_store, entry_id, detail):
    with pytest.raises(WriteRejected) as excinfo:
        await mongo_store.update_status(entry_id, QueueStatus.CANCELED)

    assert excinfo.value.detail == detail
    assert excinfo.value.entry_id == entry_id


async def test_current_order_upsert_keeps_other_fields(db, mongo_store):
    await db[ORDER_POINTERS].insert_one({"_id": SCOPE.key, "currentOrder": 2, "doctorName": "Dr. Salem"})

    await mongo_store.set_current_order(SCOPE, 3)
    await mongo_store.set_current_order(OTHER_SCOPE, 1)

    assert await db[ORDER_POINTERS].find_one({"_id": SCOPE.key}) == {
        "_id": SCOPE.key, "currentOrder": 3, "doctorName": "Dr. Salem"
    }
    assert (await db[ORDER_POINTERS].find_one({"_id": OTHER_SCOPE.key}))["currentOrder"] == 1


async def test_entries_pipeline_lets_deletes_through(db):
    events = db["change_events"]
    await events.insert_many([
        {"operationType": "update", "fullDocument": entry_doc("e1", 1)},
        {"operationType": "insert", "fullDocument": entry_doc("x1", 1, scope=OTHER_SCOPE)},
        {"operationType": "delete", "documentKey": {"_id": "e2"}},
    ])

    matched = await events.aggregate(entries_pipeline(SCOPE)).to_list(length=None)

    assert [e["operationType"] for e in matched] == ["update", "delete"]
