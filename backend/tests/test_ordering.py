from itertools import permutations

from frontdesk.models.queue import QueueEntry
from frontdesk.services.ordering import order_entries, ordering_key

from .helpers import BASE_TIME, entry_doc


def _entries(*docs):
    return [QueueEntry.model_validate(doc) for doc in docs]


def test_orders_by_creation_time_not_position():
    entries = _entries(
        entry_doc("a", position=1, created_at=BASE_TIME + 2000),
        entry_doc("b", position=2, created_at=BASE_TIME),
        entry_doc("c", position=3, created_at=BASE_TIME + 1000),
    )

    assert [e.id for e in order_entries(entries)] == ["b", "c", "a"]


def test_legacy_entries_without_timestamp_sort_after_by_position():
    entries = _entries(
        entry_doc("legacy-2", position=2),
        entry_doc("new", position=9, created_at=BASE_TIME),
        entry_doc("legacy-1", position=1),
    )

    assert [e.id for e in order_entries(entries)] == ["new", "legacy-1", "legacy-2"]


def test_identical_timestamps_fall_back_to_position():
    entries = _entries(
        entry_doc("a", position=2, created_at=BASE_TIME),
        entry_doc("b", position=1, created_at=BASE_TIME),
    )

    assert [e.id for e in order_entries(entries)] == ["b", "a"]


def test_order_does_not_depend_on_arrival_order():
    entries = _entries(
        entry_doc("a", position=1, created_at=BASE_TIME),
        entry_doc("b", position=2, created_at=BASE_TIME + 5),
        entry_doc("c", position=3),
        entry_doc("d", position=4, created_at=BASE_TIME + 1),
    )
    expected = [e.id for e in order_entries(entries)]

    for arrangement in permutations(entries):
        assert [e.id for e in order_entries(arrangement)] == expected

    keys = [ordering_key(e) for e in entries]
    assert len(set(keys)) == len(keys)
