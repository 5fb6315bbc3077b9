from frontdesk.models.queue import QueueEntry
from frontdesk.services.delta import SeenSet, detect_bill_additions

from .helpers import BASE_TIME, bill_doc, entry_doc


def _snapshot(*docs):
    return [QueueEntry.model_validate(doc) for doc in docs]


def _baseline(entries):
    return {entry.id: entry for entry in entries}


def test_first_snapshot_emits_nothing():
    current = _snapshot(entry_doc("e1", 1, BASE_TIME, bills=[bill_doc("b1")]))

    assert detect_bill_additions(None, current) == []


def test_one_event_per_new_pending_bill():
    before = _snapshot(entry_doc("e1", 1, BASE_TIME, bills=[bill_doc("b1")]))
    after = _snapshot(entry_doc("e1", 1, BASE_TIME, bills=[
        bill_doc("b1"), bill_doc("b2"), bill_doc("b3"),
    ]))

    events = detect_bill_additions(_baseline(before), after)

    assert [(e.entry_id, e.bill_index, e.bill.billing_id) for e in events] == [
        ("e1", 1, "b2"),
        ("e1", 2, "b3"),
    ]
    assert events[0].patient_name == "Patient e1"


def test_paid_bill_appended_is_not_announced():
    before = _snapshot(entry_doc("e1", 1, BASE_TIME))
    after = _snapshot(entry_doc("e1", 1, BASE_TIME, bills=[bill_doc("b1", status="paid")]))

    assert detect_bill_additions(_baseline(before), after) == []


def test_new_entry_with_bills_is_not_announced():
    before = _snapshot(entry_doc("e1", 1, BASE_TIME))
    after = _snapshot(
        entry_doc("e1", 1, BASE_TIME),
        entry_doc("e2", 2, BASE_TIME + 1, bills=[bill_doc("b9")]),
    )

    assert detect_bill_additions(_baseline(before), after) == []


def test_settling_a_bill_is_not_an_addition():
    before = _snapshot(entry_doc("e1", 1, BASE_TIME, bills=[bill_doc("b1")]))
    after = _snapshot(entry_doc("e1", 1, BASE_TIME, bills=[bill_doc("b1", status="paid")]))

    assert detect_bill_additions(_baseline(before), after) == []


def test_seen_set_first_sight():
    seen = SeenSet()

    assert seen.first_sight(("bill", "e1", "0"))
    assert not seen.first_sight(("bill", "e1", "0"))
    assert ("bill", "e1", "0") in seen
    assert len(seen) == 1
