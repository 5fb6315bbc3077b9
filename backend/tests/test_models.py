from datetime import datetime, timezone

import pytest

from frontdesk.models.ledger import DoctorFeeSchedule
from frontdesk.models.notification import DEFAULT_MESSAGE, DoctorMessage
from frontdesk.models.queue import (
    Bill,
    PaymentStatus,
    QueueEntry,
    QueueStatus,
    ServiceItem,
    VisitType,
)

from .helpers import entry_doc


def test_service_item_accepts_legacy_name_and_subtotal():
    item = ServiceItem.model_validate({"name": "Blood test", "subtotal": 90, "quantity": 3})

    assert item.name == "Blood test"
    assert item.price == 30
    assert item.line_total == 90


def test_service_item_defaults_quantity_to_one():
    item = ServiceItem.model_validate({"service_name": "ECG", "price": 120})

    assert item.quantity == 1
    assert item.line_total == 120


def test_bill_total_computed_when_missing():
    bill = Bill.model_validate({
        "billing_id": 42,
        "consultationFee": 50,
        "services": [{"name": "X-ray", "price": 100, "quantity": 2}],
    })

    assert bill.billing_id == "42"
    assert bill.total_amount == 250
    assert bill.payment_status is PaymentStatus.PENDING
    assert bill.is_outstanding


def test_bill_document_keeps_unknown_fields():
    bill = Bill.model_validate({
        "billing_id": "b1",
        "totalAmount": 100,
        "paymentStatus": "pending",
        "notes": "fasting required",
    })

    doc = bill.to_document()
    assert doc["notes"] == "fasting required"
    assert doc["paymentStatus"] == "pending"
    assert doc["totalAmount"] == 100


def test_entry_normalizes_legacy_wire_shape():
    doc = entry_doc("e1", position=0, visit_type="إعادة كشف", visit_speed="سريع", age=34)
    doc.pop("user_order_in_queue")
    doc["position"] = 7
    doc["status"] = "finished"

    entry = QueueEntry.model_validate(doc)

    assert entry.position == 7
    assert entry.visit_type is VisitType.FOLLOW_UP
    assert entry.urgent is True
    assert entry.status is QueueStatus.FINISHED
    assert entry.age == "34"
    assert entry.created_at is None


@pytest.mark.parametrize("created_at, expected", [
    (1_792_000_000_000, 1_792_000_000_000),
    ("1792000000000", 1_792_000_000_000),
    ("2026-10-17T08:00:00Z", 1_792_224_000_000),
    (datetime(2026, 10, 17, 8, 0), 1_792_224_000_000),
    (datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc), 1_792_224_000_000),
    ("yesterday", None),
])
def test_entry_creation_time_as_epoch_ms(created_at, expected):
    entry = QueueEntry.model_validate(entry_doc("e1", position=1, created_at=created_at))

    assert entry.created_at == expected


def test_entry_keeps_bills_as_stored():
    legacy = {"billing_id": "b2", "totalAmount": 50, "services": [{"name": "xray", "subtotal": 50}]}

    entry = QueueEntry.model_validate(entry_doc("e1", position=1, bills=[legacy]))

    assert entry.bill_documents == [legacy]
    assert entry.bills[0].services[0].name == "xray"
    assert "bill_documents" not in entry.model_dump()


def test_entry_unknown_status_reads_as_waiting():
    entry = QueueEntry.model_validate(entry_doc("e1", position=1, status="in-room"))

    assert entry.status is QueueStatus.WAITING


def test_partial_consultation_payment_is_pending():
    doc = entry_doc("e1", position=1)
    doc["consultationPayment"] = {"amount": 200, "paymentStatus": "partial"}

    entry = QueueEntry.model_validate(doc)

    assert entry.consultation_payment.payment_status is PaymentStatus.PENDING
    assert entry.has_unpaid_balance


def test_outstanding_bills():
    doc = entry_doc("e1", position=1, bills=[
        {"billing_id": "b1", "totalAmount": 10, "paymentStatus": "paid"},
        {"billing_id": "b2", "totalAmount": 20, "paymentStatus": "partial"},
    ])
    doc["consultationPayment"] = {"amount": 200, "paymentStatus": "paid"}

    entry = QueueEntry.model_validate(doc)

    assert [b.billing_id for b in entry.outstanding_bills] == ["b2"]
    assert entry.has_unpaid_balance


def test_doctor_message_defaults():
    message = DoctorMessage.model_validate({"id": "m1", "message": "", "read": "yes"})

    assert message.id == "m1"
    assert message.message == DEFAULT_MESSAGE
    assert message.doctor_name == "Doctor"
    assert message.read is False
    assert message.key == ("message", "m1")


def test_fee_schedule_picks_fee_by_visit_type():
    schedule = DoctorFeeSchedule.model_validate({
        "consultationFee": 200,
        "revisitFee": 100,
        "estisharaFee": 50,
        "urgentFee": 300,
    })

    assert schedule.fee_for(VisitType.CONSULTATION) == 200
    assert schedule.fee_for(VisitType.FOLLOW_UP) == 100
    assert schedule.fee_for(VisitType.ADVISORY) == 50
    assert schedule.fee_for(VisitType.ADVISORY, urgent=True) == 300
