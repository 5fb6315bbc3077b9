"""
Walk-in queue models.

Wire documents written by older clients carry optional and alternative field
names (``name`` or ``service_name``, ``price`` or ``subtotal``, Arabic visit
labels...). The ``mode="before"`` validators below fold every such shape into a
single canonical record so the rest of the core never branches on field presence.
"""

import copy
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class QueueStatus(str, Enum):
    """Lifecycle status of a queue entry."""
    WAITING = "WAITING"
    FINISHED = "FINISHED"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        return self is not QueueStatus.WAITING


class VisitType(str, Enum):
    """Visit classification, each priced by its own fee."""
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow_up"
    ADVISORY = "advisory"

    @property
    def label(self) -> str:
        """Label stored in shared documents."""
        return VISIT_TYPE_LABELS[self]


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


# Labels the mobile and web clients read and write in shared documents
LEGACY_VISIT_TYPES = {
    "كشف": VisitType.CONSULTATION,
    "إعادة كشف": VisitType.FOLLOW_UP,
    "استشارة": VisitType.ADVISORY,
}
VISIT_TYPE_LABELS = {visit_type: label for label, visit_type in LEGACY_VISIT_TYPES.items()}
SPEED_NORMAL = "عادي"
SPEED_URGENT = "سريع"
URGENT_SPEEDS = {"urgent", SPEED_URGENT}
DEFAULT_REFERRAL_SOURCE = "عام"


def _coerce_enum(value: Any, enum_cls, default=None):
    """Map a raw wire value onto ``enum_cls``, falling back to ``default``."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if member.value.lower() == value.strip().lower():
                return member
    return default


def _epoch_ms(value: Any) -> Optional[int]:
    """Creation time as epoch milliseconds.

    Accepts epoch numbers, numeric strings, ISO-8601 strings and datetimes
    (naive ones are UTC, as BSON dates come back from MongoDB). Anything else
    reads as missing.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(float(text))
        except ValueError:
            pass
        try:
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    return None


class Scope(BaseModel):
    """(clinic, doctor, day) triple bounding one queue."""
    clinic_id: str
    doctor_id: str
    day: date

    class Config:
        frozen = True

    @property
    def key(self) -> str:
        return f"{self.clinic_id}:{self.doctor_id}:{self.day.isoformat()}"

    def as_filter(self) -> Dict[str, str]:
        """Document fields selecting this scope's entries."""
        return {
            "clinic_id": self.clinic_id,
            "doctor_id": self.doctor_id,
            "date": self.day.isoformat(),
        }


class ServiceItem(BaseModel):
    """One line item of a doctor-issued bill."""
    name: str = Field(..., alias="service_name")
    price: float = 0
    quantity: int = 1

    class Config:
        populate_by_name = True
        frozen = True
        extra = "allow"

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        name = data.pop("service_name", None) or data.pop("name", None)
        data.pop("name", None)
        data["service_name"] = name or "service"

        quantity = data.get("quantity") or 1
        data["quantity"] = int(quantity)

        if data.get("price") is None:
            subtotal = data.get("subtotal")
            data["price"] = float(subtotal) / data["quantity"] if subtotal is not None else 0
        return data

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class Bill(BaseModel):
    """Doctor-issued itemized charge. Append-only on its queue entry."""
    billing_id: str
    consultation_fee: float = Field(0, alias="consultationFee")
    consultation_type: Optional[str] = Field(None, alias="consultationType")
    services: List[ServiceItem] = []
    services_total: Optional[float] = Field(None, alias="servicesTotal")
    total_amount: float = Field(0, alias="totalAmount")
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, alias="paymentStatus")
    payment_method: Optional[PaymentMethod] = Field(None, alias="paymentMethod")
    paid_at: Optional[str] = Field(None, alias="paidAt")

    class Config:
        populate_by_name = True
        frozen = True
        extra = "allow"

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["billing_id"] = str(data.get("billing_id", ""))
        data["services"] = data.get("services") or []
        if data.get("consultationFee") is None and data.get("consultation_fee") is None:
            data["consultationFee"] = 0

        status = data.pop("payment_status", data.get("paymentStatus"))
        data["paymentStatus"] = _coerce_enum(status, PaymentStatus, PaymentStatus.PENDING)
        method = data.pop("payment_method", data.get("paymentMethod"))
        data["paymentMethod"] = _coerce_enum(method, PaymentMethod)

        if data.get("totalAmount") is None and data.get("total_amount") is None:
            fee = float(data.get("consultationFee") or data.get("consultation_fee") or 0)
            items = [ServiceItem.model_validate(s) for s in data["services"]]
            data["totalAmount"] = fee + sum(item.line_total for item in items)
        return data

    @property
    def is_outstanding(self) -> bool:
        return self.payment_status in (PaymentStatus.PENDING, PaymentStatus.PARTIAL)

    def settled(self, method: PaymentMethod, paid_at: str) -> "Bill":
        """Copy of this bill marked paid; line items are carried over as-is."""
        return self.model_copy(update={
            "payment_status": PaymentStatus.PAID,
            "payment_method": method,
            "paid_at": paid_at,
        })

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ConsultationPayment(BaseModel):
    """Base consultation fee; amount is fixed when the entry is created."""
    amount: float = Field(0, ge=0)
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, alias="paymentStatus")
    payment_method: Optional[PaymentMethod] = Field(None, alias="paymentMethod")
    consultation_type: Optional[str] = Field(None, alias="consultationType")
    paid_at: Optional[str] = Field(None, alias="paidAt")
    paid_by: Optional[str] = Field(None, alias="paidBy")

    class Config:
        populate_by_name = True
        frozen = True

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["amount"] = data.get("amount") or 0
        status = data.pop("payment_status", data.get("paymentStatus"))
        # a consultation fee is either settled or not
        status = _coerce_enum(status, PaymentStatus, PaymentStatus.PENDING)
        data["paymentStatus"] = PaymentStatus.PAID if status is PaymentStatus.PAID else PaymentStatus.PENDING
        method = data.pop("payment_method", data.get("paymentMethod"))
        data["paymentMethod"] = _coerce_enum(method, PaymentMethod)
        return data

    @property
    def is_outstanding(self) -> bool:
        return self.payment_status is not PaymentStatus.PAID and self.amount > 0


class QueueEntry(BaseModel):
    """One patient's visit on one doctor's queue for one day."""
    id: str = Field(..., alias="_id")
    clinic_id: str = ""
    doctor_id: str
    doctor_name: Optional[str] = None
    visit_date: Optional[str] = Field(None, alias="date")
    time: Optional[str] = None
    patient_name: str
    patient_phone: str = ""
    status: QueueStatus = QueueStatus.WAITING
    position: int = Field(0, alias="user_order_in_queue")
    visit_type: VisitType = VisitType.CONSULTATION
    urgent: bool = False
    referral_source: Optional[str] = None
    created_at: Optional[int] = Field(None, alias="createdAt", description="Epoch milliseconds")
    age: str = ""
    address: str = ""
    consultation_payment: ConsultationPayment = Field(
        default_factory=ConsultationPayment, alias="consultationPayment"
    )
    bills: List[Bill] = []
    # Bills exactly as stored, written back untouched when one of them is settled
    bill_documents: List[Dict[str, Any]] = Field(default_factory=list, exclude=True, repr=False)

    class Config:
        populate_by_name = True
        frozen = True

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("_id") is not None:
            data["_id"] = str(data["_id"])
        elif data.get("id") is not None:
            data["_id"] = str(data.pop("id"))

        position = data.get("user_order_in_queue")
        if position is None:
            position = data.get("position")
        data.pop("position", None)
        data["user_order_in_queue"] = int(position or 0)

        raw_type = data.get("visit_type")
        visit_type = LEGACY_VISIT_TYPES.get(raw_type) if isinstance(raw_type, str) else None
        data["visit_type"] = visit_type or _coerce_enum(raw_type, VisitType, VisitType.CONSULTATION)

        speed = data.pop("visit_speed", None)
        if "urgent" not in data:
            data["urgent"] = isinstance(speed, str) and speed.strip().lower() in URGENT_SPEEDS

        data["status"] = _coerce_enum(data.get("status"), QueueStatus, QueueStatus.WAITING)

        created = data.get("createdAt", data.get("created_at"))
        data.pop("created_at", None)
        data["createdAt"] = _epoch_ms(created)

        for field in ("age", "address", "patient_phone"):
            data[field] = str(data[field]) if data.get(field) is not None else ""
        data["bills"] = data.get("bills") or []
        data["bill_documents"] = [
            bill.to_document() if isinstance(bill, Bill) else copy.deepcopy(bill)
            for bill in data["bills"]
        ]
        data["consultationPayment"] = (
            data.get("consultationPayment") or data.get("consultation_payment") or {}
        )
        data.pop("consultation_payment", None)
        return data

    @property
    def outstanding_bills(self) -> List[Bill]:
        return [bill for bill in self.bills if bill.is_outstanding]

    @property
    def has_unpaid_balance(self) -> bool:
        return self.consultation_payment.is_outstanding or bool(self.outstanding_bills)


class PatientIntake(BaseModel):
    """Walk-in registration at the front desk."""
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=20)
    visit_type: VisitType = VisitType.CONSULTATION
    urgent: bool = False
    referral_source: Optional[str] = None
    fee: Optional[float] = Field(None, ge=0, description="Overrides the doctor's fee schedule")
    age: str = ""
    address: str = ""

    class Config:
        str_strip_whitespace = True


class QueueView(BaseModel):
    """Derived queue state pushed to the screen."""
    kind: Literal["queue"] = "queue"
    scope: Scope
    entries: List[QueueEntry] = []
    current_order: int = 0
    total_waiting: int = 0
    total_finished: int = 0


class ScopeRequest(BaseModel):
    """Select the doctor and day shown on the console."""
    doctor_id: str
    doctor_name: Optional[str] = None
    day: Optional[date] = None  # today when omitted


class StatusUpdateRequest(BaseModel):
    status: QueueStatus


class PaymentRequest(BaseModel):
    method: PaymentMethod
