"""
Payloads exchanged with the secondary record store (history and billing ledger).
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from .queue import SPEED_NORMAL, SPEED_URGENT, Bill, PaymentMethod, QueueEntry, VisitType


class DoctorFeeSchedule(BaseModel):
    """Doctor's configured fees. Display and defaults only."""
    consultation_fee: float = Field(0, alias="consultationFee")
    revisit_fee: float = Field(0, alias="revisitFee")
    advisory_fee: float = Field(0, alias="estisharaFee")
    urgent_fee: float = Field(0, alias="urgentFee")

    class Config:
        populate_by_name = True

    def fee_for(self, visit_type: VisitType, urgent: bool = False) -> float:
        if urgent:
            return self.urgent_fee
        return {
            VisitType.CONSULTATION: self.consultation_fee,
            VisitType.FOLLOW_UP: self.revisit_fee,
            VisitType.ADVISORY: self.advisory_fee,
        }[visit_type]


class FinishedPatientRecord(BaseModel):
    """Denormalized projection of a FINISHED entry for the dashboard."""
    patient_name: str
    patient_phone: str = ""
    patient_id: str
    doctor_id: str
    doctor_name: str = ""
    clinic_id: str
    date: str
    time: str = ""
    status: str = "FINISHED"
    visit_type: str
    visit_speed: str
    age: str = ""
    address: str = ""
    user_order_in_queue: int = 0
    assistant_id: str = ""

    @classmethod
    def from_entry(cls, entry: QueueEntry, assistant_id: str = "") -> "FinishedPatientRecord":
        return cls(
            patient_name=entry.patient_name,
            patient_phone=entry.patient_phone,
            patient_id=entry.id,
            doctor_id=entry.doctor_id,
            doctor_name=entry.doctor_name or "",
            clinic_id=entry.clinic_id,
            date=entry.visit_date or "",
            time=entry.time or "",
            visit_type=entry.visit_type.label,
            visit_speed=SPEED_URGENT if entry.urgent else SPEED_NORMAL,
            age=entry.age,
            address=entry.address,
            user_order_in_queue=entry.position,
            assistant_id=assistant_id,
        )


class ConsultationBilling(BaseModel):
    """Ledger record of a settled consultation fee."""
    doctor_id: str
    patient_id: str
    patient_name: str
    patient_phone: str = ""
    clinic_id: str
    consultation_type: str = Field(..., serialization_alias="consultationType")
    consultation_fee: float = Field(..., serialization_alias="consultationFee")
    payment_method: PaymentMethod = Field(..., serialization_alias="paymentMethod")

    @classmethod
    def from_entry(cls, entry: QueueEntry, method: PaymentMethod) -> "ConsultationBilling":
        payment = entry.consultation_payment
        return cls(
            doctor_id=entry.doctor_id,
            patient_id=entry.id,
            patient_name=entry.patient_name,
            patient_phone=entry.patient_phone,
            clinic_id=entry.clinic_id,
            consultation_type=payment.consultation_type or entry.visit_type.label,
            consultation_fee=payment.amount,
            payment_method=method,
        )


class BillSettlement(BaseModel):
    """Ledger update settling one doctor bill."""
    payment_status: str = Field("paid", serialization_alias="paymentStatus")
    payment_method: PaymentMethod = Field(..., serialization_alias="paymentMethod")
    amount_paid: float = Field(..., serialization_alias="amountPaid")

    @classmethod
    def from_bill(cls, bill: Bill, method: PaymentMethod) -> "BillSettlement":
        return cls(payment_method=method, amount_paid=bill.total_amount)


class VisitHistoryPage(BaseModel):
    """One page of a doctor's visit history."""
    patients: List[Dict[str, Any]] = []
    page: int = 1
    total_pages: int = 1
    total_items: int = 0
