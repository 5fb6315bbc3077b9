"""Pydantic models for the front desk console."""

from .queue import (
    QueueStatus,
    VisitType,
    PaymentStatus,
    PaymentMethod,
    Scope,
    ServiceItem,
    Bill,
    ConsultationPayment,
    QueueEntry,
    PatientIntake,
    QueueView,
    ScopeRequest,
    StatusUpdateRequest,
    PaymentRequest,
)
from .notification import BillAdded, DoctorMessage, SubscriptionFaultNotice
from .ledger import (
    DoctorFeeSchedule,
    FinishedPatientRecord,
    ConsultationBilling,
    BillSettlement,
    VisitHistoryPage,
)

__all__ = [
    # Queue
    "QueueStatus", "VisitType", "PaymentStatus", "PaymentMethod", "Scope",
    "ServiceItem", "Bill", "ConsultationPayment", "QueueEntry", "PatientIntake",
    "QueueView", "ScopeRequest", "StatusUpdateRequest", "PaymentRequest",
    # Notifications
    "BillAdded", "DoctorMessage", "SubscriptionFaultNotice",
    # Ledger
    "DoctorFeeSchedule", "FinishedPatientRecord", "ConsultationBilling",
    "BillSettlement", "VisitHistoryPage",
]
