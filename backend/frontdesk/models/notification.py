"""
Operator notifications raised by the queue synchronizer.
"""

from datetime import datetime
from typing import Any, Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from .queue import Bill, Scope

DEFAULT_MESSAGE = "You have a new notification from the doctor"
DEFAULT_DOCTOR_NAME = "Doctor"


class BillAdded(BaseModel):
    """A pending bill appended to a known queue entry."""
    kind: Literal["bill_added"] = "bill_added"
    entry_id: str
    bill_index: int
    patient_name: str
    bill: Bill

    @property
    def key(self) -> Tuple[str, ...]:
        return ("bill", self.entry_id, str(self.bill_index))


class DoctorMessage(BaseModel):
    """A "notify assistant" message sent by a doctor."""
    kind: Literal["doctor_message"] = "doctor_message"
    id: str = Field(..., alias="_id")
    message: str = DEFAULT_MESSAGE
    doctor_name: str = DEFAULT_DOCTOR_NAME
    type: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("_id") is None and data.get("id") is not None:
            data["_id"] = data.pop("id")
        if data.get("_id") is not None:
            data["_id"] = str(data["_id"])
        data["message"] = data.get("message") or DEFAULT_MESSAGE
        data["doctor_name"] = data.get("doctor_name") or DEFAULT_DOCTOR_NAME
        data["read"] = data.get("read") is True
        return data

    @property
    def is_billing(self) -> bool:
        return self.type == "billing"

    @property
    def key(self) -> Tuple[str, ...]:
        return ("message", self.id)


class SubscriptionFaultNotice(BaseModel):
    """Pushed when a stream fails.

    A failed entries or pointer stream withdraws the queue; a failed message
    stream only stops doctor messages. Both last until resubscribed.
    """
    kind: Literal["fault"] = "fault"
    scope: Optional[Scope] = None
    stream: str
    detail: str
