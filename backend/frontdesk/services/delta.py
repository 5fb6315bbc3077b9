"""
Snapshot-to-snapshot change detection and notification de-duplication.
"""

from typing import Hashable, Iterable, List, Mapping, Optional, Set

from ..models.notification import BillAdded
from ..models.queue import PaymentStatus, QueueEntry


def detect_bill_additions(
    baseline: Optional[Mapping[str, QueueEntry]],
    current: Iterable[QueueEntry],
) -> List[BillAdded]:
    """Pending bills appended since ``baseline``.

    Only entries already present in the baseline are compared, so the first
    snapshot of a scope (no baseline) and entries seen for the first time
    never produce events.
    """
    if baseline is None:
        return []

    events = []
    for entry in current:
        previous = baseline.get(entry.id)
        if previous is None:
            continue
        for index in range(len(previous.bills), len(entry.bills)):
            bill = entry.bills[index]
            if bill.payment_status is not PaymentStatus.PENDING:
                continue
            events.append(BillAdded(
                entry_id=entry.id,
                bill_index=index,
                patient_name=entry.patient_name,
                bill=bill,
            ))
    return events


class SeenSet:
    """Source identities already shown to the operator this session.

    Never evicted: its size is bounded by one day's patient volume.
    """

    def __init__(self):
        self._seen: Set[Hashable] = set()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def first_sight(self, key: Hashable) -> bool:
        """Record ``key``; True only the first time it is offered."""
        if key in self._seen:
            return False
        self._seen.add(key)
        return True
