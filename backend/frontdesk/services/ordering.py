"""
Queue ordering policy.
"""

from typing import Iterable, List, Tuple

from ..models.queue import QueueEntry


def ordering_key(entry: QueueEntry) -> Tuple[int, int, int, str]:
    """Sort key: creation time first; legacy entries without one go last, by position.

    Entries created within the same millisecond keep their position order.
    """
    if entry.created_at is not None:
        return (0, entry.created_at, entry.position, entry.id)
    return (1, 0, entry.position, entry.id)


def order_entries(entries: Iterable[QueueEntry]) -> List[QueueEntry]:
    """Return the entries of one snapshot in display/serving order."""
    return sorted(entries, key=ordering_key)
