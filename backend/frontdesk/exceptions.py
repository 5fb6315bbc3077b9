"""
Error taxonomy for the front desk core.
"""

from typing import Optional


class FrontDeskError(Exception):
    """Base class for front desk errors."""


class SubscriptionFault(FrontDeskError):
    """A push stream failed; the whole scope must be re-subscribed."""

    def __init__(self, stream: str, detail: str):
        self.stream = stream
        self.detail = detail
        super().__init__(f"{stream} subscription failed: {detail}")


class WriteRejected(FrontDeskError):
    """A primary store write was rejected. Nothing was applied locally."""

    def __init__(self, detail: str, entry_id: Optional[str] = None):
        self.detail = detail
        self.entry_id = entry_id
        super().__init__(detail)


class SecondaryWriteFailure(FrontDeskError):
    """A best-effort secondary store write failed after its retry."""

    def __init__(self, operation: str, attempts: int, detail: str):
        self.operation = operation
        self.attempts = attempts
        self.detail = detail
        super().__init__(f"{operation} failed after {attempts} attempt(s): {detail}")


class LedgerUnavailable(FrontDeskError):
    """A read from the secondary store failed."""


class ScopeNotSelected(FrontDeskError):
    """An operator action needs a doctor and day to be selected first."""
