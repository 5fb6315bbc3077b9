"""
Best-effort propagation to the secondary record store.

Writes run as detached asyncio tasks: the operator flow never awaits them and
their failures never reach queue state. Each write gets a bounded number of
attempts, then is dropped and kept for diagnostics.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional, Set

import httpx

from ..exceptions import SecondaryWriteFailure
from ..models.ledger import FinishedPatientRecord
from ..models.queue import QueueEntry
from .ledger_client import LedgerClient

logger = logging.getLogger(__name__)

SecondaryWrite = Callable[[], Awaitable[None]]


def _describe(error: Optional[Exception]) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return f"{type(error).__name__}: {error}"


@dataclass
class RetryPolicy:
    """Immediate retries, no backoff."""
    max_attempts: int = 2

    async def run(self, operation: str, write: SecondaryWrite) -> int:
        """Run ``write`` until it succeeds; return the attempts used.

        Raises ``SecondaryWriteFailure`` once every attempt has failed.
        """
        error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                await write()
                return attempt
            except httpx.HTTPError as e:
                error = e
                if attempt < self.max_attempts:
                    logger.warning(
                        "%s failed (%s), retrying (%s/%s)",
                        operation, _describe(e), attempt, self.max_attempts
                    )
        raise SecondaryWriteFailure(operation, self.max_attempts, _describe(error))


class DetachedTaskRunner:
    """Owns fire-and-forget secondary writes.

    Only the most recent ``failure_history`` dropped writes are kept.
    """

    def __init__(self, retry_policy: Optional[RetryPolicy] = None, failure_history: int = 100):
        self.retry_policy = retry_policy or RetryPolicy()
        self.failures: Deque[SecondaryWriteFailure] = deque(maxlen=failure_history)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, operation: str, write: SecondaryWrite) -> asyncio.Task:
        task = asyncio.create_task(self._run(operation, write), name=operation)
        # The loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, operation: str, write: SecondaryWrite) -> None:
        try:
            await self.retry_policy.run(operation, write)
        except SecondaryWriteFailure as failure:
            logger.error("Dropping secondary write: %s", failure)
            self.failures.append(failure)
        except Exception:
            logger.exception("Unexpected error in secondary write %s", operation)
            self.failures.append(SecondaryWriteFailure(operation, 0, "unexpected error"))

    async def drain(self) -> None:
        """Wait for every submitted write, including ones submitted meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class ReconciliationClient:
    """Mirrors FINISHED entries to the secondary store's patient list."""

    def __init__(self, ledger: LedgerClient, runner: DetachedTaskRunner, assistant_id: str = ""):
        self.ledger = ledger
        self.runner = runner
        self.assistant_id = assistant_id

    def finished(self, entry: QueueEntry) -> asyncio.Task:
        record = FinishedPatientRecord.from_entry(entry, self.assistant_id)
        return self.runner.submit(
            f"reconcile finished patient {entry.id}",
            lambda: self.ledger.post_finished_patient(record)
        )
