import json

import httpx
import pytest

from frontdesk.exceptions import SecondaryWriteFailure
from frontdesk.models.queue import QueueEntry
from frontdesk.services.reconciliation import (
    DetachedTaskRunner,
    ReconciliationClient,
    RetryPolicy,
)

from .helpers import BASE_TIME, entry_doc

pytestmark = pytest.mark.anyio


class FlakyWrite:
    """Write that fails its first ``failures`` calls."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            request = httpx.Request("POST", "http://ledger.test/api/patients")
            raise httpx.HTTPStatusError(
                "server error", request=request, response=httpx.Response(500, request=request)
            )


async def test_retry_policy_succeeds_first_time():
    write = FlakyWrite(failures=0)

    assert await RetryPolicy().run("write", write) == 1
    assert write.calls == 1


async def test_retry_policy_retries_once():
    write = FlakyWrite(failures=1)

    assert await RetryPolicy().run("write", write) == 2
    assert write.calls == 2


async def test_retry_policy_gives_up_after_two_attempts():
    write = FlakyWrite(failures=5)

    with pytest.raises(SecondaryWriteFailure) as excinfo:
        await RetryPolicy().run("write", write)

    assert write.calls == 2
    assert excinfo.value.attempts == 2
    assert "HTTP 500" in excinfo.value.detail


async def test_runner_swallows_and_records_failures():
    runner = DetachedTaskRunner()
    write = FlakyWrite(failures=5)

    task = runner.submit("write", write)
    await runner.drain()

    assert task.done() and task.exception() is None
    assert runner.pending == 0
    assert [f.operation for f in runner.failures] == ["write"]


async def test_runner_records_unexpected_errors():
    runner = DetachedTaskRunner()

    async def broken():
        raise KeyError("boom")

    runner.submit("broken write", broken)
    await runner.drain()

    assert len(runner.failures) == 1
    assert runner.failures[0].attempts == 0


async def test_runner_keeps_only_recent_failures():
    runner = DetachedTaskRunner(failure_history=2)

    for name in ("first", "second", "third"):
        runner.submit(name, FlakyWrite(failures=5))
    await runner.drain()

    assert [f.operation for f in runner.failures] == ["second", "third"]


async def test_finished_patient_always_failing_endpoint(ledger):
    ledger.write_status = 503
    runner = DetachedTaskRunner()
    client = ReconciliationClient(ledger.client(), runner, assistant_id="assistant-1")
    entry = QueueEntry.model_validate(
        entry_doc("e1", 3, BASE_TIME, status="FINISHED", doctor_name="Dr. Salem")
    )

    client.finished(entry)
    await runner.drain()

    posts = ledger.calls("POST", "/patients")
    assert len(posts) == 2
    assert len(runner.failures) == 1
    body = json.loads(posts[0].content)
    assert body["patient_id"] == "e1"
    assert body["user_order_in_queue"] == 3
    assert body["doctor_name"] == "Dr. Salem"
    assert body["assistant_id"] == "assistant-1"
    assert body["visit_type"] == "كشف"
    assert body["visit_speed"] == "عادي"


async def test_finished_patient_network_error_is_retried(ledger):
    ledger.network_down = True
    runner = DetachedTaskRunner()
    client = ReconciliationClient(ledger.client(), runner)
    entry = QueueEntry.model_validate(entry_doc("e1", 1, BASE_TIME, status="FINISHED"))

    client.finished(entry)
    await runner.drain()

    assert len(ledger.calls("POST", "/patients")) == 2
    assert "ConnectError" in runner.failures[0].detail
