import pytest

from frontdesk.services.front_desk import FrontDeskConsole
from frontdesk.services.memory_store import InMemoryQueueStore

from .helpers import CLINIC_ID, LedgerStub


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return InMemoryQueueStore()


@pytest.fixture
def ledger():
    return LedgerStub()


@pytest.fixture
async def console(anyio_backend, store, ledger):
    console = FrontDeskConsole(
        store=store,
        feed=store,
        ledger=ledger.client(),
        clinic_id=CLINIC_ID,
        assistant_id="assistant-1",
    )
    await console.start()
    yield console
    await console.close()
