import asyncio
from decimal import Decimal

import pytest

from devicestore_server.errors import AggregationError, DeviceNotFoundError, SubmissionError
from devicestore_server.models import PurchaseResponse
from devicestore_server.service import StoreService


@pytest.fixture
def store(client):
    return StoreService(client)


class TestCatalog:

    def test_catalog_is_loaded_once(self, store, backend):
        asyncio.run(store.load_catalog())
        asyncio.run(store.load_catalog())
        assert len(backend.requests) == 5

        asyncio.run(store.load_catalog(refresh=True))
        assert len(backend.requests) == 10

    def test_failed_refresh_keeps_previous_catalog(self, store, backend):
        catalog = asyncio.run(store.load_catalog())
        backend.failing_paths.add("/api/caracteristicas")

        with pytest.raises(AggregationError):
            asyncio.run(store.load_catalog(refresh=True))

        assert asyncio.run(store.load_catalog()) is catalog

    def test_unknown_device(self, store):
        with pytest.raises(DeviceNotFoundError):
            asyncio.run(store.get_device(42))


class TestSessions:

    def test_session_is_reused(self, store):
        first = asyncio.run(store.open_session(1))
        assert asyncio.run(store.open_session(1)) is first
        assert asyncio.run(store.open_session(2)) is not first

    def test_refresh_ends_sessions(self, store):
        first = asyncio.run(store.open_session(1))
        asyncio.run(store.load_catalog(refresh=True))
        assert asyncio.run(store.open_session(1)) is not first

    def test_successful_purchase_closes_session(self, store, backend):
        session = asyncio.run(store.open_session(1))
        session.select_option("Color", 102)
        session.set_add_on(5, True)

        response = asyncio.run(store.purchase(1, confirmed_total=Decimal("120")))

        assert response.success
        sale = backend.sales[0]
        assert sale["idDispositivo"] == 1
        assert sale["precioFinal"] == 120.0
        assert sale["adicionales"] == [{"id": 5, "precio": 0.0}]
        assert asyncio.run(store.open_session(1)) is not session

    def test_failed_purchase_keeps_session(self, store, backend):
        session = asyncio.run(store.open_session(1))
        session.select_option("Color", 102)
        backend.sale_status = 500

        with pytest.raises(SubmissionError):
            asyncio.run(store.purchase(1))

        assert asyncio.run(store.open_session(1)) is session
        assert session.total() == Decimal("120")


class SlowAssembler:
    """Assembler double that takes a moment to answer and counts fetches."""

    def __init__(self, catalog):
        self.catalog = catalog
        self.calls = 0

    async def fetch_complete_devices(self):
        self.calls += 1
        await asyncio.sleep(0.01)
        return self.catalog


class HeldSubmitter:
    """Client double whose sale stays in flight until released."""

    def __init__(self):
        self.release = asyncio.Event()

    async def submit_purchase(self, record):
        await self.release.wait()
        return PurchaseResponse(success=True, message="ok")

    async def close(self):
        pass


class TestConcurrency:

    def test_concurrent_first_load_keeps_open_session(self, store, aggregated, blue):
        assembler = SlowAssembler([aggregated])
        store.assembler = assembler

        async def configure():
            session = await store.open_session(1)
            session.select_option("Color", blue.id)
            await asyncio.sleep(0.05)
            return await store.open_session(1)

        async def browse():
            await asyncio.sleep(0)
            return await store.load_catalog()

        async def scenario():
            session, _ = await asyncio.gather(configure(), browse())
            return session

        session = asyncio.run(scenario())

        assert assembler.calls == 1
        assert session.selection.selected_options["Color"] == blue
        assert session.total() == Decimal("120")

    def test_concurrent_open_session_returns_one_session(self, store, aggregated):
        store.assembler = SlowAssembler([aggregated])

        async def scenario():
            return await asyncio.gather(store.open_session(1), store.open_session(1))

        first, second = asyncio.run(scenario())

        assert first is second

    def test_refresh_during_purchase_keeps_new_session(self, aggregated, blue):
        submitter = HeldSubmitter()
        store = StoreService(submitter)
        store.assembler = SlowAssembler([aggregated])

        async def scenario():
            session = await store.open_session(1)
            buying = asyncio.create_task(store.purchase(1))
            await asyncio.sleep(0)

            await store.load_catalog(refresh=True)
            fresh = await store.open_session(1)
            fresh.select_option("Color", blue.id)

            submitter.release.set()
            response = await buying
            return session, fresh, response

        session, fresh, response = asyncio.run(scenario())

        assert response.success
        assert fresh is not session
        assert asyncio.run(store.open_session(1)) is fresh
        assert fresh.total() == Decimal("120")
