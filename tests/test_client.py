import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from devicestore_server.client import DeviceStoreClient
from devicestore_server.config import Settings
from devicestore_server.errors import CatalogFetchError, SubmissionError
from devicestore_server.models import GroupCharge, NO_PROMOTION, PurchaseRecord


@pytest.fixture
def record():
    return PurchaseRecord(
        device_id=1,
        customizations=[GroupCharge(group_id=10, option_id=102, price=Decimal("20"))],
        add_ons=[],
        total=Decimal("120"),
        sold_at="2026-10-19T14:05:09Z",
    )


class TestCatalogFetch:

    def test_sends_bearer_token(self, client, backend):
        asyncio.run(client.fetch_devices())

        request = backend.requests[0]
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.url == "http://store.test/api/dispositivos/traerDispositivos"

    def test_no_token_no_header(self, backend):
        client = DeviceStoreClient(Settings(base_url="http://store.test/"), transport=httpx.MockTransport(backend))

        asyncio.run(client.fetch_devices())

        assert "Authorization" not in backend.requests[0].headers

    def test_parses_wire_format(self, client):
        devices = asyncio.run(client.fetch_devices())
        assert devices[0].name == "Phone X"
        assert devices[0].base_price == Decimal("100")
        assert devices[0].currency == "USD"

        groups = asyncio.run(client.fetch_customization_groups())
        assert [(g.id, g.device_id) for g in groups] == [(10, 1), (20, 2)]

        options = asyncio.run(client.fetch_options())
        assert [o.group_id for o in options] == [10, 10, 77, None]
        assert options[1].additional_price == Decimal("20")

        add_ons = asyncio.run(client.fetch_add_ons())
        assert add_ons[0].free_above == Decimal("110")
        assert add_ons[1].free_above == NO_PROMOTION
        assert not add_ons[1].has_promotion

        features = asyncio.run(client.fetch_features())
        assert features[0].device_id == 1

    def test_error_status(self, client, backend):
        backend.failing_paths.add("/api/adicionals")

        with pytest.raises(CatalogFetchError) as exc_info:
            asyncio.run(client.fetch_add_ons())

        assert exc_info.value.collection == "add-ons"
        assert "500" in str(exc_info.value)

    def test_not_a_list(self, settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []}))
        client = DeviceStoreClient(settings, transport=transport)

        with pytest.raises(CatalogFetchError, match="JSON array"):
            asyncio.run(client.fetch_features())

    def test_invalid_record(self, settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[{"id": 1}]))
        client = DeviceStoreClient(settings, transport=transport)

        with pytest.raises(CatalogFetchError, match="invalid record"):
            asyncio.run(client.fetch_devices())

    def test_transport_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = DeviceStoreClient(settings, transport=httpx.MockTransport(handler))

        with pytest.raises(CatalogFetchError, match="connection refused"):
            asyncio.run(client.fetch_options())


class TestSubmitPurchase:

    def test_posts_sale_payload(self, client, backend, record):
        response = asyncio.run(client.submit_purchase(record))

        assert response.success
        assert response.message == "Venta registrada"
        assert backend.sales == [record.to_payload()]
        assert backend.requests[0].method == "POST"

    def test_reported_failure(self, client, backend, record):
        backend.sale_body = {"success": False, "message": "Sin stock"}

        response = asyncio.run(client.submit_purchase(record))

        assert not response.success
        assert response.message == "Sin stock"

    def test_empty_body_is_success(self, client, backend, record):
        backend.sale_body = None

        assert asyncio.run(client.submit_purchase(record)).success

    def test_error_status(self, client, backend, record):
        backend.sale_status = 503

        with pytest.raises(SubmissionError, match="503"):
            asyncio.run(client.submit_purchase(record))

    def test_single_attempt(self, settings, record):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        client = DeviceStoreClient(settings, transport=httpx.MockTransport(handler))

        with pytest.raises(SubmissionError):
            asyncio.run(client.submit_purchase(record))

        assert len(calls) == 1

    def test_async_context_manager(self, settings, backend, record):
        async def scenario():
            async with DeviceStoreClient(settings, transport=httpx.MockTransport(backend)) as client:
                await client.submit_purchase(record)
            return client

        client = asyncio.run(scenario())

        assert client.client.is_closed
        assert json.loads(backend.requests[0].content)["precioFinal"] == 120.0
