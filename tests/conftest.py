import json
from decimal import Decimal

import httpx
import pytest

from devicestore_server.client import DeviceStoreClient
from devicestore_server.config import Settings
from devicestore_server.models import (
    AddOn,
    AggregatedDevice,
    CustomizationGroup,
    Device,
    Feature,
    Option,
)


# =============================================================================
# Catalog objects: base 100 USD, Color (Red +0 / Blue +20), Warranty 15 free from 110
# =============================================================================

@pytest.fixture
def device():
    return Device(id=1, name="Phone X", description="Flagship phone", base_price=Decimal("100"), currency="USD")


@pytest.fixture
def red():
    return Option(id=101, name="Red", additional_price=Decimal("0"), group_id=10)


@pytest.fixture
def blue():
    return Option(id=102, name="Blue", additional_price=Decimal("20"), group_id=10)


@pytest.fixture
def color_group(red, blue):
    return CustomizationGroup(id=10, name="Color", device_id=1, options=[red, blue])


@pytest.fixture
def warranty():
    return AddOn(id=5, name="Warranty", price=Decimal("15"), free_above=Decimal("110"), device_id=1)


@pytest.fixture
def case():
    """Add-on without promotion."""
    return AddOn(id=6, name="Case", price=Decimal("8"), device_id=1)


@pytest.fixture
def aggregated(device, color_group, warranty, case):
    return AggregatedDevice(
        device=device,
        groups=[color_group],
        add_ons=[warranty, case],
        features=[Feature(id=1, name="Screen", description="6 inch", device_id=1)],
    )


# =============================================================================
# Stub backend speaking the catalog wire format
# =============================================================================

DEVICE_1 = {"id": 1, "nombre": "Phone X", "descripcion": "Flagship phone", "precioBase": 100.0, "moneda": "USD"}
DEVICE_2 = {"id": 2, "nombre": "Tablet Y", "descripcion": "Big screen", "precioBase": 300.0, "moneda": "USD"}

COLOR = {"id": 10, "nombre": "Color", "descripcion": "Body color", "dispositivo": DEVICE_1}
STORAGE = {"id": 20, "nombre": "Storage", "descripcion": "Disk size", "dispositivo": DEVICE_2}

CATALOG = {
    "/api/dispositivos/traerDispositivos": [DEVICE_1, DEVICE_2],
    "/api/personalizacions": [COLOR, STORAGE],
    "/api/opcions": [
        {"id": 101, "nombre": "Red", "descripcion": "", "precioAdicional": 0.0, "personalizacion": COLOR},
        {"id": 102, "nombre": "Blue", "descripcion": "", "precioAdicional": 20.0, "personalizacion": COLOR},
        {"id": 999, "nombre": "Orphan", "descripcion": "", "precioAdicional": 5.0, "personalizacion": {"id": 77}},
        {"id": 998, "nombre": "Loose", "descripcion": "", "precioAdicional": 1.0, "personalizacion": None},
    ],
    "/api/adicionals": [
        {"id": 5, "nombre": "Warranty", "descripcion": "2 years", "precio": 15.0, "precioGratis": 110.0, "dispositivo": DEVICE_1},
        {"id": 6, "nombre": "Case", "descripcion": "Leather", "precio": 8.0, "precioGratis": -1.0, "dispositivo": DEVICE_1},
    ],
    "/api/caracteristicas": [
        {"id": 1, "nombre": "Screen", "descripcion": "6 inch", "dispositivo": DEVICE_1},
    ],
}


class StubBackend:
    """Records requests and answers from the in-memory catalog."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.failing_paths: set[str] = set()
        self.sale_status = 200
        self.sale_body = {"success": True, "message": "Venta registrada"}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failing_paths:
            return httpx.Response(500, json={"error": "boom"})

        if request.method == "GET" and path in CATALOG:
            return httpx.Response(200, json=CATALOG[path])

        if request.method == "POST" and path == "/api/ventas/vender":
            if self.sale_body is None:
                return httpx.Response(self.sale_status)
            return httpx.Response(self.sale_status, json=self.sale_body)

        return httpx.Response(404)

    @property
    def sales(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == "/api/ventas/vender"]


@pytest.fixture
def settings():
    return Settings(base_url="http://store.test/", token="secret-token", timeout=5)


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def client(settings, backend):
    return DeviceStoreClient(settings, transport=httpx.MockTransport(backend))
