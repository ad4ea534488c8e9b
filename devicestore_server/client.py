"""HTTP client for the device store backend."""

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import Settings
from .errors import CatalogFetchError, SubmissionError
from .models import AddOn, CustomizationGroup, Device, Feature, Option, PurchaseRecord, PurchaseResponse

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DeviceStoreClient:
    """Client for the catalog and sale endpoints of the store backend."""

    DEVICES_PATH = "api/dispositivos/traerDispositivos"
    GROUPS_PATH = "api/personalizacions"
    OPTIONS_PATH = "api/opcions"
    ADD_ONS_PATH = "api/adicionals"
    FEATURES_PATH = "api/caracteristicas"
    SALE_PATH = "api/ventas/vender"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        """
        Initialize the client.

        Args:
            settings: Base URL, credential and timeout
            transport: Optional httpx transport (used to stub the backend)
        """
        self.settings = settings
        headers = {"Accept": "application/json"}
        if settings.token:
            headers["Authorization"] = f"Bearer {settings.token}"

        self.client = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "DeviceStoreClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _fetch_list(self, collection: str, path: str, model: type[ModelT]) -> list[ModelT]:
        """GET a JSON array and parse every element as ``model``."""
        logger.info(f"Fetching {collection} from {path}")
        try:
            response = await self.client.get(path)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogFetchError(collection, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise CatalogFetchError(collection, str(e)) from e

        if not isinstance(data, list):
            raise CatalogFetchError(collection, "expected a JSON array")

        try:
            items = [model.model_validate(item) for item in data]
        except ValidationError as e:
            raise CatalogFetchError(collection, f"invalid record: {e}") from e

        logger.info(f"Received {len(items)} {collection}")
        return items

    async def fetch_devices(self) -> list[Device]:
        return await self._fetch_list("devices", self.DEVICES_PATH, Device)

    async def fetch_customization_groups(self) -> list[CustomizationGroup]:
        return await self._fetch_list("customization groups", self.GROUPS_PATH, CustomizationGroup)

    async def fetch_options(self) -> list[Option]:
        return await self._fetch_list("options", self.OPTIONS_PATH, Option)

    async def fetch_add_ons(self) -> list[AddOn]:
        return await self._fetch_list("add-ons", self.ADD_ONS_PATH, AddOn)

    async def fetch_features(self) -> list[Feature]:
        return await self._fetch_list("features", self.FEATURES_PATH, Feature)

    async def submit_purchase(self, record: PurchaseRecord) -> PurchaseResponse:
        """
        Submit a sale. Single attempt, never retried.

        Args:
            record: Fully assembled purchase record

        Returns:
            The backend's response; an empty successful body counts as success

        Raises:
            SubmissionError: If the backend is unreachable or answers with an error status
        """
        logger.info(f"=== SUBMIT PURCHASE: device_id={record.device_id}, total={record.total} ===")

        try:
            response = await self.client.post(self.SALE_PATH, json=record.to_payload())
        except httpx.HTTPError as e:
            logger.error(f"Purchase request failed: {e}")
            raise SubmissionError(f"Could not complete the purchase: {e}") from e

        logger.info(f"Sale response: status={response.status_code}")
        if response.is_error:
            raise SubmissionError(
                f"Could not complete the purchase: server answered {response.status_code}"
            )

        if not response.content:
            return PurchaseResponse(success=True)

        try:
            return PurchaseResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.warning(f"Unexpected sale response body: {response.text[:200]}")
            return PurchaseResponse(success=True)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
