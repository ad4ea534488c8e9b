"""Store facade shared by the MCP and HTTP servers."""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from .catalog import CatalogAssembler
from .client import DeviceStoreClient
from .errors import DeviceNotFoundError
from .models import AggregatedDevice, PurchaseResponse
from .session import DeviceSession

logger = logging.getLogger(__name__)


class StoreService:
    """Holds the loaded catalog and one configuration session per device."""

    def __init__(self, client: DeviceStoreClient) -> None:
        self.client = client
        self.assembler = CatalogAssembler(client)
        self._catalog: Optional[list[AggregatedDevice]] = None
        self._sessions: dict[int, DeviceSession] = {}
        self._catalog_lock = asyncio.Lock()

    async def load_catalog(self, refresh: bool = False) -> list[AggregatedDevice]:
        """
        Return the aggregated catalog, fetching it on first use or when asked.

        Concurrent callers share a single fetch. A failed refresh raises
        AggregationError and keeps the previous catalog and sessions. A
        successful refresh ends every open session.
        """
        if self._catalog is not None and not refresh:
            return self._catalog

        async with self._catalog_lock:
            if self._catalog is None or refresh:
                catalog = await self.assembler.fetch_complete_devices()
                if refresh:
                    self._sessions.clear()
                self._catalog = catalog
                logger.info(f"Catalog loaded with {len(catalog)} device(s)")
            return self._catalog

    async def get_device(self, device_id: int) -> AggregatedDevice:
        for aggregated in await self.load_catalog():
            if aggregated.device.id == device_id:
                return aggregated
        raise DeviceNotFoundError(device_id)

    async def open_session(self, device_id: int) -> DeviceSession:
        """Return the configuration session for a device, starting one if needed."""
        session = self._sessions.get(device_id)
        if session is None:
            aggregated = await self.get_device(device_id)
            # another caller may have opened it while the catalog was loading
            session = self._sessions.get(device_id)
            if session is not None:
                return session
            session = DeviceSession(aggregated)
            self._sessions[device_id] = session
            logger.info(f"Opened configuration session for device {device_id}")
        return session

    def close_session(self, device_id: int) -> None:
        if self._sessions.pop(device_id, None) is not None:
            logger.info(f"Closed configuration session for device {device_id}")

    async def purchase(
        self, device_id: int, confirmed_total: Optional[Decimal] = None
    ) -> PurchaseResponse:
        """Submit the current configuration of a device; a completed sale ends the session."""
        session = await self.open_session(device_id)
        response = await session.purchase(self.client.submit_purchase, confirmed_total=confirmed_total)
        # a refresh while the sale was in flight may have replaced the session
        if response.success and self._sessions.get(device_id) is session:
            self.close_session(device_id)
        return response

    async def close(self) -> None:
        self._sessions.clear()
        await self.client.close()
