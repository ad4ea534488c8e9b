"""Catalog aggregation: join raw catalog collections into one view per device."""

import asyncio
import logging
from typing import Iterable

from .client import DeviceStoreClient
from .errors import AggregationError
from .models import AddOn, AggregatedDevice, CustomizationGroup, Device, Feature, Option

logger = logging.getLogger(__name__)


def aggregate_catalog(
    devices: Iterable[Device],
    groups: Iterable[CustomizationGroup],
    options: Iterable[Option],
    add_ons: Iterable[AddOn],
    features: Iterable[Feature],
) -> list[AggregatedDevice]:
    """
    Join catalog collections into one AggregatedDevice per device.

    Source order is preserved everywhere. Options whose group is unknown are
    dropped; groups without options are kept with an empty option list.
    """
    groups = list(groups)
    options = list(options)
    add_ons = list(add_ons)
    features = list(features)

    aggregated = []
    for device in devices:
        device_groups = [
            group.model_copy(update={"options": [o for o in options if o.group_id == group.id]})
            for group in groups
            if group.device_id == device.id
        ]
        aggregated.append(
            AggregatedDevice(
                device=device,
                groups=device_groups,
                add_ons=[add_on for add_on in add_ons if add_on.device_id == device.id],
                features=[feature for feature in features if feature.device_id == device.id],
            )
        )
    return aggregated


class CatalogAssembler:
    """Fetches every catalog collection and aggregates them."""

    def __init__(self, client: DeviceStoreClient) -> None:
        self.client = client

    async def fetch_complete_devices(self) -> list[AggregatedDevice]:
        """
        Fetch and aggregate the whole catalog.

        Raises:
            AggregationError: If any collection fails to load; nothing partial is returned
        """
        tasks = [
            asyncio.ensure_future(fetch)
            for fetch in (
                self.client.fetch_devices(),
                self.client.fetch_customization_groups(),
                self.client.fetch_options(),
                self.client.fetch_add_ons(),
                self.client.fetch_features(),
            )
        ]
        try:
            devices, groups, options, add_ons, features = await asyncio.gather(*tasks)
        except Exception as e:
            for task in tasks:
                task.cancel()
            logger.error(f"Catalog load failed: {e}")
            raise AggregationError(f"Could not load the device catalog: {e}") from e

        logger.info(
            f"Catalog received: {len(devices)} devices, {len(groups)} customizations, "
            f"{len(options)} options, {len(add_ons)} add-ons, {len(features)} features"
        )
        return aggregate_catalog(devices, groups, options, add_ons, features)
