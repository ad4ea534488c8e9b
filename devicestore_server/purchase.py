"""Purchase assembly: turn a configured device into a submittable sale."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from .errors import AssemblyError, StaleTotalError
from .models import AddOnCharge, AggregatedDevice, GroupCharge, PurchaseRecord
from .pricing import base_plus_customizations, charged_add_on_price, compute_total
from .selection import SelectionState

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(moment: datetime) -> str:
    """Format a moment as UTC with second precision and a literal Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def assemble_purchase(
    aggregated: AggregatedDevice,
    selection: SelectionState,
    total: Decimal,
    now: Optional[datetime] = None,
) -> PurchaseRecord:
    """
    Build the purchase record for a device configuration.

    Every customization group of the device gets a charge: the user's choice
    if there is one, otherwise the group's first option. Add-on charges follow
    the same promotion rule as the pricing engine.

    Args:
        aggregated: Device with its groups and add-ons
        selection: Current choices for the device
        total: Total the user confirmed, as computed by the pricing engine
        now: Sale moment (default: current UTC time)

    Returns:
        Immutable purchase record carrying ``total`` unrounded

    Raises:
        AssemblyError: If a group has no option to fall back to, or a selected
            add-on is not offered for the device
        StaleTotalError: If ``total`` no longer matches the current selection
    """
    device = aggregated.device
    selected_options = selection.selected_options
    selected_add_on_ids = selection.selected_add_on_ids

    current_total = compute_total(device, aggregated.add_ons, selected_options, selected_add_on_ids)
    if current_total != total:
        raise StaleTotalError(confirmed=total, current=current_total)

    customizations = []
    for group in aggregated.groups:
        option = selected_options.get(group.name)
        if option is None:
            if not group.options:
                raise AssemblyError(f"Customization '{group.name}' has no options to choose from")
            option = group.options[0]
            if option.additional_price:
                logger.warning(
                    f"Defaulting '{group.name}' to '{option.name}' (+{option.additional_price}), "
                    "which is not part of the confirmed total"
                )
        customizations.append(
            GroupCharge(group_id=group.id, option_id=option.id, price=option.additional_price)
        )

    base = base_plus_customizations(device, selected_options)
    add_ons = []
    for add_on_id in selected_add_on_ids:
        add_on = aggregated.add_on_by_id(add_on_id)
        if add_on is None:
            raise AssemblyError(f"Add-on {add_on_id} is not offered for {device.name}")
        add_ons.append(AddOnCharge(add_on_id=add_on.id, price=charged_add_on_price(add_on, base)))

    record = PurchaseRecord(
        device_id=device.id,
        customizations=customizations,
        add_ons=add_ons,
        total=total,
        sold_at=format_timestamp(now or datetime.now(timezone.utc)),
    )
    logger.info(
        f"Assembled purchase for device {device.id}: {len(customizations)} customization(s), "
        f"{len(add_ons)} add-on(s), total={total}"
    )
    return record
