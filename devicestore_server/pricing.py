"""
Pricing engine.

Every function here is pure: the same device and selection always give the
same price and nothing is mutated or cached. Callers recompute on every read,
because whether an add-on is free depends on the customizations chosen at that
moment, not on when the add-on was switched on.

Prices are Decimals and are never rounded here.
"""

from decimal import Decimal
from typing import Iterable, Mapping

from .models import AddOn, AddOnQuote, Device, Option, PriceQuote

ZERO = Decimal("0")


def customizations_total(selected_options: Mapping[str, Option]) -> Decimal:
    """Sum of the additional prices of the chosen options."""
    return sum((option.additional_price for option in selected_options.values()), ZERO)


def base_plus_customizations(device: Device, selected_options: Mapping[str, Option]) -> Decimal:
    """Device base price plus chosen options; unselected groups add nothing."""
    return device.base_price + customizations_total(selected_options)


def promotion_applies(add_on: AddOn, base_price: Decimal) -> bool:
    """Whether the add-on is free at this base plus customization price (inclusive)."""
    return add_on.has_promotion and base_price >= add_on.free_above


def charged_add_on_price(add_on: AddOn, base_price: Decimal) -> Decimal:
    """Price actually charged for an add-on at this base plus customization price."""
    return ZERO if promotion_applies(add_on, base_price) else add_on.price


def _resolve_add_ons(add_ons: Iterable[AddOn], selected_add_on_ids: Iterable[int]) -> list[AddOn]:
    # Unknown IDs are skipped; repeated IDs count once.
    by_id = {}
    for add_on in add_ons:
        by_id.setdefault(add_on.id, add_on)
    return [by_id[add_on_id] for add_on_id in dict.fromkeys(selected_add_on_ids) if add_on_id in by_id]


def compute_total(
    device: Device,
    add_ons: Iterable[AddOn],
    selected_options: Mapping[str, Option],
    selected_add_on_ids: Iterable[int],
) -> Decimal:
    """
    Compute the final price of a device configuration.

    Args:
        device: Device being configured
        add_ons: Every add-on available for the device
        selected_options: Group name → chosen option
        selected_add_on_ids: IDs of add-ons switched on

    Returns:
        Base price plus chosen options plus the charged price of each selected
        add-on. Add-on IDs not found in ``add_ons`` contribute zero.
    """
    base = base_plus_customizations(device, selected_options)
    charged = (charged_add_on_price(add_on, base) for add_on in _resolve_add_ons(add_ons, selected_add_on_ids))
    return base + sum(charged, ZERO)


def quote(
    device: Device,
    add_ons: Iterable[AddOn],
    selected_options: Mapping[str, Option],
    selected_add_on_ids: Iterable[int],
) -> PriceQuote:
    """Same computation as compute_total, returned as a line-by-line breakdown."""
    options_total = customizations_total(selected_options)
    base = device.base_price + options_total

    lines = [
        AddOnQuote(
            add_on_id=add_on.id,
            name=add_on.name,
            listed_price=add_on.price,
            charged_price=charged_add_on_price(add_on, base),
            promotion_applied=promotion_applies(add_on, base),
        )
        for add_on in _resolve_add_ons(add_ons, selected_add_on_ids)
    ]

    return PriceQuote(
        device_id=device.id,
        currency=device.currency,
        base_price=device.base_price,
        customizations_total=options_total,
        base_plus_customizations=base,
        add_ons=lines,
        total=base + sum((line.charged_price for line in lines), ZERO),
    )
