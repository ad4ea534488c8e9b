"""Device configuration session: selection, live pricing and purchase."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from .errors import AddOnNotFoundError, OptionNotFoundError, SubmissionInProgressError
from .models import AggregatedDevice, Option, PriceQuote, PurchaseRecord, PurchaseResponse
from .pricing import compute_total, quote
from .purchase import assemble_purchase
from .selection import SelectionState

logger = logging.getLogger(__name__)

Submitter = Callable[[PurchaseRecord], Awaitable[PurchaseResponse]]


class DeviceSession:
    """
    One in-progress configuration of a device.

    The session owns its SelectionState exclusively and checks every choice
    against the device before recording it. Prices are recomputed from the
    current selection on every read.
    """

    def __init__(self, aggregated: AggregatedDevice) -> None:
        self.aggregated = aggregated
        self.selection = SelectionState()
        self._submitting = False

    @property
    def device_id(self) -> int:
        return self.aggregated.device.id

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    def select_option(self, group_name: str, option_id: int) -> Option:
        """
        Choose an option of a customization group.

        Raises:
            OptionNotFoundError: If the group or option is not part of the device
        """
        group = self.aggregated.group_by_name(group_name)
        if group is None:
            raise OptionNotFoundError(
                f"'{self.aggregated.device.name}' has no customization named '{group_name}'"
            )
        option = group.option_by_id(option_id)
        if option is None:
            raise OptionNotFoundError(f"Option {option_id} is not part of '{group_name}'")

        self.selection.select_option(group_name, option)
        logger.info(f"Device {self.device_id}: {group_name} → {option.name}")
        return option

    def clear_option(self, group_name: str) -> None:
        self.selection.clear_option(group_name)

    def _check_add_on(self, add_on_id: int) -> None:
        if self.aggregated.add_on_by_id(add_on_id) is None:
            raise AddOnNotFoundError(add_on_id)

    def set_add_on(self, add_on_id: int, selected: bool) -> None:
        self._check_add_on(add_on_id)
        self.selection.set_add_on(add_on_id, selected)

    def toggle_add_on(self, add_on_id: int) -> bool:
        self._check_add_on(add_on_id)
        return self.selection.toggle_add_on(add_on_id)

    def reset(self) -> None:
        self.selection.clear()

    def total(self) -> Decimal:
        """Current total, recomputed from the selection."""
        return compute_total(
            self.aggregated.device,
            self.aggregated.add_ons,
            self.selection.selected_options,
            self.selection.selected_add_on_ids,
        )

    def quote(self) -> PriceQuote:
        """Current price breakdown, recomputed from the selection."""
        return quote(
            self.aggregated.device,
            self.aggregated.add_ons,
            self.selection.selected_options,
            self.selection.selected_add_on_ids,
        )

    async def purchase(
        self,
        submit: Submitter,
        confirmed_total: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> PurchaseResponse:
        """
        Assemble the sale and hand it to ``submit``.

        The record is fully built before ``submit`` is awaited. The selection
        is discarded only when the backend reports success; errors and
        cancellation leave it untouched so the user can retry.

        Args:
            submit: Coroutine function that sends the record
            confirmed_total: Total shown to the user (default: the current total)
            now: Sale moment (default: current UTC time)

        Raises:
            SubmissionInProgressError: If a purchase is already being submitted
            AssemblyError: If the record cannot be built
            StaleTotalError: If ``confirmed_total`` no longer matches the selection
            SubmissionError: If the backend cannot take the sale
        """
        if self._submitting:
            raise SubmissionInProgressError(
                f"A purchase for device {self.device_id} is already being submitted"
            )

        total = self.total() if confirmed_total is None else confirmed_total
        record = assemble_purchase(self.aggregated, self.selection, total, now=now)

        self._submitting = True
        try:
            response = await submit(record)
        finally:
            self._submitting = False

        if response.success:
            logger.info(f"Purchase of device {self.device_id} completed")
            self.selection.clear()
        else:
            logger.warning(f"Purchase of device {self.device_id} rejected: {response.message}")
        return response
