"""Exceptions raised by the device store."""

from decimal import Decimal


class DeviceStoreError(Exception):
    """Base exception for device store errors."""


class CatalogFetchError(DeviceStoreError):
    """Raised when one catalog collection cannot be fetched."""

    def __init__(self, collection: str, reason: str) -> None:
        super().__init__(f"Could not fetch {collection}: {reason}")
        self.collection = collection


class AggregationError(DeviceStoreError):
    """Raised when the catalog cannot be assembled; no partial catalog is kept."""


class DeviceNotFoundError(DeviceStoreError):
    """Raised when a device ID is not in the catalog."""

    def __init__(self, device_id: int) -> None:
        super().__init__(f"Device {device_id} not found")
        self.device_id = device_id


class OptionNotFoundError(DeviceStoreError):
    """Raised when a group or option does not belong to the device."""


class AddOnNotFoundError(DeviceStoreError):
    """Raised when an add-on does not belong to the device."""

    def __init__(self, add_on_id: int) -> None:
        super().__init__(f"Add-on {add_on_id} not available for this device")
        self.add_on_id = add_on_id


class AssemblyError(DeviceStoreError):
    """Raised when a purchase record cannot be built from the selection."""


class StaleTotalError(DeviceStoreError):
    """Raised when the confirmed total no longer matches the current selection."""

    def __init__(self, confirmed: Decimal, current: Decimal) -> None:
        super().__init__(
            f"Price changed since confirmation: confirmed {confirmed}, current {current}"
        )
        self.confirmed = confirmed
        self.current = current


class SubmissionError(DeviceStoreError):
    """Raised when the sale endpoint cannot be reached or rejects the request."""


class SubmissionInProgressError(DeviceStoreError):
    """Raised when a purchase is already being submitted for the session."""
