"""Data models for the device store catalog and sales."""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# precioGratis value meaning "this add-on never becomes free"
NO_PROMOTION = Decimal("-1")


def _reference_id(value: Any) -> Any:
    """Reduce a nested catalog reference ({"id": 1, ...}) to its id."""
    if isinstance(value, dict):
        return value.get("id")
    if isinstance(value, BaseModel):
        return getattr(value, "id", None)
    return value


class CatalogModel(BaseModel):
    """Base for immutable catalog records; accepts wire aliases or field names."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SaleModel(BaseModel):
    """Base for immutable sale records."""

    model_config = ConfigDict(frozen=True)


class Device(CatalogModel):
    """A purchasable device with a base price."""

    id: int = Field(description="Device ID")
    name: str = Field(alias="nombre", description="Device name")
    description: str = Field("", alias="descripcion", description="Device description")
    base_price: Decimal = Field(alias="precioBase", description="Base price before customization")
    currency: str = Field(alias="moneda", description="Currency code")


class Option(CatalogModel):
    """One choice within a customization group."""

    id: int = Field(description="Option ID")
    name: str = Field(alias="nombre", description="Option name")
    description: str = Field("", alias="descripcion", description="Option description")
    additional_price: Decimal = Field(
        Decimal("0"), alias="precioAdicional", description="Price added on top of the base price"
    )
    group_id: Optional[int] = Field(
        None, alias="personalizacion", description="Owning customization group ID"
    )

    @field_validator("group_id", mode="before")
    @classmethod
    def _group_reference(cls, value: Any) -> Any:
        return _reference_id(value)


class CustomizationGroup(CatalogModel):
    """A named set of mutually exclusive options attached to a device."""

    id: int = Field(description="Customization group ID")
    name: str = Field(alias="nombre", description="Group name, e.g. Color")
    description: str = Field("", alias="descripcion", description="Group description")
    device_id: int = Field(alias="dispositivo", description="Owning device ID")
    options: list[Option] = Field(default_factory=list, alias="opciones", description="Ordered options")

    @field_validator("device_id", mode="before")
    @classmethod
    def _device_reference(cls, value: Any) -> Any:
        return _reference_id(value)

    def option_by_id(self, option_id: int) -> Optional[Option]:
        """Find an option of this group by ID."""
        return next((option for option in self.options if option.id == option_id), None)


class AddOn(CatalogModel):
    """An optional extra for a device, possibly free above a price threshold."""

    id: int = Field(description="Add-on ID")
    name: str = Field(alias="nombre", description="Add-on name")
    description: str = Field("", alias="descripcion", description="Add-on description")
    price: Decimal = Field(alias="precio", description="Listed price")
    free_above: Decimal = Field(
        NO_PROMOTION,
        alias="precioGratis",
        description="Base plus customization price from which the add-on is free (-1: never)",
    )
    device_id: int = Field(alias="dispositivo", description="Owning device ID")

    @field_validator("free_above", mode="before")
    @classmethod
    def _missing_threshold(cls, value: Any) -> Any:
        return NO_PROMOTION if value is None else value

    @field_validator("device_id", mode="before")
    @classmethod
    def _device_reference(cls, value: Any) -> Any:
        return _reference_id(value)

    @property
    def has_promotion(self) -> bool:
        """Whether this add-on carries a free-above-threshold promotion."""
        return self.free_above != NO_PROMOTION


class Feature(CatalogModel):
    """A display-only device characteristic."""

    id: int
    name: str = Field(alias="nombre")
    description: str = Field("", alias="descripcion")
    device_id: int = Field(alias="dispositivo")

    @field_validator("device_id", mode="before")
    @classmethod
    def _device_reference(cls, value: Any) -> Any:
        return _reference_id(value)


class AggregatedDevice(CatalogModel):
    """A device joined with its customization groups, add-ons and features."""

    device: Device
    groups: list[CustomizationGroup] = Field(default_factory=list)
    add_ons: list[AddOn] = Field(default_factory=list)
    features: list[Feature] = Field(default_factory=list)

    def group_by_name(self, name: str) -> Optional[CustomizationGroup]:
        return next((group for group in self.groups if group.name == name), None)

    def add_on_by_id(self, add_on_id: int) -> Optional[AddOn]:
        return next((add_on for add_on in self.add_ons if add_on.id == add_on_id), None)


class GroupCharge(SaleModel):
    """The option charged for one customization group of a sale."""

    group_id: int
    option_id: int
    price: Decimal


class AddOnCharge(SaleModel):
    """The price charged for one selected add-on of a sale."""

    add_on_id: int
    price: Decimal


class PurchaseRecord(SaleModel):
    """A fully assembled sale, ready for submission."""

    device_id: int = Field(description="Device being sold")
    customizations: list[GroupCharge] = Field(
        default_factory=list, description="One charge per customization group of the device"
    )
    add_ons: list[AddOnCharge] = Field(default_factory=list, description="Selected add-ons")
    total: Decimal = Field(description="Final price, unrounded")
    sold_at: str = Field(description="Sale timestamp, UTC, yyyy-MM-ddTHH:mm:ssZ")

    def to_payload(self) -> dict[str, Any]:
        """Render the body expected by the sale endpoint."""
        return {
            "idDispositivo": self.device_id,
            "personalizaciones": [
                {"id": charge.group_id, "precio": float(charge.price), "opcion": {"id": charge.option_id}}
                for charge in self.customizations
            ],
            "adicionales": [
                {"id": charge.add_on_id, "precio": float(charge.price)} for charge in self.add_ons
            ],
            "precioFinal": float(self.total),
            "fechaVenta": self.sold_at,
        }


class PurchaseResponse(BaseModel):
    """Outcome reported by the sale endpoint."""

    success: bool
    message: Optional[str] = None


class AddOnQuote(BaseModel):
    """Price line for one selected add-on."""

    add_on_id: int
    name: str
    listed_price: Decimal
    charged_price: Decimal
    promotion_applied: bool


class PriceQuote(BaseModel):
    """Breakdown of the current price of a device configuration."""

    device_id: int
    currency: str
    base_price: Decimal
    customizations_total: Decimal
    base_plus_customizations: Decimal
    add_ons: list[AddOnQuote] = Field(default_factory=list)
    total: Decimal
