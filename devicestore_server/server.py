"""MCP Server for the device store."""

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .client import DeviceStoreClient
from .config import Settings
from .errors import (
    AggregationError,
    AssemblyError,
    DeviceStoreError,
    StaleTotalError,
    SubmissionError,
)
from .models import AggregatedDevice, PriceQuote
from .service import StoreService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("devicestore-mcp-server")

# Initialize server
app = Server("devicestore-mcp-server")

# Global state
store: StoreService


def format_price(amount: Decimal, currency: str) -> str:
    """Two-decimal display of a price."""
    return f"{amount:.2f} {currency}"


def format_device(aggregated: AggregatedDevice) -> list[str]:
    """Readable lines describing a device, its customizations and add-ons."""
    device = aggregated.device
    lines = [f"{device.name} (ID: {device.id})"]
    if device.description:
        lines.append(f"   {device.description}")
    lines.append(f"   Base price: {format_price(device.base_price, device.currency)}")

    if aggregated.features:
        lines.append("   Features:")
        for feature in aggregated.features:
            lines.append(f"     - {feature.name}: {feature.description}")

    for group in aggregated.groups:
        lines.append(f"   Customization '{group.name}':")
        if not group.options:
            lines.append("     (no options)")
        for option in group.options:
            lines.append(f"     - [{option.id}] {option.name} (+{option.additional_price:.2f})")

    if aggregated.add_ons:
        lines.append("   Add-ons:")
        for add_on in aggregated.add_ons:
            line = f"     - [{add_on.id}] {add_on.name}: {add_on.price:.2f}"
            if add_on.has_promotion:
                line += f" (free from {add_on.free_above:.2f})"
            lines.append(line)

    return lines


def format_quote(price_quote: PriceQuote, aggregated: AggregatedDevice, selected: dict[str, str]) -> str:
    """Readable price breakdown for the current configuration."""
    currency = price_quote.currency
    lines = [f"Configuration of {aggregated.device.name}:\n"]
    lines.append(f"Base price: {format_price(price_quote.base_price, currency)}")

    for group in aggregated.groups:
        lines.append(f"{group.name}: {selected.get(group.name, 'not selected')}")
    lines.append(f"Customizations: +{price_quote.customizations_total:.2f}")

    if price_quote.add_ons:
        lines.append("Add-ons:")
        for line in price_quote.add_ons:
            if line.promotion_applied:
                lines.append(f"  - {line.name}: Free (promotion)")
            else:
                lines.append(f"  - {line.name}: +{line.charged_price:.2f}")

    lines.append(f"\n{'='*50}")
    lines.append(f"Total: {format_price(price_quote.total, currency)}")
    return "\n".join(lines)


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


async def _quote_text(device_id: int) -> str:
    session = await store.open_session(device_id)
    selected = {name: option.name for name, option in session.selection.selected_options.items()}
    return format_quote(session.quote(), session.aggregated, selected)


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri=AnyUrl("devicestore://catalog"),
            name="Device Catalog",
            mimeType="application/json",
            description="Devices with their customizations, add-ons and features",
        )
    ]


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    if str(uri) == "devicestore://catalog":
        catalog = await store.load_catalog()
        import json

        return json.dumps([item.model_dump(mode="json") for item in catalog], indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    device_id_schema = {"type": "integer", "description": "Device ID (from store_list_devices)"}
    return [
        Tool(
            name="store_list_devices",
            description="List the devices for sale with their base price",
            inputSchema={
                "type": "object",
                "properties": {
                    "refresh": {
                        "type": "boolean",
                        "description": "Reload the catalog from the backend (default: false)",
                        "default": False,
                    },
                },
            },
        ),
        Tool(
            name="store_get_device",
            description="Show a device with its customizations, add-ons and features",
            inputSchema={
                "type": "object",
                "properties": {"device_id": device_id_schema},
                "required": ["device_id"],
            },
        ),
        Tool(
            name="store_select_option",
            description="Choose one option of a device customization (e.g. Color)",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_id": device_id_schema,
                    "customization": {"type": "string", "description": "Customization name"},
                    "option_id": {"type": "integer", "description": "Option ID"},
                },
                "required": ["device_id", "customization", "option_id"],
            },
        ),
        Tool(
            name="store_set_add_on",
            description="Add or remove an add-on. Toggles it when 'selected' is omitted.",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_id": device_id_schema,
                    "add_on_id": {"type": "integer", "description": "Add-on ID"},
                    "selected": {"type": "boolean", "description": "Desired state (optional)"},
                },
                "required": ["device_id", "add_on_id"],
            },
        ),
        Tool(
            name="store_get_quote",
            description="Get the current price breakdown of a device configuration",
            inputSchema={
                "type": "object",
                "properties": {"device_id": device_id_schema},
                "required": ["device_id"],
            },
        ),
        Tool(
            name="store_reset_selection",
            description="Discard every choice made for a device",
            inputSchema={
                "type": "object",
                "properties": {"device_id": device_id_schema},
                "required": ["device_id"],
            },
        ),
        Tool(
            name="store_purchase",
            description="Buy the device as currently configured",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_id": device_id_schema,
                    "confirmed_total": {
                        "type": "string",
                        "description": "Total shown to the user; the purchase is refused if the price changed",
                    },
                },
                "required": ["device_id"],
            },
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "store_list_devices":
            catalog = await store.load_catalog(refresh=arguments.get("refresh", False))
            if not catalog:
                return _text("No devices available")

            result_lines = [f"Found {len(catalog)} device(s):\n"]
            for i, aggregated in enumerate(catalog, 1):
                device = aggregated.device
                result_lines.append(f"\n{i}. {device.name}")
                result_lines.append(f"   ID: {device.id}")
                result_lines.append(f"   Price: {format_price(device.base_price, device.currency)}")
            return _text("\n".join(result_lines))

        elif name == "store_get_device":
            aggregated = await store.get_device(arguments["device_id"])
            return _text("\n".join(format_device(aggregated)))

        elif name == "store_select_option":
            device_id = arguments["device_id"]
            session = await store.open_session(device_id)
            option = session.select_option(arguments["customization"], arguments["option_id"])
            return _text(f"Selected {option.name} for {arguments['customization']}\n\n{await _quote_text(device_id)}")

        elif name == "store_set_add_on":
            device_id = arguments["device_id"]
            add_on_id = arguments["add_on_id"]
            session = await store.open_session(device_id)
            if "selected" in arguments:
                selected = arguments["selected"] is True
                session.set_add_on(add_on_id, selected)
            else:
                selected = session.toggle_add_on(add_on_id)
            state = "added" if selected else "removed"
            return _text(f"Add-on {add_on_id} {state}\n\n{await _quote_text(device_id)}")

        elif name == "store_get_quote":
            return _text(await _quote_text(arguments["device_id"]))

        elif name == "store_reset_selection":
            session = await store.open_session(arguments["device_id"])
            session.reset()
            return _text(f"Selection cleared for device {arguments['device_id']}")

        elif name == "store_purchase":
            confirmed_total = None
            if arguments.get("confirmed_total") is not None:
                try:
                    confirmed_total = Decimal(str(arguments["confirmed_total"]))
                except InvalidOperation:
                    return _text(f"Error: invalid total '{arguments['confirmed_total']}'")

            response = await store.purchase(arguments["device_id"], confirmed_total=confirmed_total)
            if response.success:
                return _text(response.message or "Purchase completed successfully")
            return _text(f"Purchase failed: {response.message or 'rejected by the store'}")

        else:
            return _text(f"Unknown tool: {name}")

    except AggregationError as e:
        return _text(f"Error loading devices: {e}")
    except StaleTotalError as e:
        return _text(f"Error: {e}. Review the quote and confirm again.")
    except AssemblyError as e:
        return _text(f"Cannot prepare the purchase: {e}")
    except SubmissionError as e:
        return _text(f"Error: {e}. Your selection was kept, you can try again.")
    except DeviceStoreError as e:
        return _text(f"Error: {e}")
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return _text(f"Error: {str(e)}")


async def main() -> None:
    """Main entry point for the MCP server."""
    global store

    settings = Settings.from_env()
    store = StoreService(DeviceStoreClient(settings))
    logger.info(f"Using store backend at {settings.base_url}")

    logger.info("Starting Device Store MCP Server...")

    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
