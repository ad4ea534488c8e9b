"""HTTP server for the Device Store MCP Server with hot reloading support."""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from . import __version__
from .client import DeviceStoreClient
from .config import Settings
from .errors import (
    AddOnNotFoundError,
    AggregationError,
    AssemblyError,
    DeviceNotFoundError,
    DeviceStoreError,
    OptionNotFoundError,
    StaleTotalError,
    SubmissionError,
    SubmissionInProgressError,
)
from .service import StoreService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("devicestore-http-server")

# Global state
store: Optional[StoreService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global store

    # Startup
    logger.info("Starting Device Store HTTP Server...")
    settings = Settings.from_env()
    store = StoreService(DeviceStoreClient(settings))
    logger.info(f"Using store backend at {settings.base_url}")

    yield

    # Shutdown
    logger.info("Shutting down Device Store HTTP Server...")
    await store.close()


app = FastAPI(
    title="Device Store MCP Server",
    description="HTTP API for configuring and buying devices",
    version=__version__,
    lifespan=lifespan,
)


# Request Models
class SelectOptionRequest(BaseModel):
    customization: str
    option_id: int


class AddOnRequest(BaseModel):
    add_on_id: int
    selected: Optional[bool] = None


class PurchaseRequest(BaseModel):
    confirmed_total: Optional[Decimal] = None


def _http_error(error: DeviceStoreError) -> HTTPException:
    """Map a store error to the matching HTTP status."""
    if isinstance(error, (DeviceNotFoundError, OptionNotFoundError, AddOnNotFoundError)):
        status_code = 404
    elif isinstance(error, (StaleTotalError, SubmissionInProgressError)):
        status_code = 409
    elif isinstance(error, AssemblyError):
        status_code = 422
    elif isinstance(error, (AggregationError, SubmissionError)):
        status_code = 502
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=str(error))


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Device Store MCP Server",
        "version": __version__,
        "description": "HTTP API for configuring and buying devices",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "devices": {
                "list": "GET /devices",
                "refresh": "POST /devices/refresh",
                "get": "GET /devices/{device_id}",
            },
            "configuration": {
                "select_option": "POST /devices/{device_id}/options",
                "set_add_on": "POST /devices/{device_id}/add-ons",
                "quote": "GET /devices/{device_id}/quote",
                "reset": "DELETE /devices/{device_id}/selection",
            },
            "purchase": "POST /devices/{device_id}/purchase",
        },
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Catalog endpoints
@app.get("/devices")
async def list_devices():
    """List every device with its customizations, add-ons and features."""
    try:
        catalog = await store.load_catalog()
        return {"count": len(catalog), "devices": [item.model_dump(mode="json") for item in catalog]}
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"List devices error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/devices/refresh")
async def refresh_devices():
    """Reload the catalog from the backend."""
    try:
        catalog = await store.load_catalog(refresh=True)
        return {"count": len(catalog)}
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Refresh error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/devices/{device_id}")
async def get_device(device_id: int):
    """Get one device."""
    try:
        aggregated = await store.get_device(device_id)
        return aggregated.model_dump(mode="json")
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Get device error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# Configuration endpoints
@app.post("/devices/{device_id}/options")
async def select_option(device_id: int, request: SelectOptionRequest):
    """Choose an option of a customization and return the new quote."""
    try:
        session = await store.open_session(device_id)
        session.select_option(request.customization, request.option_id)
        return session.quote().model_dump(mode="json")
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Select option error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/devices/{device_id}/add-ons")
async def set_add_on(device_id: int, request: AddOnRequest):
    """Switch an add-on on or off (toggle when 'selected' is omitted) and return the new quote."""
    try:
        session = await store.open_session(device_id)
        if request.selected is None:
            session.toggle_add_on(request.add_on_id)
        else:
            session.set_add_on(request.add_on_id, request.selected)
        return session.quote().model_dump(mode="json")
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Set add-on error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/devices/{device_id}/quote")
async def get_quote(device_id: int):
    """Get the current price breakdown."""
    try:
        session = await store.open_session(device_id)
        return session.quote().model_dump(mode="json")
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Quote error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/devices/{device_id}/selection")
async def reset_selection(device_id: int):
    """Discard every choice made for a device."""
    try:
        session = await store.open_session(device_id)
        session.reset()
        return {"success": True, "message": f"Selection cleared for device {device_id}"}
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Reset selection error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# Purchase endpoint
@app.post("/devices/{device_id}/purchase")
async def purchase(device_id: int, request: PurchaseRequest):
    """Buy the device as currently configured."""
    try:
        response = await store.purchase(device_id, confirmed_total=request.confirmed_total)
    except DeviceStoreError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Purchase error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    if not response.success:
        logger.warning(f"Sale of device {device_id} rejected: {response.message}")
        raise HTTPException(status_code=502, detail=response.message or "Sale rejected by the store")
    return response.model_dump()


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """
    Run the HTTP server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
        reload: Enable hot reloading (default: False)
    """
    import uvicorn

    logger.info(f"Starting server on {host}:{port} (reload={'enabled' if reload else 'disabled'})")

    if reload:
        uvicorn.run(
            "devicestore_server.http_server:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["devicestore_server"],
            log_level="info",
        )
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server(reload=True)
