"""Runtime configuration for the device store client."""

import logging
import os
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080/"
DEFAULT_TIMEOUT = 30.0


class Settings(BaseModel):
    """Connection settings for the remote catalog and sale service."""

    base_url: str = Field(DEFAULT_BASE_URL, description="Root URL of the store backend")
    token: Optional[str] = Field(None, description="Bearer token sent with every request")
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0, description="Request timeout in seconds")

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Environment variable mapping:
        - DEVICESTORE_BASE_URL → base_url (default: http://localhost:8080/)
        - DEVICESTORE_TOKEN → token (optional)
        - DEVICESTORE_TIMEOUT → timeout in seconds (default: 30)
        """
        base_url = os.environ.get("DEVICESTORE_BASE_URL", DEFAULT_BASE_URL)
        token = os.environ.get("DEVICESTORE_TOKEN") or None
        timeout = DEFAULT_TIMEOUT

        raw_timeout = os.environ.get("DEVICESTORE_TIMEOUT")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warning(f"Ignoring invalid DEVICESTORE_TIMEOUT: {raw_timeout}")

        if token:
            logger.info("Loaded API token from environment")
        else:
            logger.warning("No DEVICESTORE_TOKEN configured, requests will be unauthenticated")

        return cls(base_url=base_url, token=token, timeout=timeout)
