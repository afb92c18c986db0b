"""
Relay configuration loaded from the environment.

This module handles:
- Connection strings for the internal and external storage accounts
- The source-IP restriction embedded in every capability
- Capability lifetimes and the per-request container prefix
"""

import ipaddress
import logging
import os
from datetime import timedelta
from typing import List, Optional

import dotenv

from storage.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

dotenv.load_dotenv()

WRITE_EXPIRY_BOUNDS = (1, 15)
READ_EXPIRY_BOUNDS = (5, 24 * 60)


def _clamp(value: int, bounds) -> int:
    low, high = bounds
    return max(low, min(high, value))


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'", {"setting": name})


class RelayConfig:
    """Configuration for the capability relay"""

    def __init__(
        self,
        internal_connection_string: Optional[str] = None,
        external_connection_string: Optional[str] = None,
        allowed_ip: Optional[str] = None,
        write_expiry_minutes: Optional[int] = None,
        read_expiry_minutes: Optional[int] = None,
        container_prefix: Optional[str] = None,
        cors_origins: Optional[List[str]] = None,
    ):
        self.internal_connection_string = (
            internal_connection_string or os.getenv("INTERNAL_STORAGE_CONNECTION_STRING")
        )
        self.external_connection_string = (
            external_connection_string or os.getenv("EXTERNAL_STORAGE_CONNECTION_STRING")
        )
        self.allowed_ip = allowed_ip or os.getenv("SAS_ALLOWED_IP")

        write_minutes = write_expiry_minutes
        if write_minutes is None:
            write_minutes = _int_env("SAS_WRITE_EXPIRY_MINUTES", 1)
        read_minutes = read_expiry_minutes
        if read_minutes is None:
            read_minutes = _int_env("SAS_READ_EXPIRY_MINUTES", 24 * 60)

        self.write_expiry = timedelta(minutes=_clamp(write_minutes, WRITE_EXPIRY_BOUNDS))
        self.read_expiry = timedelta(minutes=_clamp(read_minutes, READ_EXPIRY_BOUNDS))
        self.container_prefix = container_prefix or os.getenv("SAS_CONTAINER_PREFIX", "sas-container-")

        if cors_origins is None:
            raw_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
            cors_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
        self.cors_origins = cors_origins

        logger.info(
            f"Relay config: write_expiry={self.write_expiry}, read_expiry={self.read_expiry}, "
            f"container_prefix={self.container_prefix}"
        )

    def validate(self) -> "RelayConfig":
        """Fail fast on missing or malformed required settings."""
        missing = [
            name
            for name, value in (
                ("INTERNAL_STORAGE_CONNECTION_STRING", self.internal_connection_string),
                ("EXTERNAL_STORAGE_CONNECTION_STRING", self.external_connection_string),
                ("SAS_ALLOWED_IP", self.allowed_ip),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings: {missing}", {"missing": ",".join(missing)})

        try:
            ipaddress.ip_address(self.allowed_ip)
        except ValueError:
            raise ConfigurationError(
                f"SAS_ALLOWED_IP must be a single IP address, got '{self.allowed_ip}'",
                {"setting": "SAS_ALLOWED_IP"},
            )
        return self
