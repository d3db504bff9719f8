"""Configuration models for the client."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .client import BLUOS_PORT, DEFAULT_TIMEOUT, LONG_POLL_TIMEOUT
from .discovery import DEFAULT_DISCOVERY_TIMEOUT
from .zeroconf import BLUOS_SERVICE, DEFAULT_REQUEST_TIMEOUT_MS

_LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Configuration Dataclasses
# -----------------------------------------------------------------------------

@dataclass
class AppConfig:
    """General application settings."""
    debug: bool = False


@dataclass
class DiscoveryConfig:
    """Settings for finding players via mDNS."""
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT
    service_types: List[str] = field(default_factory=lambda: [BLUOS_SERVICE])
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    # Ask every responder for /SyncStatus instead of trusting its TXT records
    resolve_sync_status: bool = False


@dataclass
class HttpConfig:
    """Settings for talking to a player."""
    port: int = BLUOS_PORT
    timeout: float = DEFAULT_TIMEOUT
    long_poll_timeout: int = LONG_POLL_TIMEOUT


@dataclass
class Config:
    """Main configuration object."""
    app: AppConfig = field(default_factory=AppConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    http: HttpConfig = field(default_factory=HttpConfig)

# -----------------------------------------------------------------------------
# Helper Function
# -----------------------------------------------------------------------------

def load_config_from_json(config_path: Path) -> Config:
    """Loads configuration from a JSON file and populates dataclasses."""

    # --- Step 1: Load raw JSON data ---
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except FileNotFoundError:
        _LOGGER.critical("Configuration file not found at: %s", config_path)
        raise
    except json.JSONDecodeError as e:
        _LOGGER.critical("Error parsing configuration file: %s", e)
        raise

    if not isinstance(raw_data, dict):
        raise ValueError("Configuration file must contain a JSON object.")

    # --- Step 2: Create config objects from raw data ---
    return Config(
        app=AppConfig(**raw_data.get("app", {})),
        discovery=DiscoveryConfig(**raw_data.get("discovery", {})),
        http=HttpConfig(**raw_data.get("http", {})),
    )
