"""Configuration loader.

Reads environment variables and `.env` to configure the service.
"""

from __future__ import annotations

import os
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


# ---- Monitor -----------------------------------------------------------------

# Seconds between poll cycles over the watchlist.
POLL_INTERVAL_SECONDS: float = _parse_float(_get_env("POLL_INTERVAL_SECONDS", "3600"), 3600.0)

# "promotion_only" pushes promotion entries and price changes while on promotion.
# "any_transition" also pushes promotion exits and plain price changes.
NOTIFY_POLICY: str = (_get_env("NOTIFY_POLICY", "promotion_only") or "promotion_only").strip().lower()

# Capacity of the monitor -> dispatcher queue; the oldest event is dropped when full.
EVENT_QUEUE_SIZE: int = _parse_int(_get_env("EVENT_QUEUE_SIZE", "100"), 100)

# Stop polling a product once its last subscriber leaves.
DROP_IDLE_WATCHES: bool = _parse_bool(_get_env("DROP_IDLE_WATCHES", "true"), True)

# ---- Catalog -----------------------------------------------------------------

# Product detail endpoint; "{id}" is replaced by the product ID.
CATALOG_PRODUCT_URL: str = _get_env(
    "CATALOG_PRODUCT_URL",
    "https://www.ah.nl/service/rest/delegate?url=/producten/product/wi{id}",
)

CATALOG_TIMEOUT_SECONDS: float = _parse_float(_get_env("CATALOG_TIMEOUT_SECONDS", "10"), 10.0)

# Attempts per HTTP call (network errors and 5xx are retried).
HTTP_MAX_ATTEMPTS: int = _parse_int(_get_env("HTTP_MAX_ATTEMPTS", "3"), 3)

# ---- Discord -----------------------------------------------------------------

DISCORD_BOT_TOKEN: Optional[str] = _get_env("DISCORD_BOT_TOKEN")

# Base URL for the Discord REST API. Should not include a trailing slash.
DISCORD_API_BASE: str = _get_env("DISCORD_API_BASE", "https://discord.com/api/v10")

# ---- Command server ----------------------------------------------------------

COMMAND_HOST: str = _get_env("COMMAND_HOST", "127.0.0.1")
COMMAND_PORT: int = _parse_int(_get_env("COMMAND_PORT", "8888"), 8888)

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# ---- Validation --------------------------------------------------------------

def validate() -> None:
    """Validate required configuration parameters."""
    if not DISCORD_BOT_TOKEN:
        raise RuntimeError(
            "DISCORD_BOT_TOKEN must be set. See .env.example for details."
        )
    if NOTIFY_POLICY not in ("promotion_only", "any_transition"):
        raise RuntimeError(
            f"NOTIFY_POLICY must be 'promotion_only' or 'any_transition', got {NOTIFY_POLICY!r}"
        )


__all__ = [
    # Monitor
    "POLL_INTERVAL_SECONDS",
    "NOTIFY_POLICY",
    "EVENT_QUEUE_SIZE",
    "DROP_IDLE_WATCHES",
    # Catalog
    "CATALOG_PRODUCT_URL",
    "CATALOG_TIMEOUT_SECONDS",
    "HTTP_MAX_ATTEMPTS",
    # Discord
    "DISCORD_BOT_TOKEN",
    "DISCORD_API_BASE",
    # Command server
    "COMMAND_HOST",
    "COMMAND_PORT",
    "LOG_LEVEL",
    # Helpers
    "validate",
]
