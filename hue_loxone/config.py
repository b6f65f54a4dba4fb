"""Configuration for the Hue/Loxone bridge.

Raw configuration comes from the web UI's JSON file or from environment
variables, both using the camelCase keys of the original config file. The
raw dict is validated with a voluptuous schema and converted into an
immutable BridgeConfig which is injected into every component.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import voluptuous as vol
from pydantic import BaseModel, Field

from .constants import (
    COLOR_DEFAULTS,
    DEFAULT_UDP_PORT,
    RATE_LIMIT_DEFAULTS,
    RECONNECT_DEFAULTS,
    RETRY_DEFAULTS,
)
from .infrastructure.errors import BridgeConfigError
from .infrastructure.validation import validate_host, validate_port, validate_transition_time
from .models import MappingEntry, parse_mapping_entry

_LOGGER = logging.getLogger(__name__)


def _host(value):
    if value is None:
        return None
    value = str(value).strip()
    is_valid, error = validate_host(value)
    if not is_valid:
        raise vol.Invalid(error)
    return value


def _port(value):
    is_valid, error = validate_port(value)
    if not is_valid:
        raise vol.Invalid(error)
    return int(value)


def _transition_time(value):
    value = int(value)
    is_valid, error = validate_transition_time(value)
    if not is_valid:
        raise vol.Invalid(error)
    return value


CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional("bridgeIp", default=None): vol.Any(None, _host),
        vol.Optional("appKey", default=None): vol.Any(None, str),
        vol.Optional("loxoneIp", default=None): vol.Any(None, _host),
        vol.Optional("loxonePort", default=DEFAULT_UDP_PORT): _port,
        vol.Optional("debug", default=False): vol.Boolean(),
        vol.Optional("transitionTime", default=COLOR_DEFAULTS.DEFAULT_TRANSITION_TIME): _transition_time,
        vol.Optional("certPinningEnabled", default=False): vol.Boolean(),
        vol.Optional("certFingerprint", default=None): vol.Any(None, str),
    },
    extra=vol.REMOVE_EXTRA,
)


class RetrySettings(BaseModel):
    model_config = {"frozen": True}

    max_attempts: int = Field(default=RETRY_DEFAULTS.MAX_ATTEMPTS, ge=1)
    initial_backoff: float = Field(default=RETRY_DEFAULTS.INITIAL_BACKOFF, ge=0.0)
    multiplier: float = Field(default=RETRY_DEFAULTS.BACKOFF_MULTIPLIER, ge=1.0)
    max_backoff: float = Field(default=RETRY_DEFAULTS.MAX_BACKOFF, ge=0.0)


class RateLimitSettings(BaseModel):
    model_config = {"frozen": True}

    light_delay: float = Field(default=RATE_LIMIT_DEFAULTS.LIGHT_DELAY, ge=0.0)
    grouped_light_delay: float = Field(default=RATE_LIMIT_DEFAULTS.GROUPED_LIGHT_DELAY, ge=0.0)
    sequence_delay: float = Field(default=RATE_LIMIT_DEFAULTS.SEQUENCE_DELAY, ge=0.0)


class ReconnectSettings(BaseModel):
    model_config = {"frozen": True}

    initial_delay: float = Field(default=RECONNECT_DEFAULTS.INITIAL_DELAY, ge=0.0)
    max_delay: float = Field(default=RECONNECT_DEFAULTS.MAX_DELAY, ge=0.0)
    stale_after: float = Field(default=RECONNECT_DEFAULTS.STALE_AFTER, gt=0.0)


class BridgeConfig(BaseModel):
    """Immutable runtime configuration.

    Attributes:
        bridge_host: IP or hostname of the Hue bridge.
        app_key: Hue application key (hue-application-key header).
        controller_host: Loxone Miniserver address, None disables UDP output.
        controller_port: Loxone UDP port.
        transition_time: Default transition time in milliseconds.
        debug: Enables per-event debug traces.
        cert_pinning_enabled: Verify the bridge certificate fingerprint.
        cert_fingerprint: Expected SHA-256 fingerprint of the bridge certificate.
        request_timeout: Per-request timeout in seconds.
    """

    model_config = {"frozen": True}

    bridge_host: str | None = None
    app_key: str | None = None
    controller_host: str | None = None
    controller_port: int = Field(default=DEFAULT_UDP_PORT, gt=0, le=65535)
    transition_time: int = Field(default=COLOR_DEFAULTS.DEFAULT_TRANSITION_TIME, ge=0, le=10000)
    debug: bool = False
    cert_pinning_enabled: bool = False
    cert_fingerprint: str | None = None
    request_timeout: float = Field(default=RETRY_DEFAULTS.REQUEST_TIMEOUT, gt=0.0)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    reconnect: ReconnectSettings = Field(default_factory=ReconnectSettings)

    @property
    def is_ready(self) -> bool:
        """True when the bridge is paired (host and key known)."""
        return bool(self.bridge_host and self.app_key)


def load_config(raw: Mapping[str, Any], **overrides) -> BridgeConfig:
    """Validate a raw camelCase config dict and build a BridgeConfig.

    Args:
        raw: Dict with keys bridgeIp, appKey, loxoneIp, loxonePort, debug,
            transitionTime, certPinningEnabled, certFingerprint.
        **overrides: Extra BridgeConfig fields (e.g. retry, rate_limit).

    Raises:
        BridgeConfigError: If the raw config does not match the schema.
    """
    try:
        data = CONFIG_SCHEMA(dict(raw))
    except vol.Invalid as err:
        raise BridgeConfigError(f"Invalid config: {err}") from err

    return BridgeConfig(
        bridge_host=data["bridgeIp"],
        app_key=data["appKey"],
        controller_host=data["loxoneIp"],
        controller_port=data["loxonePort"],
        debug=data["debug"],
        transition_time=data["transitionTime"],
        cert_pinning_enabled=data["certPinningEnabled"],
        cert_fingerprint=data["certFingerprint"],
        **overrides,
    )


def config_from_env(environ: Mapping[str, str], **overrides) -> BridgeConfig:
    """Build a BridgeConfig from environment variables."""
    raw: dict[str, Any] = {
        "bridgeIp": environ.get("HUE_BRIDGE_IP") or None,
        "appKey": environ.get("HUE_APP_KEY") or None,
        "loxoneIp": environ.get("LOXONE_IP") or None,
        "loxonePort": environ.get("LOXONE_UDP_PORT", DEFAULT_UDP_PORT),
        "debug": environ.get("DEBUG", "false") == "true",
        "certPinningEnabled": environ.get("HUE_CERT_PINNING_ENABLED", "false") == "true",
        "certFingerprint": environ.get("HUE_CERT_FINGERPRINT") or None,
    }
    return load_config(raw, **overrides)


def load_mapping(raw: Any) -> list[MappingEntry]:
    """Validate a raw mapping list, dropping invalid entries.

    Args:
        raw: List of dicts as stored in the mapping file.

    Returns:
        List of valid MappingEntry objects. A non-list input yields [].
    """
    if not isinstance(raw, list):
        _LOGGER.warning("Mapping is not a list, resetting")
        return []

    entries = []
    for item in raw:
        entry = parse_mapping_entry(item) if isinstance(item, dict) else None
        if entry is None:
            _LOGGER.warning("Invalid mapping entry filtered out: %s", item)
            continue
        entries.append(entry)
    return entries
