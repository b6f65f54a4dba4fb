"""Constants and Enums for the Hue/Loxone bridge."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

# Namespace prefix of every datagram sent to the Miniserver
UDP_NAMESPACE = "hue"
DEFAULT_UDP_PORT = 7000

# Reserved controller names that address every mapped light and group
ALL_LIGHTS_NAMES = frozenset({"all", "alles"})
PSEUDO_ALL_UUID = "pseudo-all"

# Unmapped command names kept for the mapping UI
MAX_DETECTED_ITEMS = 10


class ResourceKind(str, Enum):
    """Hue CLIP v2 resource types addressed by the bridge."""

    LIGHT = "light"
    GROUPED_LIGHT = "grouped_light"
    DEVICE = "device"
    ROOM = "room"
    ZONE = "zone"
    SCENE = "scene"
    DEVICE_POWER = "device_power"
    ZIGBEE_CONNECTIVITY = "zigbee_connectivity"


class UpstreamKind(str, Enum):
    """Kind of Hue resource a controller name is bound to."""

    LIGHT = "light"
    GROUP = "group"
    SENSOR = "sensor"
    BUTTON = "button"

    @property
    def resource_kind(self) -> ResourceKind:
        """Resource type used when sending commands to this kind."""
        if self == UpstreamKind.GROUP:
            return ResourceKind.GROUPED_LIGHT
        return ResourceKind.LIGHT

    @property
    def is_controllable(self) -> bool:
        return self in (UpstreamKind.LIGHT, UpstreamKind.GROUP)


class StatusAttribute(str, Enum):
    """Attribute suffixes forwarded to the Miniserver."""

    ON = "on"
    BRIGHTNESS = "bri"
    HEX = "hex"
    MOTION = "motion"
    TEMPERATURE = "temp"
    LUX = "lux"
    BATTERY = "bat"
    BUTTON = "button"
    ROTARY = "rotary"


# Momentary signals: forwarded on every occurrence, never deduplicated
EVENT_ATTRIBUTES = frozenset({StatusAttribute.BUTTON.value, StatusAttribute.ROTARY.value})

# Button events worth forwarding; everything else (initial_press, repeat, ...) is dropped
FORWARDED_BUTTON_EVENTS = frozenset({"short_release", "long_press"})


class RetryDefaults(BaseModel):
    """Default values for the retrying transport.

    MAX_ATTEMPTS counts every attempt including the first one.
    """

    model_config = {"frozen": True}

    MAX_ATTEMPTS: int = Field(default=3, description="Total attempts per upstream request")
    INITIAL_BACKOFF: float = Field(default=1.0, description="Delay before the first retry in seconds")
    BACKOFF_MULTIPLIER: float = Field(default=2.0, description="Growth factor between retries")
    MAX_BACKOFF: float = Field(default=10.0, description="Upper bound for a single retry delay in seconds")
    REQUEST_TIMEOUT: float = Field(default=10.0, description="Per-request timeout in seconds")
    RETRYABLE_STATUS_CODES: frozenset[int] = Field(default=frozenset({408, 429, 500, 502, 503, 504}))
    RETRYABLE_ERROR_CODES: frozenset[str] = Field(
        default=frozenset({"ECONNRESET", "ETIMEDOUT", "ECONNREFUSED", "EHOSTUNREACH", "ENETUNREACH", "ENOTFOUND"})
    )


class RateLimitDefaults(BaseModel):
    """Default spacing between upstream writes.

    Hue allows roughly 10 light writes per second but only about one
    grouped_light write per second.
    """

    model_config = {"frozen": True}

    LIGHT_DELAY: float = Field(default=0.12, description="Delay after each light request in seconds")
    GROUPED_LIGHT_DELAY: float = Field(default=1.1, description="Delay after each grouped_light request in seconds")
    SEQUENCE_DELAY: float = Field(default=0.1, description="Pacing between submissions of an all-lights sequence")


class ReconnectDefaults(BaseModel):
    """Default values for event stream reconnects and health."""

    model_config = {"frozen": True}

    INITIAL_DELAY: float = Field(default=1.0, description="First reconnect delay in seconds")
    MAX_DELAY: float = Field(default=60.0, description="Upper bound for the reconnect delay in seconds")
    STALE_AFTER: float = Field(default=300.0, description="Stream is unhealthy without events for this long")


class ColorDefaults(BaseModel):
    """Color temperature ranges in mirek."""

    model_config = {"frozen": True}

    LOXONE_MIN_MIREK: int = 153
    LOXONE_MAX_MIREK: int = 370
    HUE_MIN_MIREK: int = 153
    HUE_MAX_MIREK: int = 500
    DEFAULT_TRANSITION_TIME: int = Field(default=400, description="Transition time in milliseconds")


RETRY_DEFAULTS = RetryDefaults()
RATE_LIMIT_DEFAULTS = RateLimitDefaults()
RECONNECT_DEFAULTS = ReconnectDefaults()
COLOR_DEFAULTS = ColorDefaults()
