"""Translation of Loxone control values into Hue light payloads.

Loxone sends a single number per command. Its meaning depends on range and
shape:

    0                   off
    1                   on
    2-100               on at that brightness
    20BBBKKKK...        color temperature: "20", 3-digit brightness, kelvin
    BBBGGGRRR           packed RGB percentages (blue, green, red)

A value is read as color temperature only when it has at least 9 digits
and starts with "20"; every other value above 100 is packed RGB. Packed
RGB channels and color temperature brightness are clamped to 0-100.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .color import kelvin_to_mirek, map_range, rgb_to_mirek_fallback, rgb_to_xy
from .constants import COLOR_DEFAULTS
from .models import LightCapabilities

_LOGGER = logging.getLogger(__name__)

COLOR_TEMPERATURE_PREFIX = "20"
COLOR_TEMPERATURE_MIN_DIGITS = 9


class IntentKind(str, Enum):
    OFF = "off"
    ON = "on"
    DIM = "dim"
    COLOR_TEMPERATURE = "color_temperature"
    RGB = "rgb"


class LightIntent(BaseModel):
    """Decoded meaning of a raw control value."""

    model_config = {"frozen": True}

    kind: IntentKind
    brightness: int = Field(default=0, ge=0, le=100)
    kelvin: int | None = None
    red: int = Field(default=0, ge=0, le=100)
    green: int = Field(default=0, ge=0, le=100)
    blue: int = Field(default=0, ge=0, le=100)


def _clamp_percent(value: int) -> int:
    return max(0, min(100, value))


def decode_value(raw: str | int) -> LightIntent:
    """Decode a raw control value into a LightIntent.

    Non-numeric input decodes to OFF.

    Example:
        >>> decode_value("55").brightness
        55
        >>> decode_value("201002700").kelvin
        2700
    """
    text = str(raw).strip()
    try:
        number = int(text)
    except ValueError:
        number = 0

    if number <= 0:
        return LightIntent(kind=IntentKind.OFF)
    if number == 1:
        return LightIntent(kind=IntentKind.ON)
    if number <= 100:
        return LightIntent(kind=IntentKind.DIM, brightness=number)

    if text.startswith(COLOR_TEMPERATURE_PREFIX) and len(text) >= COLOR_TEMPERATURE_MIN_DIGITS:
        brightness = _clamp_percent(int(text[2:5]))
        kelvin = int(text[5:])
        if brightness == 0:
            return LightIntent(kind=IntentKind.OFF)
        return LightIntent(kind=IntentKind.COLOR_TEMPERATURE, brightness=brightness, kelvin=kelvin)

    blue = number // 1_000_000
    remainder = number % 1_000_000
    green = remainder // 1000
    red = remainder % 1000
    channels = [_clamp_percent(c) for c in (red, green, blue)]
    if max(channels) == 0:
        return LightIntent(kind=IntentKind.OFF)
    red, green, blue = channels
    return LightIntent(kind=IntentKind.RGB, brightness=max(channels), red=red, green=green, blue=blue)


def scale_mirek(mirek: int, capabilities: LightCapabilities | None) -> int:
    """Scale a mirek value from the Loxone range into the light's range."""
    if capabilities is None:
        return mirek
    scaled = round(
        map_range(
            mirek,
            COLOR_DEFAULTS.LOXONE_MIN_MIREK,
            COLOR_DEFAULTS.LOXONE_MAX_MIREK,
            capabilities.min_mirek,
            capabilities.max_mirek,
        )
    )
    return max(capabilities.min_mirek, min(capabilities.max_mirek, scaled))


def _state_payload(intent: LightIntent, capabilities: LightCapabilities | None) -> dict[str, Any]:
    if intent.kind == IntentKind.OFF:
        return {"on": {"on": False}}
    if intent.kind == IntentKind.ON:
        return {"on": {"on": True}}

    payload: dict[str, Any] = {"on": {"on": True}, "dimming": {"brightness": intent.brightness}}

    if intent.kind == IntentKind.COLOR_TEMPERATURE:
        payload["color_temperature"] = {"mirek": scale_mirek(kelvin_to_mirek(intent.kelvin), capabilities)}
    elif intent.kind == IntentKind.RGB:
        supports_color = capabilities.supports_color if capabilities else True
        if not supports_color and capabilities.supports_color_temperature:
            mirek = rgb_to_mirek_fallback(
                intent.red, intent.green, intent.blue, capabilities.min_mirek, capabilities.max_mirek
            )
            _LOGGER.debug(
                "RGB fallback: R%d G%d B%d -> %d mirek", intent.red, intent.green, intent.blue, mirek
            )
            payload["color_temperature"] = {"mirek": mirek}
        else:
            payload["color"] = {"xy": rgb_to_xy(intent.red, intent.green, intent.blue)}

    return payload


def build_light_payload(
    value: str | int | LightIntent,
    capabilities: LightCapabilities | None = None,
    transition_time: int = COLOR_DEFAULTS.DEFAULT_TRANSITION_TIME,
    forced_duration: int | None = None,
) -> dict[str, Any]:
    """Build a CLIP v2 light payload for a raw control value.

    Args:
        value: Raw control value or an already decoded LightIntent.
        capabilities: Capability record of the target light, None for groups
            and unknown lights (full color support is assumed).
        transition_time: Default transition duration in milliseconds.
        forced_duration: Overrides every other duration rule when not None.

    Returns:
        Payload dict, e.g. {"on": {"on": True}, "dimming": {"brightness": 55},
        "dynamics": {"duration": 400}}.
    """
    intent = value if isinstance(value, LightIntent) else decode_value(value)
    payload = _state_payload(intent, capabilities)

    duration = transition_time
    # Plain switching is instant
    if set(payload) == {"on"}:
        duration = 0
    if forced_duration is not None:
        duration = forced_duration

    if duration > 0:
        payload["dynamics"] = {"duration": duration}

    return payload
