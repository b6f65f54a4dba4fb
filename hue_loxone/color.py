"""Color conversion helpers.

Conversions between the Loxone value formats and the Hue CLIP v2 color
model:
- RGB (0-100 per channel) to CIE 1931 xy
- Kelvin to mirek and mirek range scaling
- xy / mirek back to a hex string for status echo

See https://developers.meethue.com/develop/application-design-guidance/color-conversion-formulas-rgb-to-xy-and-back/
"""

from __future__ import annotations

import math


def map_range(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    """Linearly map value from [in_min, in_max] onto [out_min, out_max]."""
    return (value - in_min) * (out_max - out_min) / (in_max - in_min) + out_min


def kelvin_to_mirek(kelvin: int) -> int:
    """Convert a color temperature in Kelvin to mirek.

    Values below 2000 K are treated as the warmest white (500 mirek).

    Example:
        >>> kelvin_to_mirek(6500)
        154
        >>> kelvin_to_mirek(1500)
        500
    """
    if kelvin < 2000:
        return 500
    return round(1_000_000 / kelvin)


def rgb_to_hex(red: float, green: float, blue: float) -> str:
    """Format 0-255 channels as "#rrggbb"."""
    return "#{:02x}{:02x}{:02x}".format(round(red), round(green), round(blue))


def _clamp_channel(value: float) -> float:
    return max(0.0, min(255.0, value))


def _gamma_encode(value: float) -> float:
    if value <= 0.0031308:
        return 12.92 * value
    return 1.055 * math.pow(value, 1.0 / 2.4) - 0.055


def xy_to_hex(x: float, y: float, brightness: float = 1.0) -> str:
    """Convert CIE xy coordinates to a hex color (Wide RGB D65)."""
    if y == 0:
        return "#000000"
    z = 1.0 - x - y
    big_y = brightness
    big_x = (big_y / y) * x
    big_z = (big_y / y) * z

    red = big_x * 1.656492 - big_y * 0.354851 - big_z * 0.255038
    green = -big_x * 0.707196 + big_y * 1.655397 + big_z * 0.036152
    blue = big_x * 0.051713 - big_y * 0.121364 + big_z * 1.011530

    # pow() of a negative channel is complex; clamp before gamma encoding
    red, green, blue = (_gamma_encode(max(0.0, c)) for c in (red, green, blue))

    return rgb_to_hex(_clamp_channel(red * 255), _clamp_channel(green * 255), _clamp_channel(blue * 255))


def mirek_to_hex(mirek: float) -> str:
    """Approximate the color of a black body radiator at the given mirek."""
    temp = 1_000_000 / mirek / 100

    if temp <= 66:
        red = 255.0
        green = 99.4708025861 * math.log(temp) - 161.1195681661
        blue = 0.0 if temp <= 19 else 138.5177312231 * math.log(temp - 10) - 305.0447927307
    else:
        red = 329.698727446 * math.pow(temp - 60, -0.1332047592)
        green = 288.1221695283 * math.pow(temp - 60, -0.0755148492)
        blue = 255.0

    return rgb_to_hex(_clamp_channel(red), _clamp_channel(green), _clamp_channel(blue))


def _gamma_decode(value: float) -> float:
    if value > 0.04045:
        return math.pow((value + 0.055) / 1.055, 2.4)
    return value / 12.92


def rgb_to_xy(red: float, green: float, blue: float) -> dict[str, float]:
    """Convert Loxone RGB percentages (0-100) to Hue xy coordinates.

    Example:
        >>> rgb_to_xy(0, 0, 0)
        {'x': 0.0, 'y': 0.0}
    """
    r, g, b = (_gamma_decode(c / 100) for c in (red, green, blue))

    big_x = r * 0.664511 + g * 0.154324 + b * 0.162028
    big_y = r * 0.283881 + g * 0.729798 + b * 0.065885
    big_z = r * 0.000088 + g * 0.077053 + b * 0.950255

    total = big_x + big_y + big_z
    if total == 0:
        return {"x": 0.0, "y": 0.0}

    return {"x": round(big_x / total, 4), "y": round(big_y / total, 4)}


def rgb_to_mirek_fallback(red: float, green: float, blue: float, min_mirek: int, max_mirek: int) -> int:
    """Estimate a mirek value for white-only lights from an RGB color.

    More red relative to blue means warmer light, i.e. a higher mirek.
    """
    if red + blue == 0:
        return round((min_mirek + max_mirek) / 2)
    warmth = red / (red + blue)
    return round(min_mirek + warmth * (max_mirek - min_mirek))


def light_level_to_lux(light_level: int) -> int:
    """Convert a Hue light_level reading to lux."""
    return round(math.pow(10, (light_level - 1) / 10000))
