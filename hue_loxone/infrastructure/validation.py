"""Input validation for the Hue/Loxone bridge.

This module provides validation functions for everything that enters the
bridge from outside. It includes validation for:
- Controller device names (command injection prevention)
- Control values sent by the Loxone Miniserver
- Scene ids and scene actions
- Hostnames, IP addresses, ports and transition times

All validators return a tuple of (is_valid, error_message) where
error_message is None for valid input.
"""

from __future__ import annotations

import ipaddress
import re

DEVICE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,50}$")
COLOR_TEMPERATURE_PATTERN = re.compile(r"^20[0-9]{7,}$")
DIGITS_PATTERN = re.compile(r"^[0-9]+$")
HOSTNAME_PATTERN = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*\.?$")
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

MAX_PACKED_VALUE = 999_999_999
MAX_TRANSITION_TIME = 10_000


def validate_device_name(name: str) -> tuple[bool, str | None]:
    """Validate a controller device name taken from a command URL.

    Args:
        name: Device name as sent by the controller.

    Returns:
        Tuple of (is_valid, error_message).

    Example:
        >>> validate_device_name("kitchen_spots")
        (True, None)
        >>> validate_device_name("kitchen; rm -rf /")
        (False, "Device name must be alphanumeric with optional hyphens/underscores (1-50 chars)")
    """
    if not name or not DEVICE_NAME_PATTERN.match(name):
        return False, "Device name must be alphanumeric with optional hyphens/underscores (1-50 chars)"
    return True, None


def validate_control_value(value: str) -> tuple[bool, str | None]:
    """Validate a raw control value.

    Accepted forms are plain numbers 0-100 (off/on/dimming), packed RGB
    values up to 9 digits and color temperature values ("20" followed by
    at least 7 digits).

    Args:
        value: Raw value string.

    Returns:
        Tuple of (is_valid, error_message).

    Example:
        >>> validate_control_value("55")
        (True, None)
        >>> validate_control_value("201002700")
        (True, None)
        >>> validate_control_value("abc")
        (False, "Value must be 0-100 for dimming or a valid color format")
    """
    value = (value or "").strip()
    if not DIGITS_PATTERN.match(value):
        return False, "Value must be 0-100 for dimming or a valid color format"

    if COLOR_TEMPERATURE_PATTERN.match(value):
        return True, None

    if int(value) <= MAX_PACKED_VALUE:
        return True, None

    return False, "Value must be 0-100 for dimming or a valid color format"


def validate_scene_id(scene_id: str) -> tuple[bool, str | None]:
    """Validate a scene id (UUID format)."""
    if not scene_id or not UUID_PATTERN.match(scene_id):
        return False, "Scene ID must be a valid UUID"
    return True, None


def validate_scene_action(action: str) -> tuple[bool, str | None]:
    """Validate a scene action ("on" or "off", case insensitive)."""
    if (action or "").strip().lower() not in ("on", "off"):
        return False, 'Value must be "on" or "off"'
    return True, None


def validate_host(host: str) -> tuple[bool, str | None]:
    """Check a bridge or Miniserver address before it is used in a URL or socket.

    Both an IP literal and a DNS name are accepted. Loopback addresses are
    allowed so the bridge can talk to a Hue emulator or a Miniserver
    simulator on the same machine; link-local and multicast addresses are
    never a valid unicast peer and are refused.

    Args:
        host: Hostname or IP address from the configuration.

    Returns:
        Tuple of (is_valid, error_message).

    Example:
        >>> validate_host("127.0.0.1")
        (True, None)
        >>> validate_host("hue-bridge.local; reboot")
        (False, "Invalid characters in hostname")
    """
    host = host.strip()
    if not host:
        return False, "Host cannot be empty"

    # Shell metacharacters
    if re.search(r"[;&|`$]", host):
        return False, "Invalid characters in hostname"

    # Bare address only, the scheme is added by the transport
    if "://" in host:
        return False, "Host should not include URL scheme"

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None

    if address is not None:
        if address.is_link_local or address.is_multicast:
            return False, "Invalid IP address range"
        return True, None

    if not HOSTNAME_PATTERN.match(host):
        return False, "Invalid hostname format"
    return True, None


def validate_port(port: int | str) -> tuple[bool, str | None]:
    """Validate a UDP/TCP port number."""
    try:
        number = int(port)
    except (TypeError, ValueError):
        return False, "Port must be a number"
    if not 0 < number <= 65535:
        return False, "Port must be between 1 and 65535"
    return True, None


def validate_transition_time(transition_time: int | float) -> tuple[bool, str | None]:
    """Validate a transition time in milliseconds (0-10000)."""
    if not 0 <= transition_time <= MAX_TRANSITION_TIME:
        return False, f"Transition time must be between 0 and {MAX_TRANSITION_TIME}ms"
    return True, None
