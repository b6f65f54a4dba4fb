"""Status cache and forwarding decisions.

The StatusReconciler keeps the last known value of every attribute per
controller device name. Level attributes (on, bri, hex, temp, ...) are only
forwarded when their value changes. Event attributes (button, rotary) are
momentary and forwarded on every occurrence.

Whether a change leaves the bridge at all depends on the device class:
sensors and buttons always forward, lights and groups only when their
mapping entry opts into status echo.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from .constants import EVENT_ATTRIBUTES, StatusAttribute, UpstreamKind
from .models import LightCommand, MappingEntry
from .udp import LoxoneUdpSink

_LOGGER = logging.getLogger(__name__)


class StatusReconciler:
    """Deduplicating status cache in front of the UDP sink."""

    def __init__(self, sink: LoxoneUdpSink):
        self._sink = sink
        self._cache: dict[str, dict[str, Any]] = {}

    @staticmethod
    def should_forward(entry: MappingEntry) -> bool:
        if entry.upstream_kind in (UpstreamKind.SENSOR, UpstreamKind.BUTTON):
            return True
        return entry.sync_status

    def update(self, device_name: str, attribute: str, value: Any, entry: MappingEntry) -> bool:
        """Record a value and forward it when required.

        Args:
            device_name: Controller device name.
            attribute: Attribute suffix.
            value: New value.
            entry: Mapping entry of the device.

        Returns:
            True when a datagram was sent.
        """
        attribute = attribute.value if isinstance(attribute, StatusAttribute) else attribute
        device_status = self._cache.setdefault(device_name, {})

        is_event = attribute in EVENT_ATTRIBUTES
        if not is_event and attribute in device_status and device_status[attribute] == value:
            return False

        device_status[attribute] = value

        if not self.should_forward(entry):
            return False
        return self._sink.send(device_name, attribute, value)

    def apply_command(self, command: LightCommand) -> None:
        """Update the cache from a payload the bridge accepted.

        Called right after a successful PUT so the cache reflects the new
        state before the matching event arrives from the stream.
        """
        entry = command.entry
        if entry is None:
            return
        payload = command.payload
        if "on" in payload:
            self.update(entry.controller_name, StatusAttribute.ON, 1 if payload["on"].get("on") else 0, entry)
        if "dimming" in payload:
            self.update(entry.controller_name, StatusAttribute.BRIGHTNESS, payload["dimming"].get("brightness"), entry)

    def get(self, device_name: str) -> dict[str, Any]:
        return dict(self._cache.get(device_name, {}))

    def get_all(self) -> dict[str, dict[str, Any]]:
        return {name: dict(values) for name, values in self._cache.items()}

    def clear(self, device_name: str) -> None:
        self._cache.pop(device_name, None)

    def clear_all(self) -> None:
        self._cache.clear()
        _LOGGER.info("Status cache cleared")

    def cleanup(self, valid_names: Iterable[str]) -> int:
        """Drop cache entries for device names no longer mapped.

        Returns:
            Number of removed entries.
        """
        valid = set(valid_names)
        stale = [name for name in self._cache if name not in valid]
        for name in stale:
            del self._cache[name]
        if stale:
            _LOGGER.info("Cleaned up %d stale status entries", len(stale))
        return len(stale)

    def get_stats(self) -> dict[str, Any]:
        return {"size": len(self._cache), "devices": list(self._cache)}
