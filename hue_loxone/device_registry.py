"""Device identity and capability lookup built from the Hue inventory."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .models import DeviceIdentity, LightCapabilities, MappingEntry

_LOGGER = logging.getLogger(__name__)


class DeviceRegistry:
    """Read-mostly lookup tables shared by the command and event paths.

    Both tables are only ever replaced as a whole, never patched, so readers
    always see a consistent snapshot.
    """

    def __init__(self):
        self._identities: dict[str, DeviceIdentity] = {}
        self._capabilities: dict[str, LightCapabilities] = {}

    def replace(
        self,
        identities: Mapping[str, DeviceIdentity],
        capabilities: Mapping[str, LightCapabilities],
    ) -> None:
        self._identities = dict(identities)
        self._capabilities = dict(capabilities)
        _LOGGER.debug(
            "Device registry replaced: %d services, %d lights", len(self._identities), len(self._capabilities)
        )

    def get_identity(self, service_id: str) -> DeviceIdentity | None:
        return self._identities.get(service_id)

    def get_capabilities(self, light_id: str) -> LightCapabilities | None:
        return self._capabilities.get(light_id)

    @property
    def identities(self) -> dict[str, DeviceIdentity]:
        return dict(self._identities)

    @property
    def capabilities(self) -> dict[str, LightCapabilities]:
        return dict(self._capabilities)

    def resolve_entry(self, service_id: str, mapping: Iterable[MappingEntry]) -> MappingEntry | None:
        """Find the mapping entry a service belongs to.

        A direct id match wins. Otherwise an entry is returned whose service
        sits on the same physical device, e.g. the temperature service of a
        motion sensor mapped by its motion service id.

        Args:
            service_id: Id of the service that produced an event.
            mapping: Current mapping entries.

        Returns:
            Matching entry or None.
        """
        entries = list(mapping)
        for entry in entries:
            if entry.upstream_uuid == service_id:
                return entry

        identity = self._identities.get(service_id)
        if identity is None:
            return None

        for entry in entries:
            sibling = self._identities.get(entry.upstream_uuid)
            if sibling is not None and sibling.device_id == identity.device_id:
                return entry
        return None
