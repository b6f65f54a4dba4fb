"""Read and scene operations against the Hue CLIP v2 resource API.

Light writes do not go through this class; they are sent by the
CommandDispatcher. HueClient covers inventory reads (device map, targets,
light states, scenes, diagnostics) and scene recall.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .constants import ResourceKind, UpstreamKind
from .device_registry import DeviceRegistry
from .infrastructure.api import HueTransport
from .infrastructure.errors import HueBridgeError
from .models import (
    DeviceIdentity,
    DiagnosticEntry,
    LightCapabilities,
    SceneGroup,
    SceneInfo,
    SceneLight,
    Target,
)

_LOGGER = logging.getLogger(__name__)


def _items(response: Any) -> list[dict[str, Any]]:
    """Extract the data list of a CLIP v2 response."""
    if isinstance(response, dict):
        data = response.get("data")
        if isinstance(data, list):
            return data
    return []


def _name(resource: dict[str, Any], default: str = "") -> str:
    return (resource.get("metadata") or {}).get("name", default)


def _services(resource: dict[str, Any], rtype: str) -> list[dict[str, Any]]:
    return [s for s in resource.get("services", []) if s.get("rtype") == rtype]


class HueClient:
    """Inventory and scene access for one Hue bridge.

    Args:
        transport: Retrying transport for the bridge.
        registry: Device registry replaced by build_device_map.
    """

    def __init__(self, transport: HueTransport, registry: DeviceRegistry):
        self.transport = transport
        self.registry = registry

    async def _get(self, kind: ResourceKind | str, resource_id: str | None = None) -> Any:
        kind = kind.value if isinstance(kind, ResourceKind) else kind
        path = f"/{kind}/{resource_id}" if resource_id else f"/{kind}"
        return await self.transport.request("GET", path)

    async def build_device_map(self) -> bool:
        """Rebuild the device identity map and light capabilities.

        The registry is replaced as a whole; on failure the previous map
        stays in place.

        Returns:
            True when the registry was replaced.
        """
        try:
            devices_res, lights_res = await asyncio.gather(
                self._get(ResourceKind.DEVICE), self._get(ResourceKind.LIGHT)
            )
        except HueBridgeError as e:
            _LOGGER.error("Failed to build device map: %s", e)
            return False

        identities: dict[str, DeviceIdentity] = {}
        for device in _items(devices_res):
            for service in device.get("services", []):
                identities[service["rid"]] = DeviceIdentity(
                    device_id=device["id"],
                    device_name=_name(device),
                    service_kind=service.get("rtype", ""),
                )

        capabilities = {
            light["id"]: LightCapabilities.from_light_resource(light) for light in _items(lights_res)
        }

        self.registry.replace(identities, capabilities)
        _LOGGER.info("Device map built successfully")
        return True

    async def get_targets(self) -> list[Target]:
        """List every resource that can be bound to a controller name.

        The device map is rebuilt first so capabilities are current.
        """
        await self.build_device_map()

        try:
            lights_res, rooms_res, zones_res, devices_res = await asyncio.gather(
                self._get(ResourceKind.LIGHT),
                self._get(ResourceKind.ROOM),
                self._get(ResourceKind.ZONE),
                self._get(ResourceKind.DEVICE),
            )
        except HueBridgeError as e:
            _LOGGER.error("Failed to get targets: %s", e)
            return []

        targets = [
            Target(
                uuid=light["id"],
                name=_name(light),
                kind=UpstreamKind.LIGHT,
                capabilities=self.registry.get_capabilities(light["id"]),
            )
            for light in _items(lights_res)
        ]

        for group in _items(rooms_res) + _items(zones_res):
            grouped = _services(group, ResourceKind.GROUPED_LIGHT.value)
            if grouped:
                targets.append(Target(uuid=grouped[0]["rid"], name=_name(group), kind=UpstreamKind.GROUP))

        for device in _items(devices_res):
            device_name = _name(device)

            motion = _services(device, "motion")
            if motion:
                targets.append(Target(uuid=motion[0]["rid"], name=device_name, kind=UpstreamKind.SENSOR))

            buttons = _services(device, "button")
            for index, button in enumerate(buttons, start=1):
                suffix = f" (Taste {index})" if len(buttons) > 1 else ""
                targets.append(Target(uuid=button["rid"], name=f"{device_name}{suffix}", kind=UpstreamKind.BUTTON))

            rotary = _services(device, "relative_rotary")
            if rotary:
                targets.append(
                    Target(uuid=rotary[0]["rid"], name=f"{device_name} (Drehring)", kind=UpstreamKind.BUTTON)
                )

        targets.sort(key=lambda t: t.name.lower())
        return targets

    async def get_light_states(self) -> list[dict[str, Any]]:
        """Get the current state of all lights, [] on failure."""
        try:
            return _items(await self._get(ResourceKind.LIGHT))
        except HueBridgeError as e:
            _LOGGER.error("Failed to get light states: %s", e)
            return []

    async def get_scenes(self) -> list[SceneInfo]:
        """Get all scenes with light names and owning room/zone resolved."""
        try:
            scenes_res, lights_res, rooms_res, zones_res = await asyncio.gather(
                self._get(ResourceKind.SCENE),
                self._get(ResourceKind.LIGHT),
                self._get(ResourceKind.ROOM),
                self._get(ResourceKind.ZONE),
            )
        except HueBridgeError as e:
            _LOGGER.error("Failed to get scenes: %s", e)
            return []

        light_names = {light["id"]: _name(light) for light in _items(lights_res)}
        groups = {
            group["id"]: SceneGroup(uuid=group["id"], name=_name(group), kind=group.get("type", "room"))
            for group in _items(rooms_res) + _items(zones_res)
        }

        scenes = []
        for scene in _items(scenes_res):
            lights = []
            for action in scene.get("actions") or []:
                rid = (action.get("target") or {}).get("rid")
                if rid in light_names:
                    lights.append(SceneLight(uuid=rid, name=light_names[rid], action=action.get("action") or {}))

            group_rid = (scene.get("group") or {}).get("rid")
            scenes.append(
                SceneInfo(
                    uuid=scene["id"],
                    name=_name(scene, "Unnamed Scene"),
                    lights=lights,
                    group=groups.get(group_rid),
                    speed=scene.get("speed"),
                    palette=scene.get("palette"),
                )
            )

        scenes.sort(key=lambda s: s.name.lower())
        return scenes

    async def get_scene(self, scene_id: str) -> dict[str, Any] | None:
        """Get a single raw scene resource."""
        items = _items(await self._get(ResourceKind.SCENE, scene_id))
        return items[0] if items else None

    async def activate_scene(self, scene_id: str) -> None:
        """Recall a scene.

        Raises:
            HueBridgeError: If the bridge rejects or cannot be reached.
        """
        _LOGGER.info("Activating scene %s", scene_id)
        await self.transport.request("PUT", f"/scene/{scene_id}", {"recall": {"action": "active"}})
        _LOGGER.info("Scene %s activated", scene_id)

    async def get_diagnostics(self) -> list[DiagnosticEntry]:
        """Get connectivity and battery state of all devices.

        Critical devices (disconnected, connectivity issues, battery <= 20%)
        come first, then the list is ordered by kind and name.
        """
        zigbee_res, devices_res, power_res = await asyncio.gather(
            self._get(ResourceKind.ZIGBEE_CONNECTIVITY),
            self._get(ResourceKind.DEVICE),
            self._get(ResourceKind.DEVICE_POWER),
        )

        zigbee_by_owner = {
            (z.get("owner") or {}).get("rid"): z for z in _items(zigbee_res)
        }
        power_by_owner = {
            (p.get("owner") or {}).get("rid"): p.get("power_state") or {} for p in _items(power_res)
        }

        result = []
        for device in _items(devices_res):
            rtypes = {s.get("rtype") for s in device.get("services", [])}
            product = (device.get("product_data") or {}).get("product_name", "")

            if "light" in rtypes:
                kind = "light"
            elif "motion" in rtypes:
                kind = "sensor"
            elif rtypes & {"button", "relative_rotary"}:
                kind = "button"
            elif "bridge" in product.lower():
                kind = "bridge"
            else:
                kind = "other"

            zigbee = zigbee_by_owner.get(device["id"])
            power = power_by_owner.get(device["id"])
            if not zigbee and not power and kind != "bridge":
                continue

            if zigbee:
                status = zigbee.get("status", "unknown")
            else:
                status = "connected" if kind == "bridge" else "unknown"

            result.append(
                DiagnosticEntry(
                    name=_name(device),
                    model=product,
                    kind=kind,
                    status=status,
                    mac=zigbee.get("mac_address", "-") if zigbee else "-",
                    battery=power.get("battery_level") if power else None,
                    last_seen=zigbee.get("last_seen") if zigbee else None,
                )
            )

        result.sort(key=lambda d: (not d.is_critical, d.kind, d.name.lower()))
        return result
