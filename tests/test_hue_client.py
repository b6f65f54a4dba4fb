"""Tests for the Hue API facade."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from hue_loxone.constants import UpstreamKind
from hue_loxone.device_registry import DeviceRegistry
from hue_loxone.hue_client import HueClient
from hue_loxone.infrastructure.errors import FatalUpstreamError, TransientUpstreamError

DEVICES = [
    {
        "id": "dev-light",
        "metadata": {"name": "Kitchen Ceiling"},
        "product_data": {"product_name": "Hue color lamp"},
        "services": [{"rid": "light-1", "rtype": "light"}, {"rid": "zb-1", "rtype": "zigbee_connectivity"}],
    },
    {
        "id": "dev-motion",
        "metadata": {"name": "Hall Sensor"},
        "product_data": {"product_name": "Hue motion sensor"},
        "services": [
            {"rid": "motion-1", "rtype": "motion"},
            {"rid": "temp-1", "rtype": "temperature"},
            {"rid": "power-1", "rtype": "device_power"},
        ],
    },
    {
        "id": "dev-dial",
        "metadata": {"name": "Bedroom Dial"},
        "product_data": {"product_name": "Hue tap dial switch"},
        "services": [
            {"rid": "button-1", "rtype": "button"},
            {"rid": "button-2", "rtype": "button"},
            {"rid": "rotary-1", "rtype": "relative_rotary"},
        ],
    },
    {
        "id": "dev-bridge",
        "metadata": {"name": "Hue Bridge"},
        "product_data": {"product_name": "Hue Bridge"},
        "services": [{"rid": "bridge-1", "rtype": "bridge"}],
    },
]

LIGHTS = [
    {
        "id": "light-1",
        "metadata": {"name": "Kitchen Ceiling"},
        "on": {"on": True},
        "color": {"xy": {"x": 0.3, "y": 0.3}},
        "color_temperature": {"mirek": None, "mirek_schema": {"mirek_minimum": 153, "mirek_maximum": 454}},
    }
]

ROOMS = [{"id": "room-1", "type": "room", "metadata": {"name": "Living Room"}, "services": [{"rid": "grouped-1", "rtype": "grouped_light"}]}]
ZONES = [{"id": "zone-1", "type": "zone", "metadata": {"name": "Downstairs"}, "services": []}]


def routed_transport(routes):
    """Create a transport answering GET requests from a path table."""

    async def request(method, path, body=None):
        value = routes[path]
        if isinstance(value, Exception):
            raise value
        return {"errors": [], "data": value}

    transport = MagicMock()
    transport.request = AsyncMock(side_effect=request)
    return transport


@pytest.fixture
def routes():
    return {"/device": DEVICES, "/light": LIGHTS, "/room": ROOMS, "/zone": ZONES}


class TestDeviceMap:
    """Tests for build_device_map."""

    @pytest.mark.asyncio
    async def test_builds_identities_and_capabilities(self, routes):
        registry = DeviceRegistry()
        client = HueClient(routed_transport(routes), registry)

        assert await client.build_device_map() is True

        temp = registry.get_identity("temp-1")
        assert temp.device_id == "dev-motion"
        assert temp.device_name == "Hall Sensor"
        assert temp.service_kind == "temperature"

        caps = registry.get_capabilities("light-1")
        assert caps.supports_color is True
        assert caps.supports_color_temperature is True
        assert caps.max_mirek == 454

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_map(self, routes):
        registry = DeviceRegistry()
        client = HueClient(routed_transport(routes), registry)
        await client.build_device_map()

        routes["/device"] = TransientUpstreamError("HTTP 503", status=503)
        assert await client.build_device_map() is False

        assert registry.get_identity("temp-1") is not None


class TestTargets:
    """Tests for get_targets."""

    @pytest.mark.asyncio
    async def test_lists_all_target_kinds_sorted(self, routes):
        client = HueClient(routed_transport(routes), DeviceRegistry())

        targets = await client.get_targets()

        assert [(t.name, t.kind, t.uuid) for t in targets] == [
            ("Bedroom Dial (Drehring)", UpstreamKind.BUTTON, "rotary-1"),
            ("Bedroom Dial (Taste 1)", UpstreamKind.BUTTON, "button-1"),
            ("Bedroom Dial (Taste 2)", UpstreamKind.BUTTON, "button-2"),
            ("Hall Sensor", UpstreamKind.SENSOR, "motion-1"),
            ("Kitchen Ceiling", UpstreamKind.LIGHT, "light-1"),
            ("Living Room", UpstreamKind.GROUP, "grouped-1"),
        ]
        assert targets[4].capabilities.max_mirek == 454

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, routes):
        routes["/room"] = TransientUpstreamError("ETIMEDOUT", condition="ETIMEDOUT")
        client = HueClient(routed_transport(routes), DeviceRegistry())

        assert await client.get_targets() == []


class TestScenes:
    """Tests for scene operations."""

    @pytest.mark.asyncio
    async def test_get_scenes_resolves_names(self, routes):
        routes["/scene"] = [
            {
                "id": "scene-1",
                "metadata": {"name": "Relax"},
                "group": {"rid": "room-1", "rtype": "room"},
                "actions": [
                    {"target": {"rid": "light-1", "rtype": "light"}, "action": {"on": {"on": True}}},
                    {"target": {"rid": "light-gone", "rtype": "light"}, "action": {}},
                ],
                "speed": 0.5,
            },
            {"id": "scene-2", "metadata": {}, "actions": []},
        ]
        client = HueClient(routed_transport(routes), DeviceRegistry())

        scenes = await client.get_scenes()

        assert [s.name for s in scenes] == ["Relax", "Unnamed Scene"]
        relax = scenes[0]
        assert relax.light_count == 1
        assert relax.lights[0].name == "Kitchen Ceiling"
        assert relax.group.name == "Living Room"
        assert relax.speed == 0.5

    @pytest.mark.asyncio
    async def test_activate_scene(self, mock_transport):
        client = HueClient(mock_transport, DeviceRegistry())

        await client.activate_scene("scene-1")

        mock_transport.request.assert_awaited_once_with("PUT", "/scene/scene-1", {"recall": {"action": "active"}})

    @pytest.mark.asyncio
    async def test_activate_unknown_scene_raises(self, mock_transport):
        mock_transport.request.side_effect = FatalUpstreamError("HTTP 404", status=404)
        client = HueClient(mock_transport, DeviceRegistry())

        with pytest.raises(FatalUpstreamError):
            await client.activate_scene("missing")

    @pytest.mark.asyncio
    async def test_get_scene(self, routes):
        routes["/scene/scene-1"] = [{"id": "scene-1", "actions": []}]
        routes["/scene/scene-2"] = []
        client = HueClient(routed_transport(routes), DeviceRegistry())

        assert (await client.get_scene("scene-1"))["id"] == "scene-1"
        assert await client.get_scene("scene-2") is None


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_critical_devices_first(self, routes):
        routes["/zigbee_connectivity"] = [
            {"owner": {"rid": "dev-light"}, "status": "connected", "mac_address": "00:17:88:01:00:00:00:01"},
            {"owner": {"rid": "dev-dial"}, "status": "connectivity_issue", "mac_address": "00:17:88:01:00:00:00:02"},
        ]
        routes["/device_power"] = [{"owner": {"rid": "dev-motion"}, "power_state": {"battery_level": 15}}]
        client = HueClient(routed_transport(routes), DeviceRegistry())

        diagnostics = await client.get_diagnostics()

        assert [(d.name, d.kind) for d in diagnostics] == [
            ("Bedroom Dial", "button"),
            ("Hall Sensor", "sensor"),
            ("Hue Bridge", "bridge"),
            ("Kitchen Ceiling", "light"),
        ]
        assert diagnostics[1].battery == 15
        assert diagnostics[2].status == "connected"
        assert diagnostics[3].mac == "00:17:88:01:00:00:00:01"
