"""Common fixtures for Hue/Loxone bridge tests."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from hue_loxone.config import BridgeConfig, RateLimitSettings, ReconnectSettings, RetrySettings
from hue_loxone.models import MappingEntry


@pytest.fixture
def bridge_config():
    """Create a ready config with all delays set to zero."""
    return BridgeConfig(
        bridge_host="192.168.1.20",
        app_key="test-app-key",
        controller_host="192.168.1.30",
        controller_port=7000,
        retry=RetrySettings(initial_backoff=0.0, max_backoff=0.0),
        rate_limit=RateLimitSettings(light_delay=0.0, grouped_light_delay=0.0, sequence_delay=0.0),
        reconnect=ReconnectSettings(initial_delay=1.0, max_delay=60.0),
    )


@pytest.fixture
def light_entry():
    """Mapping entry of a light with status echo disabled."""
    return MappingEntry(
        controller_name="kitchen",
        upstream_uuid="light-1",
        upstream_kind="light",
        upstream_name="Kitchen Ceiling",
    )


@pytest.fixture
def synced_light_entry():
    """Mapping entry of a light with status echo enabled."""
    return MappingEntry(
        controller_name="hallway",
        upstream_uuid="light-2",
        upstream_kind="light",
        sync_status=True,
    )


@pytest.fixture
def group_entry():
    return MappingEntry(controller_name="livingroom", upstream_uuid="grouped-1", upstream_kind="group")


@pytest.fixture
def sensor_entry():
    return MappingEntry(controller_name="motion_hall", upstream_uuid="motion-1", upstream_kind="sensor")


@pytest.fixture
def button_entry():
    return MappingEntry(controller_name="switch_bed", upstream_uuid="button-1", upstream_kind="button")


@pytest.fixture
def mock_transport():
    """Create a mock HueTransport whose requests succeed."""
    transport = MagicMock()
    transport.request = AsyncMock(return_value={"errors": [], "data": []})
    transport.close = AsyncMock()
    return transport


@pytest.fixture
def mock_sink():
    """Create a mock UDP sink that accepts every send."""
    sink = MagicMock()
    sink.send = MagicMock(return_value=True)
    return sink


@pytest.fixture
def mock_hue_client():
    client = MagicMock()
    client.build_device_map = AsyncMock(return_value=True)
    client.get_light_states = AsyncMock(return_value=[])
    client.get_targets = AsyncMock(return_value=[])
    client.activate_scene = AsyncMock()
    client.get_scene = AsyncMock(return_value=None)
    return client
