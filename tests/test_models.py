"""Tests for Pydantic data models."""

import pytest
from pydantic import ValidationError

from hue_loxone.constants import ResourceKind, UpstreamKind
from hue_loxone.models import (
    DiagnosticEntry,
    LightCapabilities,
    LightCommand,
    MappingEntry,
    SinkStats,
    parse_mapping_entry,
)


class TestMappingEntry:
    """Tests for MappingEntry model."""

    def test_from_mapping_file_keys(self):
        entry = MappingEntry.model_validate(
            {"loxone_name": "kitchen", "hue_uuid": "abc", "hue_name": "Kitchen", "hue_type": "group", "sync_lox": True}
        )

        assert entry.controller_name == "kitchen"
        assert entry.upstream_kind == UpstreamKind.GROUP
        assert entry.resource_kind == ResourceKind.GROUPED_LIGHT
        assert entry.sync_status is True

    def test_defaults(self):
        entry = MappingEntry(controller_name="kitchen", upstream_uuid="abc", upstream_kind="light")
        assert entry.upstream_name == ""
        assert entry.sync_status is False
        assert entry.resource_kind == ResourceKind.LIGHT

    def test_dump_uses_file_keys(self):
        entry = MappingEntry(controller_name="kitchen", upstream_uuid="abc", upstream_kind="light")
        assert entry.model_dump(by_alias=True) == {
            "loxone_name": "kitchen",
            "hue_uuid": "abc",
            "hue_type": UpstreamKind.LIGHT,
            "hue_name": "",
            "sync_lox": False,
        }

    def test_matches_name_case_insensitive(self):
        entry = MappingEntry(controller_name="Kitchen", upstream_uuid="abc", upstream_kind="light")
        assert entry.matches_name("kitchen")
        assert not entry.matches_name("kitchen2")

    def test_invalid_kind(self):
        with pytest.raises(ValidationError):
            MappingEntry(controller_name="kitchen", upstream_uuid="abc", upstream_kind="thermostat")

    def test_frozen(self):
        entry = MappingEntry(controller_name="kitchen", upstream_uuid="abc", upstream_kind="light")
        with pytest.raises(ValidationError):
            entry.controller_name = "other"

    def test_parse_mapping_entry(self):
        assert parse_mapping_entry({"loxone_name": "x"}) is None
        assert parse_mapping_entry({"loxone_name": "x", "hue_uuid": "y", "hue_type": "button"}) is not None


def test_upstream_kind_controllable():
    assert UpstreamKind.LIGHT.is_controllable
    assert UpstreamKind.GROUP.is_controllable
    assert not UpstreamKind.SENSOR.is_controllable
    assert not UpstreamKind.BUTTON.is_controllable


class TestLightCapabilities:
    def test_from_color_light(self):
        caps = LightCapabilities.from_light_resource(
            {
                "id": "light-1",
                "color": {"xy": {"x": 0.3, "y": 0.3}},
                "color_temperature": {"mirek_schema": {"mirek_minimum": 153, "mirek_maximum": 454}},
            }
        )
        assert caps == LightCapabilities(
            supports_color=True, supports_color_temperature=True, min_mirek=153, max_mirek=454
        )

    def test_from_white_light_uses_default_range(self):
        caps = LightCapabilities.from_light_resource({"id": "light-2", "dimming": {"brightness": 50}})
        assert caps.supports_color is False
        assert caps.supports_color_temperature is False
        assert (caps.min_mirek, caps.max_mirek) == (153, 500)


def test_light_command_kind_validated():
    command = LightCommand(target_id="light-1", resource_kind="grouped_light", payload={})
    assert command.resource_kind == ResourceKind.GROUPED_LIGHT

    with pytest.raises(ValidationError):
        LightCommand(target_id="", resource_kind="light", payload={})


@pytest.mark.parametrize(
    ("status", "battery", "critical"),
    [
        ("connected", None, False),
        ("connected", 21, False),
        ("connected", 20, True),
        ("disconnected", None, True),
        ("connectivity_issue", 90, True),
    ],
)
def test_diagnostic_critical(status, battery, critical):
    assert DiagnosticEntry(name="x", status=status, battery=battery).is_critical is critical


def test_sink_stats_error_rate():
    assert SinkStats().error_rate == 0.0
    assert SinkStats(success_count=3, error_count=1).error_rate == 0.25
