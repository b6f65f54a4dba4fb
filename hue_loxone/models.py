"""Data models for the Hue/Loxone bridge.

This module provides Pydantic models for structured data representation
with validation and type safety: mapping entries, the device identity and
capability records built from the Hue inventory, commands flowing through
the dispatcher and the status/statistics records exposed for monitoring.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .constants import COLOR_DEFAULTS, ResourceKind, UpstreamKind


class BridgeModel(BaseModel):
    """Base model for all bridge data structures."""

    model_config = {"validate_assignment": True, "populate_by_name": True}


class MappingEntry(BridgeModel):
    """Static binding of a controller name to a Hue resource.

    Field aliases match the keys of the mapping file written by the web UI.

    Example:
        >>> entry = MappingEntry.model_validate(
        ...     {"loxone_name": "kitchen", "hue_uuid": "abc", "hue_type": "light"}
        ... )
        >>> entry.upstream_kind.resource_kind
        <ResourceKind.LIGHT: 'light'>
    """

    model_config = {"frozen": True, "populate_by_name": True}

    controller_name: str = Field(..., alias="loxone_name", min_length=1, max_length=100)
    upstream_uuid: str = Field(..., alias="hue_uuid", min_length=1)
    upstream_kind: UpstreamKind = Field(..., alias="hue_type")
    upstream_name: str = Field(default="", alias="hue_name")
    sync_status: bool = Field(
        default=False,
        alias="sync_lox",
        description="Echo light/group state changes to the controller",
    )

    @property
    def resource_kind(self) -> ResourceKind:
        return self.upstream_kind.resource_kind

    def matches_name(self, name: str) -> bool:
        return self.controller_name.lower() == name.lower()


class DeviceIdentity(BridgeModel):
    """Logical device a Hue service belongs to."""

    model_config = {"frozen": True}

    device_id: str
    device_name: str
    service_kind: str


class LightCapabilities(BridgeModel):
    """Color capabilities of a single light.

    Attributes:
        supports_color: Light accepts xy colors.
        supports_color_temperature: Light accepts mirek values.
        min_mirek: Coolest supported color temperature.
        max_mirek: Warmest supported color temperature.
    """

    model_config = {"frozen": True}

    supports_color: bool = False
    supports_color_temperature: bool = False
    min_mirek: int = COLOR_DEFAULTS.HUE_MIN_MIREK
    max_mirek: int = COLOR_DEFAULTS.HUE_MAX_MIREK

    @classmethod
    def from_light_resource(cls, light: dict[str, Any]) -> LightCapabilities:
        """Derive capabilities from a CLIP v2 light resource."""
        color_temperature = light.get("color_temperature") or {}
        schema = color_temperature.get("mirek_schema") or {}
        return cls(
            supports_color=bool(light.get("color")),
            supports_color_temperature=bool(light.get("color_temperature")),
            min_mirek=schema.get("mirek_minimum") or COLOR_DEFAULTS.HUE_MIN_MIREK,
            max_mirek=schema.get("mirek_maximum") or COLOR_DEFAULTS.HUE_MAX_MIREK,
        )


class Target(BridgeModel):
    """A Hue resource that can be bound to a controller name."""

    model_config = {"frozen": True}

    uuid: str
    name: str
    kind: UpstreamKind
    capabilities: LightCapabilities | None = None


class SceneLight(BridgeModel):
    uuid: str
    name: str
    action: dict[str, Any] = Field(default_factory=dict)


class SceneGroup(BridgeModel):
    uuid: str
    name: str
    kind: str


class SceneInfo(BridgeModel):
    """A scene with light names and owning room/zone resolved."""

    uuid: str
    name: str = "Unnamed Scene"
    lights: list[SceneLight] = Field(default_factory=list)
    group: SceneGroup | None = None
    speed: float | None = None
    palette: dict[str, Any] | None = None

    @property
    def light_count(self) -> int:
        return len(self.lights)


class DiagnosticEntry(BridgeModel):
    """Connectivity and battery state of one Hue device."""

    name: str
    model: str = ""
    kind: str = "other"
    status: str = "unknown"
    mac: str = "-"
    battery: int | None = None
    last_seen: str | None = None

    @property
    def is_critical(self) -> bool:
        if self.status in ("connectivity_issue", "disconnected"):
            return True
        return self.battery is not None and self.battery <= 20


class LightCommand(BridgeModel):
    """A payload addressed to one light or grouped_light resource."""

    model_config = {"frozen": True}

    target_id: str = Field(..., min_length=1)
    resource_kind: ResourceKind
    payload: dict[str, Any]
    source_name: str = ""
    entry: MappingEntry | None = None


class DetectedItem(BridgeModel):
    """A controller name that sent a command but is not mapped yet."""

    model_config = {"frozen": True}

    kind: str = "command"
    name: str
    id: str


class EventStreamStatus(BridgeModel):
    """Snapshot of the event stream session exposed for monitoring."""

    state: str
    active: bool
    healthy: bool
    reconnect_attempts: int = Field(default=0, ge=0)
    last_event_at: float
    seconds_since_last_event: float


class SinkStats(BridgeModel):
    """UDP delivery statistics."""

    success_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    last_error: str | None = None

    @property
    def error_rate(self) -> float:
        total = self.success_count + self.error_count
        if total == 0:
            return 0.0
        return self.error_count / total


def parse_mapping_entry(raw: dict[str, Any]) -> MappingEntry | None:
    """Parse a raw mapping dict, returning None when it is invalid."""
    try:
        return MappingEntry.model_validate(raw)
    except (ValidationError, TypeError):
        return None
