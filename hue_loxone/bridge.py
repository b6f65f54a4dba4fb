"""Bridge facade wiring every component together.

HueLoxoneBridge owns one instance of each component for a single Hue
bridge and a single Miniserver, and exposes the inbound control surface
used by the HTTP layer:

- submit_command(name, value) for light and group control values
- submit_scene_activation(scene_id, action) for scene recall/off
- update_mapping(entries) when the mapping file changes
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from enum import Enum
from typing import Any

from .config import BridgeConfig
from .constants import ALL_LIGHTS_NAMES, MAX_DETECTED_ITEMS, PSEUDO_ALL_UUID, ResourceKind, UpstreamKind
from .device_registry import DeviceRegistry
from .dispatcher import CommandDispatcher
from .event_stream import EventStreamConsumer
from .hue_client import HueClient
from .infrastructure.api import HueTransport
from .infrastructure.errors import BridgeValidationError, FatalUpstreamError
from .infrastructure.rate_limiter import RateLimiter
from .infrastructure.tracking import RequestTracker
from .infrastructure.validation import (
    validate_control_value,
    validate_device_name,
    validate_scene_action,
    validate_scene_id,
)
from .models import DetectedItem, MappingEntry, Target
from .payload import build_light_payload
from .status import StatusReconciler
from .udp import LoxoneUdpSink

_LOGGER = logging.getLogger(__name__)


class CommandOutcome(str, Enum):
    """Result of an inbound command."""

    OK = "ok"
    RECORDED = "recorded"
    SEQUENCE_STARTED = "sequence_started"
    READ_ONLY = "read_only"
    NOT_READY = "not_ready"


class HueLoxoneBridge:
    """One Hue bridge, one Miniserver.

    Args:
        config: Runtime configuration.
        mapping: Initial mapping entries.
        session: Optional aiohttp session shared with the host application.
    """

    def __init__(self, config: BridgeConfig, mapping: Iterable[MappingEntry] = (), session=None):
        self.config = config
        self._mapping: list[MappingEntry] = list(mapping)

        self.tracker = RequestTracker()
        self.transport = HueTransport.from_config(config, tracker=self.tracker, session=session)
        self.rate_limiter = RateLimiter(config.rate_limit.light_delay, config.rate_limit.grouped_light_delay)
        self.registry = DeviceRegistry()
        self.sink = LoxoneUdpSink(config.controller_host, config.controller_port, debug=config.debug)
        self.reconciler = StatusReconciler(self.sink)
        self.dispatcher = CommandDispatcher(self.transport, self.rate_limiter, on_success=self.reconciler.apply_command)
        self.hue_client = HueClient(self.transport, self.registry)
        self.event_stream = EventStreamConsumer(
            self.transport,
            self.hue_client,
            self.registry,
            self.reconciler,
            mapping_provider=lambda: self._mapping,
            reconnect=config.reconnect,
            debug=config.debug,
        )

        self.detected_items: deque[DetectedItem] = deque(maxlen=MAX_DETECTED_ITEMS)
        self._sequences: set[asyncio.Task] = set()

    @property
    def mapping(self) -> list[MappingEntry]:
        return list(self._mapping)

    async def start(self) -> None:
        """Open the UDP sink, build the device map and start the event stream."""
        await self.sink.open()
        if not self.config.is_ready:
            _LOGGER.warning("Bridge not configured, waiting for setup")
            return

        await self.hue_client.build_device_map()
        self.event_stream.start()
        _LOGGER.info("Hue/Loxone bridge started")

    async def stop(self) -> None:
        """Stop the event stream and all background work, close connections."""
        await self.event_stream.stop()

        sequences = list(self._sequences)
        for task in sequences:
            task.cancel()
        await asyncio.gather(*sequences, return_exceptions=True)

        await self.rate_limiter.close()
        self.sink.close()
        await self.transport.close()
        _LOGGER.info("Hue/Loxone bridge stopped")

    def find_entry(self, name: str) -> MappingEntry | None:
        for entry in self._mapping:
            if entry.matches_name(name):
                return entry
        return None

    def submit_command(self, name: str, value: str) -> CommandOutcome:
        """Handle a control value sent by the Miniserver.

        Args:
            name: Controller device name.
            value: Raw control value.

        Returns:
            What was done with the command.

        Raises:
            BridgeValidationError: If name or value are malformed.
        """
        for is_valid, error in (validate_device_name(name), validate_control_value(value)):
            if not is_valid:
                _LOGGER.warning("Invalid command /%s/%s: %s", name, value, error)
                raise BridgeValidationError(error)

        _LOGGER.debug("Command: /%s/%s", name, value)

        if not self.config.is_ready:
            return CommandOutcome.NOT_READY

        search = name.lower()
        entry = self.find_entry(search)

        if search in ALL_LIGHTS_NAMES or (entry is not None and entry.upstream_uuid == PSEUDO_ALL_UUID):
            self._start_sequence(value)
            return CommandOutcome.SEQUENCE_STARTED

        if entry is None:
            self._record_detected(name)
            return CommandOutcome.RECORDED

        if not entry.upstream_kind.is_controllable:
            return CommandOutcome.READ_ONLY

        self._dispatch(entry, value)
        return CommandOutcome.OK

    def _dispatch(self, entry: MappingEntry, value: str, forced_duration: int | None = None) -> None:
        capabilities = None
        if entry.upstream_kind == UpstreamKind.LIGHT:
            capabilities = self.registry.get_capabilities(entry.upstream_uuid)

        payload = build_light_payload(value, capabilities, self.config.transition_time, forced_duration)
        self.dispatcher.submit(entry.upstream_uuid, entry.resource_kind, payload, entry.controller_name, entry)

    def _record_detected(self, name: str) -> None:
        search = name.lower()
        if any(item.name.lower() == search for item in self.detected_items):
            return
        self.detected_items.append(DetectedItem(name=name, id=f"cmd_{name}"))
        _LOGGER.info("Unmapped command recorded: %s", name)

    def _start_sequence(self, value: str) -> None:
        targets = [
            entry
            for entry in self._mapping
            if entry.upstream_kind.is_controllable and entry.upstream_uuid != PSEUDO_ALL_UUID
        ]
        task = asyncio.get_running_loop().create_task(self._run_sequence(targets, value))
        self._sequences.add(task)
        task.add_done_callback(self._sequences.discard)

    async def _run_sequence(self, targets: list[MappingEntry], value: str) -> None:
        _LOGGER.info("Starting sequence for %d devices...", len(targets))
        for target in targets:
            self._dispatch(target, value, forced_duration=0)
            await asyncio.sleep(self.config.rate_limit.sequence_delay)
        _LOGGER.info("Sequence completed")

    async def submit_scene_activation(self, scene_id: str, action: str) -> CommandOutcome:
        """Recall a scene ("on") or switch off its lights ("off").

        Raises:
            BridgeValidationError: If scene id or action are malformed.
            FatalUpstreamError: If the scene does not exist.
            TransientUpstreamError: If recalling the scene kept failing.
        """
        for is_valid, error in (validate_scene_id(scene_id), validate_scene_action(action)):
            if not is_valid:
                _LOGGER.warning("Invalid scene command /scene/%s/%s: %s", scene_id, action, error)
                raise BridgeValidationError(error)

        if not self.config.is_ready:
            return CommandOutcome.NOT_READY

        if action.strip().lower() == "on":
            await self.hue_client.activate_scene(scene_id)
            return CommandOutcome.OK

        scene = await self.hue_client.get_scene(scene_id)
        if scene is None:
            raise FatalUpstreamError(f"Scene {scene_id} does not exist", status=404)

        light_ids = [
            scene_action["target"]["rid"]
            for scene_action in scene.get("actions") or []
            if (scene_action.get("target") or {}).get("rid")
        ]
        if not light_ids:
            _LOGGER.warning("Scene %s has no lights to turn off", scene_id)
            return CommandOutcome.OK

        for light_id in light_ids:
            self.dispatcher.submit(light_id, ResourceKind.LIGHT, {"on": {"on": False}}, source_name=f"scene:{scene_id}")
        _LOGGER.info("Scene %s deactivated (%d lights)", scene_id, len(light_ids))
        return CommandOutcome.OK

    def update_mapping(self, entries: Iterable[MappingEntry]) -> int:
        """Replace the mapping and drop state of names that are gone.

        Detected items that are now mapped (by name, uuid or sibling
        service) are removed as well.

        Returns:
            Number of removed status cache entries.
        """
        self._mapping = list(entries)

        identities = self.registry.identities
        remaining = []
        for item in self.detected_items:
            if any(self._detected_matches(item, entry, identities) for entry in self._mapping):
                continue
            remaining.append(item)
        self.detected_items = deque(remaining, maxlen=MAX_DETECTED_ITEMS)

        return self.reconciler.cleanup(entry.controller_name for entry in self._mapping)

    @staticmethod
    def _detected_matches(item: DetectedItem, entry: MappingEntry, identities) -> bool:
        if item.kind == "command":
            return item.name.lower() == entry.controller_name.lower()
        if item.id == entry.upstream_uuid:
            return True
        item_identity = identities.get(item.id)
        entry_identity = identities.get(entry.upstream_uuid)
        return bool(item_identity and entry_identity and item_identity.device_id == entry_identity.device_id)

    async def get_targets(self) -> list[Target]:
        if not self.config.is_ready:
            return []
        return await self.hue_client.get_targets()

    def get_status(self) -> dict[str, Any]:
        """Health snapshot for monitoring."""
        stream_status = self.event_stream.get_status()
        return {
            "status": "healthy" if self.config.is_ready and stream_status.healthy else "degraded",
            "configured": self.config.is_ready,
            "event_stream": stream_status.model_dump(),
            "queues": self.rate_limiter.get_stats(),
            "dispatcher": self.dispatcher.get_stats(),
            "udp": self.sink.get_stats().model_dump(),
            "requests": self.tracker.get_summary(),
            "detected": [item.model_dump() for item in reversed(self.detected_items)],
        }
