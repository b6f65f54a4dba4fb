"""Consumer of the Hue CLIP v2 server-sent event stream.

Session states:

    STOPPED -> CONNECTING -> STREAMING -> ENDED | ERRORED -> STOPPED -> CONNECTING ...

The read loop runs as a single background task. After every disconnect it
waits an exponential backoff delay (capped) and connects again. Each
successful connect resets the backoff, rebuilds the device map and seeds the
status cache with the current light states before live events are read.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

import aiohttp

from .color import light_level_to_lux, mirek_to_hex, xy_to_hex
from .config import ReconnectSettings
from .constants import FORWARDED_BUTTON_EVENTS, StatusAttribute
from .device_registry import DeviceRegistry
from .hue_client import HueClient
from .infrastructure.api import HueTransport
from .infrastructure.errors import HueBridgeError, StreamDisconnect
from .models import EventStreamStatus, MappingEntry
from .status import StatusReconciler

_LOGGER = logging.getLogger(__name__)

DATA_PREFIX = "data: "
HANDLED_EVENT_TYPES = frozenset({"add", "update"})


class StreamState(str, Enum):
    STOPPED = "stopped"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    ENDED = "ended"
    ERRORED = "errored"


def _rotary_direction(rotary: dict[str, Any]) -> str | None:
    report = rotary.get("rotary_report") or rotary.get("last_event") or rotary
    rotation = report.get("rotation") if isinstance(report, dict) else None
    if not rotation:
        return None
    return "cw" if rotation.get("direction") == "clock_wise" else "ccw"


class EventStreamConsumer:
    """Long-lived reader of the bridge event stream.

    Args:
        transport: Transport used to open the stream.
        hue_client: Used to rebuild the device map and read light states.
        registry: Device registry used to resolve sibling services.
        reconciler: Status cache receiving translated events.
        mapping_provider: Returns the current mapping entries.
        reconnect: Backoff and health settings.
        debug: Log every translated event.
    """

    def __init__(
        self,
        transport: HueTransport,
        hue_client: HueClient,
        registry: DeviceRegistry,
        reconciler: StatusReconciler,
        mapping_provider: Callable[[], Iterable[MappingEntry]],
        reconnect: ReconnectSettings | None = None,
        debug: bool = False,
    ):
        self._transport = transport
        self._hue_client = hue_client
        self._registry = registry
        self._reconciler = reconciler
        self._mapping_provider = mapping_provider
        self._reconnect = reconnect or ReconnectSettings()
        self.debug = debug

        self.state = StreamState.STOPPED
        self.active = False
        self.reconnect_attempts = 0
        self.last_event_at = self._get_current_time()
        self._task: asyncio.Task | None = None

    def _get_current_time(self) -> float:
        return time.time()

    @property
    def running(self) -> bool:
        """True while the read loop task exists, including backoff waits."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the read loop. Does nothing if it is already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the read loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self.active = False
        self.state = StreamState.STOPPED
        _LOGGER.info("Event stream stopped")

    def next_backoff_delay(self) -> float:
        """Return the delay before the next reconnect and count the attempt."""
        delay = min(self._reconnect.initial_delay * 2**self.reconnect_attempts, self._reconnect.max_delay)
        self.reconnect_attempts += 1
        return delay

    def reset_backoff(self) -> None:
        self.reconnect_attempts = 0

    async def _run(self) -> None:
        while True:
            try:
                await self._stream_once()
            except StreamDisconnect as e:
                self.state = StreamState.ERRORED
                _LOGGER.error("Event stream error: %s", e)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.state = StreamState.ERRORED
                _LOGGER.exception("Unexpected event stream failure: %s", e)
            else:
                self.state = StreamState.ENDED

            self.active = False
            delay = self.next_backoff_delay()
            self.state = StreamState.STOPPED
            _LOGGER.warning("Event stream disconnected, reconnecting in %.1fs", delay)
            await asyncio.sleep(delay)

    async def _stream_once(self) -> None:
        """Connect, read until the stream ends.

        Raises:
            StreamDisconnect: If connecting or reading fails.
        """
        self.state = StreamState.CONNECTING
        _LOGGER.info("Starting event stream...")
        try:
            async with self._transport.open_event_stream() as response:
                await self._on_connected()
                async for raw_line in response.content:
                    self._handle_line(raw_line)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StreamDisconnect(str(e) or type(e).__name__) from e

    async def _on_connected(self) -> None:
        self.reset_backoff()
        self.active = True
        self.state = StreamState.STREAMING
        _LOGGER.info("Event stream connected")

        await self._hue_client.build_device_map()
        await self.sync_initial_states()

    def _handle_line(self, raw_line: bytes | str) -> None:
        line = raw_line.decode("utf-8", errors="replace") if isinstance(raw_line, bytes) else raw_line
        line = line.rstrip("\r\n")
        if not line.startswith(DATA_PREFIX):
            return
        try:
            events = json.loads(line[len(DATA_PREFIX):])
        except ValueError:
            return
        if isinstance(events, list):
            self.process_events(events)

    def process_events(self, events: list[Any]) -> None:
        """Translate a decoded event frame into status updates.

        Only add and update events are handled. Data items whose service
        cannot be resolved to a mapping entry are ignored, badly shaped
        items are dropped without affecting the rest of the frame.
        """
        mapping = list(self._mapping_provider())

        for event in events:
            if not isinstance(event, dict) or event.get("type") not in HANDLED_EVENT_TYPES:
                continue
            items = event.get("data")
            if not isinstance(items, list):
                continue
            for data in items:
                if not isinstance(data, dict) or "id" not in data:
                    continue
                try:
                    entry = self._registry.resolve_entry(data["id"], mapping)
                    if entry is not None:
                        self._process_device_event(data, entry)
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    _LOGGER.debug("Dropped malformed event item %r: %r", data.get("id"), e)

        self.last_event_at = self._get_current_time()

    def _update(self, entry: MappingEntry, attribute: StatusAttribute, value: Any) -> None:
        self._reconciler.update(entry.controller_name, attribute, value, entry)

    def _process_device_event(self, data: dict[str, Any], entry: MappingEntry) -> None:
        name = entry.controller_name

        motion = data.get("motion")
        if isinstance(motion, dict) and "motion" in motion:
            self._update(entry, StatusAttribute.MOTION, 1 if motion["motion"] else 0)
            if self.debug:
                _LOGGER.debug("Event: %s motion=%s", name, motion["motion"])

        temperature = data.get("temperature")
        if isinstance(temperature, dict) and "temperature" in temperature:
            self._update(entry, StatusAttribute.TEMPERATURE, temperature["temperature"])

        light = data.get("light")
        if isinstance(light, dict) and "light_level" in light:
            self._update(entry, StatusAttribute.LUX, light_level_to_lux(light["light_level"]))

        on = data.get("on")
        if isinstance(on, dict):
            self._update(entry, StatusAttribute.ON, 1 if on.get("on") else 0)
            if self.debug:
                _LOGGER.debug("Event: %s on=%s", name, on.get("on"))

        dimming = data.get("dimming")
        if isinstance(dimming, dict) and "brightness" in dimming:
            self._update(entry, StatusAttribute.BRIGHTNESS, dimming["brightness"])

        button = data.get("button")
        if isinstance(button, dict):
            last_event = button.get("last_event")
            if last_event in FORWARDED_BUTTON_EVENTS:
                self._update(entry, StatusAttribute.BUTTON, last_event)
                _LOGGER.debug("Event: %s button=%s", name, last_event)
            elif self.debug:
                _LOGGER.debug("Ignored event: %s (%s)", name, last_event)

        power_state = data.get("power_state")
        if isinstance(power_state, dict) and "battery_level" in power_state:
            self._update(entry, StatusAttribute.BATTERY, power_state["battery_level"])

        rotary = data.get("relative_rotary")
        if isinstance(rotary, dict):
            direction = _rotary_direction(rotary)
            if direction is not None:
                self._update(entry, StatusAttribute.ROTARY, direction)
                _LOGGER.debug("Event: %s dial=%s", name, direction)

        xy = (data.get("color") or {}).get("xy")
        if xy:
            self._update(entry, StatusAttribute.HEX, xy_to_hex(xy["x"], xy["y"]))

        mirek = (data.get("color_temperature") or {}).get("mirek")
        if mirek:
            self._update(entry, StatusAttribute.HEX, mirek_to_hex(mirek))

    async def sync_initial_states(self) -> None:
        """Seed the status cache with the current state of every mapped light."""
        try:
            lights = await self._hue_client.get_light_states()
        except HueBridgeError as e:
            _LOGGER.warning("Sync initial states failed: %s", e)
            return

        mapping = list(self._mapping_provider())
        for light in lights:
            entry = self._registry.resolve_entry(light.get("id", ""), mapping)
            if entry is None:
                continue

            if "on" in light:
                self._update(entry, StatusAttribute.ON, 1 if light["on"].get("on") else 0)
            if "dimming" in light:
                self._update(entry, StatusAttribute.BRIGHTNESS, light["dimming"].get("brightness"))

            xy = (light.get("color") or {}).get("xy")
            mirek = (light.get("color_temperature") or {}).get("mirek")
            if xy:
                self._update(entry, StatusAttribute.HEX, xy_to_hex(xy["x"], xy["y"], 1.0))
            elif mirek:
                self._update(entry, StatusAttribute.HEX, mirek_to_hex(mirek))

        _LOGGER.info("Initial status loaded")

    def is_healthy(self) -> bool:
        """True when connected and an event arrived within the stale window."""
        return self.active and self._get_current_time() - self.last_event_at < self._reconnect.stale_after

    def get_status(self) -> EventStreamStatus:
        now = self._get_current_time()
        return EventStreamStatus(
            state=self.state.value,
            active=self.active,
            healthy=self.is_healthy(),
            reconnect_attempts=self.reconnect_attempts,
            last_event_at=self.last_event_at,
            seconds_since_last_event=now - self.last_event_at,
        )
