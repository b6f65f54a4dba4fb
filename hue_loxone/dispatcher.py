"""Per-target command dispatch with coalescing.

Each light or grouped_light has a single-slot state machine:

    IDLE --submit--> BUSY --submit--> BUSY_WITH_PENDING
     ^                 |                   |
     +---- settled ----+                   |
                       ^---- settled: send pending next

At most one request per target is queued or in flight. A command that
arrives while the target is busy replaces any pending one, so a burst of
dimmer updates collapses into its last value, and that last value is always
sent once the in-flight request settles.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .constants import ResourceKind
from .infrastructure.errors import HueBridgeError, TransientUpstreamError
from .infrastructure.rate_limiter import RateLimiter
from .models import LightCommand, MappingEntry

_LOGGER = logging.getLogger(__name__)


class DispatchPhase(str, Enum):
    IDLE = "idle"
    BUSY = "busy"
    BUSY_WITH_PENDING = "busy_with_pending"


class TargetSlot(BaseModel):
    """Dispatch state of one target."""

    model_config = {"validate_assignment": True}

    phase: DispatchPhase = DispatchPhase.IDLE
    pending: LightCommand | None = None


class CommandDispatcher:
    """Serializes and coalesces writes per target.

    Args:
        transport: Object with an async request(method, path, body) method.
        rate_limiter: Queue every send passes through.
        on_success: Called with the command after the bridge accepted it.
    """

    def __init__(
        self,
        transport,
        rate_limiter: RateLimiter,
        on_success: Callable[[LightCommand], None] | None = None,
    ):
        self._transport = transport
        self._rate_limiter = rate_limiter
        self._on_success = on_success
        self._slots: dict[str, TargetSlot] = {}
        self._sent = 0
        self._failed = 0
        self._coalesced = 0

    def submit(
        self,
        target_id: str,
        resource_kind: ResourceKind | str,
        payload: dict[str, Any],
        source_name: str = "",
        entry: MappingEntry | None = None,
    ) -> None:
        """Queue a payload for a target without waiting for it to be sent.

        Args:
            target_id: Hue light or grouped_light id.
            resource_kind: light or grouped_light.
            payload: CLIP v2 payload.
            source_name: Controller name, used for logging.
            entry: Mapping entry, enables the optimistic status update.
        """
        command = LightCommand(
            target_id=target_id,
            resource_kind=resource_kind,
            payload=payload,
            source_name=source_name,
            entry=entry,
        )
        slot = self._slots.setdefault(target_id, TargetSlot())

        if slot.phase == DispatchPhase.IDLE:
            slot.phase = DispatchPhase.BUSY
            self._schedule(command)
            return

        if slot.pending is not None:
            self._coalesced += 1
            _LOGGER.debug("Coalesced pending command for %s", source_name or target_id)
        slot.pending = command
        slot.phase = DispatchPhase.BUSY_WITH_PENDING

    def _schedule(self, command: LightCommand) -> None:
        accepted = self._rate_limiter.enqueue(
            command.resource_kind,
            lambda: self._send(command),
            on_drop=lambda: self._dropped(command),
        )
        if not accepted:
            # Shutting down; queued intent is not kept across restarts
            self._slots[command.target_id] = TargetSlot()

    def _dropped(self, command: LightCommand) -> None:
        """Reset a target whose queued send was discarded before it ran."""
        self._slots[command.target_id] = TargetSlot()
        _LOGGER.debug("Queued command for %s dropped", command.source_name or command.target_id)

    async def _send(self, command: LightCommand) -> None:
        path = f"/{command.resource_kind.value}/{command.target_id}"
        _LOGGER.debug("Hue command (%s): %s", command.source_name, command.payload)
        try:
            await self._transport.request("PUT", path, command.payload)
        except TransientUpstreamError as e:
            self._failed += 1
            if not e.is_rate_limited:
                _LOGGER.error("Command for %s failed: %s", command.source_name, e)
        except HueBridgeError as e:
            self._failed += 1
            _LOGGER.error("Command for %s rejected: %s", command.source_name, e)
        else:
            self._sent += 1
            _LOGGER.debug("Light updated: %s", command.source_name)
            if self._on_success is not None:
                self._on_success(command)
        finally:
            self._advance(command.target_id)

    def _advance(self, target_id: str) -> None:
        """Start the pending command of a target or mark it idle."""
        slot = self._slots[target_id]
        if slot.pending is None:
            slot.phase = DispatchPhase.IDLE
            return

        command = slot.pending
        slot.pending = None
        slot.phase = DispatchPhase.BUSY
        self._schedule(command)

    def phase(self, target_id: str) -> DispatchPhase:
        slot = self._slots.get(target_id)
        return slot.phase if slot else DispatchPhase.IDLE

    def pending(self, target_id: str) -> LightCommand | None:
        slot = self._slots.get(target_id)
        return slot.pending if slot else None

    async def wait_idle(self) -> None:
        """Wait until every target is idle."""
        while any(slot.phase != DispatchPhase.IDLE for slot in self._slots.values()):
            await self._rate_limiter.join()
            await asyncio.sleep(0)

    def get_stats(self) -> dict[str, int]:
        return {
            "targets": len(self._slots),
            "busy": sum(1 for slot in self._slots.values() if slot.phase != DispatchPhase.IDLE),
            "sent": self._sent,
            "failed": self._failed,
            "coalesced": self._coalesced,
        }
