"""UDP forwarding of status values to the Loxone Miniserver.

Datagrams have the form "hue.<device>.<attribute> <value>". Delivery is
best effort: there is no acknowledgement and failed sends are never
retried, only counted.
"""

from __future__ import annotations

import asyncio
import logging

from .constants import UDP_NAMESPACE
from .infrastructure.errors import DownstreamSendError
from .models import SinkStats

_LOGGER = logging.getLogger(__name__)

HIGH_ERROR_RATE = 0.1
HIGH_ERROR_RATE_MIN_SENDS = 10
ERROR_DECAY_INTERVAL = 100
ERROR_DECAY_AMOUNT = 10


def format_datagram(device_name: str, attribute: str, value, namespace: str = UDP_NAMESPACE) -> str:
    """Build the datagram text for one status value.

    Example:
        >>> format_datagram("hallway", "bri", 55)
        'hue.hallway.bri 55'
    """
    if isinstance(value, bool):
        value = int(value)
    return f"{namespace}.{device_name}.{attribute} {value}"


class _SinkProtocol(asyncio.DatagramProtocol):
    def __init__(self, sink: LoxoneUdpSink):
        self._sink = sink

    def error_received(self, exc: Exception) -> None:
        self._sink._record_error(exc)


class LoxoneUdpSink:
    """Best-effort datagram sender with error-rate tracking.

    Args:
        host: Miniserver address, None disables sending.
        port: Miniserver UDP port.
        debug: Log every datagram.
    """

    def __init__(self, host: str | None, port: int, debug: bool = False):
        self.host = host
        self.port = port
        self.debug = debug
        self._transport: asyncio.DatagramTransport | None = None
        self._stats = SinkStats()

    async def open(self) -> None:
        """Create the datagram endpoint towards the Miniserver."""
        if not self.host or self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _SinkProtocol(self), remote_addr=(self.host, self.port)
        )
        _LOGGER.info("UDP sink ready for %s:%d", self.host, self.port)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            _LOGGER.info("UDP client closed")

    def _transmit(self, message: str) -> None:
        if self._transport is None or self._transport.is_closing():
            raise DownstreamSendError("UDP sink is not open")
        try:
            self._transport.sendto(message.encode("utf-8"))
        except OSError as e:
            raise DownstreamSendError(str(e)) from e

    def send(self, device_name: str, attribute: str, value) -> bool:
        """Send one status value.

        Args:
            device_name: Controller device name.
            attribute: Attribute suffix (on, bri, button, ...).
            value: Value to send.

        Returns:
            True when the datagram was handed to the network.
        """
        if not self.host:
            _LOGGER.debug("Loxone IP not configured, skipping UDP send")
            return False

        message = format_datagram(device_name, attribute, value)
        try:
            self._transmit(message)
        except DownstreamSendError as e:
            self._record_error(e)
            return False

        self._record_success(message)
        return True

    def _record_success(self, message: str) -> None:
        stats = self._stats
        stats.success_count += 1

        if self.debug or stats.error_count > 0:
            _LOGGER.debug("UDP sent: %s", message)

        # Let old errors fade out while delivery works again
        if stats.success_count % ERROR_DECAY_INTERVAL == 0:
            stats.error_count = max(0, stats.error_count - ERROR_DECAY_AMOUNT)

    def _record_error(self, err: Exception) -> None:
        stats = self._stats
        stats.error_count += 1
        stats.last_error = str(err)
        _LOGGER.error("UDP send error: %s", err)

        total = stats.success_count + stats.error_count
        if total > HIGH_ERROR_RATE_MIN_SENDS and stats.error_rate > HIGH_ERROR_RATE:
            _LOGGER.warning(
                "High UDP error rate: %.1f%% (%d/%d)", stats.error_rate * 100, stats.error_count, total
            )

    def get_stats(self) -> SinkStats:
        return self._stats.model_copy()

    def reset_stats(self) -> None:
        self._stats = SinkStats()
        _LOGGER.info("UDP statistics reset")
