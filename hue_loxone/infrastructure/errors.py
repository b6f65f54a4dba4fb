"""Custom exceptions for the Hue/Loxone bridge."""

from __future__ import annotations


class HueBridgeError(Exception):
    """Base exception for the bridge."""


class UpstreamError(HueBridgeError):
    """Raised when a call to the Hue bridge API fails."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TransientUpstreamError(UpstreamError):
    """Raised when a retryable upstream failure exhausted all attempts.

    Attributes:
        status: HTTP status code, None for network level failures.
        condition: Short label of the triggering condition (e.g. "HTTP 503", "ETIMEDOUT").
    """

    def __init__(self, message: str, status: int | None = None, condition: str | None = None):
        super().__init__(message, status)
        self.condition = condition

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429


class FatalUpstreamError(UpstreamError):
    """Raised when the upstream API rejects a request (4xx other than 429)."""


class StreamDisconnect(HueBridgeError):
    """Raised when the event stream connection ends or breaks."""


class DownstreamSendError(HueBridgeError):
    """Raised when a UDP datagram cannot be handed to the network."""


class BridgeValidationError(HueBridgeError):
    """Raised when inbound command input fails validation."""


class BridgeConfigError(HueBridgeError):
    """Raised when configuration or mapping data is invalid."""
