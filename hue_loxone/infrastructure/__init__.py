"""Infrastructure layer for the Hue/Loxone bridge.

This package contains core infrastructure components:
- Retrying HTTPS transport for the Hue API
- Per-resource-kind rate limiting
- Validation logic
- Error definitions
- Request tracking
"""

from .api import HueTransport, classify_error
from .errors import (
    BridgeConfigError,
    BridgeValidationError,
    DownstreamSendError,
    FatalUpstreamError,
    HueBridgeError,
    StreamDisconnect,
    TransientUpstreamError,
    UpstreamError,
)
from .rate_limiter import RateLimiter
from .tracking import RequestTracker
from .validation import (
    validate_control_value,
    validate_device_name,
    validate_host,
    validate_port,
    validate_scene_action,
    validate_scene_id,
    validate_transition_time,
)

__all__ = [
    # Transport and rate limiting
    "HueTransport",
    "classify_error",
    "RateLimiter",
    # Errors
    "HueBridgeError",
    "UpstreamError",
    "TransientUpstreamError",
    "FatalUpstreamError",
    "StreamDisconnect",
    "DownstreamSendError",
    "BridgeValidationError",
    "BridgeConfigError",
    # Tracking
    "RequestTracker",
    # Validation
    "validate_device_name",
    "validate_control_value",
    "validate_scene_id",
    "validate_scene_action",
    "validate_host",
    "validate_port",
    "validate_transition_time",
]
