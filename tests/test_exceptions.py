"""Tests for custom exceptions."""

import pytest

from hue_loxone.infrastructure.errors import (
    BridgeConfigError,
    BridgeValidationError,
    DownstreamSendError,
    FatalUpstreamError,
    HueBridgeError,
    StreamDisconnect,
    TransientUpstreamError,
    UpstreamError,
)


def test_base_exception():
    error = HueBridgeError("Test error")
    assert isinstance(error, Exception)
    assert str(error) == "Test error"


@pytest.mark.parametrize(
    "error_class", [StreamDisconnect, DownstreamSendError, BridgeValidationError, BridgeConfigError, UpstreamError]
)
def test_inheritance(error_class):
    error = error_class("failure")
    assert isinstance(error, HueBridgeError)
    assert str(error) == "failure"


def test_transient_error_attributes():
    error = TransientUpstreamError("GET /light failed", status=503, condition="HTTP 503")
    assert isinstance(error, UpstreamError)
    assert error.status == 503
    assert error.condition == "HTTP 503"
    assert error.is_rate_limited is False


def test_rate_limited():
    assert TransientUpstreamError("busy", status=429).is_rate_limited is True
    assert TransientUpstreamError("timeout", condition="ETIMEDOUT").is_rate_limited is False


def test_fatal_error_status():
    error = FatalUpstreamError("not found", status=404)
    assert isinstance(error, UpstreamError)
    assert error.status == 404


def test_exception_catching():
    with pytest.raises(UpstreamError):
        raise FatalUpstreamError("Test")

    with pytest.raises(HueBridgeError):
        raise TransientUpstreamError("Test")
