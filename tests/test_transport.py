"""Tests for retry and error classification in the Hue transport."""

import asyncio
import errno
import socket
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from hue_loxone.config import BridgeConfig, RetrySettings
from hue_loxone.infrastructure.api import HueTransport, classify_error
from hue_loxone.infrastructure.errors import FatalUpstreamError, TransientUpstreamError


def http_error(status):
    return aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=status)


def ok_response(data=None):
    response = AsyncMock()
    response.json = AsyncMock(return_value=data if data is not None else {"errors": [], "data": []})
    response.raise_for_status = MagicMock()
    return AsyncMock(__aenter__=AsyncMock(return_value=response))


def status_response(status):
    response = AsyncMock()
    response.raise_for_status = MagicMock(side_effect=http_error(status))
    return AsyncMock(__aenter__=AsyncMock(return_value=response))


def timeout_response():
    context = AsyncMock()
    context.__aenter__ = AsyncMock(side_effect=asyncio.TimeoutError())
    return context


def make_transport(**kwargs):
    kwargs.setdefault("initial_backoff", 0.0)
    kwargs.setdefault("max_backoff", 0.0)
    return HueTransport("192.168.1.20", "test-app-key", **kwargs)


class TestClassifyError:
    """Tests for classify_error."""

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert classify_error(http_error(status)) == f"HTTP {status}"

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 501])
    def test_fatal_statuses(self, status):
        assert classify_error(http_error(status)) is None

    def test_timeout(self):
        assert classify_error(asyncio.TimeoutError()) == "ETIMEDOUT"

    def test_server_disconnected(self):
        assert classify_error(aiohttp.ServerDisconnectedError()) == "ECONNRESET"

    def test_connection_refused(self):
        os_error = OSError(errno.ECONNREFUSED, "Connection refused")
        err = aiohttp.ClientConnectorError(MagicMock(), os_error)
        assert classify_error(err) == "ECONNREFUSED"

    def test_dns_failure(self):
        os_error = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        err = aiohttp.ClientConnectorError(MagicMock(), os_error)
        assert classify_error(err) == "ENOTFOUND"

    def test_unknown_client_error_is_fatal(self):
        assert classify_error(aiohttp.ClientPayloadError("bad payload")) is None


class TestRequestRetry:
    """Tests for HueTransport.request retry behavior."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        transport = make_transport()
        mock_session = AsyncMock()
        mock_session.request = MagicMock(return_value=ok_response({"data": [{"id": "light-1"}]}))

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            result = await transport.request("GET", "/light")

        assert result == {"data": [{"id": "light-1"}]}
        assert mock_session.request.call_count == 1

        args, kwargs = mock_session.request.call_args
        assert args == ("GET", "https://192.168.1.20/clip/v2/resource/light")
        assert kwargs["headers"] == {"hue-application-key": "test-app-key"}
        assert kwargs["ssl"] is False

    @pytest.mark.asyncio
    async def test_503_retried_up_to_max_attempts(self):
        transport = make_transport(max_attempts=3)
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=[status_response(503) for _ in range(3)])

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            with pytest.raises(TransientUpstreamError) as exc_info:
                await transport.request("PUT", "/light/light-1", {"on": {"on": True}})

        assert mock_session.request.call_count == 3
        assert exc_info.value.status == 503
        assert exc_info.value.condition == "HTTP 503"
        assert isinstance(exc_info.value.__cause__, aiohttp.ClientResponseError)

    @pytest.mark.asyncio
    async def test_timeout_retried_up_to_max_attempts(self):
        transport = make_transport(max_attempts=4)
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=[timeout_response() for _ in range(4)])

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            with pytest.raises(TransientUpstreamError) as exc_info:
                await transport.request("GET", "/light")

        assert mock_session.request.call_count == 4
        assert exc_info.value.condition == "ETIMEDOUT"
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_404_not_retried(self):
        transport = make_transport(max_attempts=3)
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=[status_response(404)])

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            with pytest.raises(FatalUpstreamError) as exc_info:
                await transport.request("GET", "/scene/unknown")

        assert mock_session.request.call_count == 1
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        transport = make_transport(max_attempts=3)
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=[timeout_response(), status_response(502), ok_response()])

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            result = await transport.request("GET", "/light")

        assert result == {"errors": [], "data": []}
        assert mock_session.request.call_count == 3

    @pytest.mark.asyncio
    async def test_429_exhausted_is_rate_limited(self):
        transport = make_transport(max_attempts=2)
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=[status_response(429), status_response(429)])

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            with pytest.raises(TransientUpstreamError) as exc_info:
                await transport.request("PUT", "/grouped_light/grouped-1", {"on": {"on": False}})

        assert exc_info.value.is_rate_limited

    @pytest.mark.asyncio
    async def test_backoff_between_attempts(self):
        transport = make_transport(max_attempts=4, initial_backoff=1.0, multiplier=2.0, max_backoff=3.0)
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=[status_response(500) for _ in range(4)])

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            with patch("hue_loxone.infrastructure.api.asyncio.sleep", new=AsyncMock()) as mock_sleep:
                with pytest.raises(TransientUpstreamError):
                    await transport.request("GET", "/light")

        assert [call.args[0] for call in mock_sleep.await_args_list] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_every_attempt_is_tracked(self):
        transport = make_transport(max_attempts=2)
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=[status_response(503), ok_response()])

        with patch.object(transport, "_get_session", AsyncMock(return_value=mock_session)):
            await transport.request("PUT", "/light/light-1", {"on": {"on": True}})

        assert transport.tracker.get_total_requests("light") == 2


class TestTransportConfig:
    """Tests for transport construction."""

    def test_backoff_delay_capped(self):
        transport = make_transport(initial_backoff=1.0, multiplier=2.0, max_backoff=10.0)
        assert [transport.backoff_delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_urls(self):
        transport = make_transport()
        assert transport.base_url == "https://192.168.1.20/clip/v2/resource"
        assert transport.event_stream_url == "https://192.168.1.20/eventstream/clip/v2"

    def test_from_config(self):
        config = BridgeConfig(
            bridge_host="10.0.0.2",
            app_key="key",
            request_timeout=5.0,
            retry=RetrySettings(max_attempts=5, initial_backoff=0.5),
        )
        transport = HueTransport.from_config(config)

        assert transport.bridge_host == "10.0.0.2"
        assert transport.max_attempts == 5
        assert transport.initial_backoff == 0.5
        assert transport.request_timeout == 5.0

    def test_fingerprint_pinning(self):
        fingerprint = ":".join(["ab"] * 32)
        transport = make_transport(cert_fingerprint=fingerprint)
        assert isinstance(transport._ssl, aiohttp.Fingerprint)

    def test_pinning_disabled_in_config_ignores_fingerprint(self):
        config = BridgeConfig(bridge_host="10.0.0.2", app_key="key", cert_fingerprint="ab" * 32)
        transport = HueTransport.from_config(config)
        assert transport._ssl is False
