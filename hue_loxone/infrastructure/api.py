"""Retrying HTTPS transport for the Hue CLIP v2 API.

Every upstream call goes through HueTransport.request which handles:
- Session management and the hue-application-key header
- Certificate pinning (or disabled verification for the self-signed bridge cert)
- Per-request timeouts
- Retry with exponential backoff for transient failures
- Classification of failures into TransientUpstreamError / FatalUpstreamError

Retryable conditions are network level failures (timeout, connection reset,
refused, unreachable, DNS lookup failure) and the HTTP statuses 408, 429,
500, 502, 503 and 504. Everything else fails immediately.
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
import socket
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from ..constants import RETRY_DEFAULTS
from .errors import FatalUpstreamError, TransientUpstreamError
from .tracking import RequestTracker

_LOGGER = logging.getLogger(__name__)

ERRNO_CODES = {
    errno.ECONNRESET: "ECONNRESET",
    errno.ECONNREFUSED: "ECONNREFUSED",
    errno.ETIMEDOUT: "ETIMEDOUT",
    errno.EHOSTUNREACH: "EHOSTUNREACH",
    errno.ENETUNREACH: "ENETUNREACH",
}


def _error_code(err: BaseException) -> str | None:
    """Map an aiohttp/OS level exception to a Node-style error code."""
    if isinstance(err, (asyncio.TimeoutError, TimeoutError)):
        return "ETIMEDOUT"
    if isinstance(err, aiohttp.ServerDisconnectedError):
        return "ECONNRESET"
    if isinstance(err, aiohttp.ClientConnectorError):
        os_error = getattr(err, "os_error", None)
        if isinstance(os_error, socket.gaierror):
            return "ENOTFOUND"
        return ERRNO_CODES.get(getattr(os_error, "errno", None) or err.errno, "ECONNREFUSED")
    if isinstance(err, aiohttp.ClientOSError):
        return ERRNO_CODES.get(err.errno)
    return None


def classify_error(err: BaseException) -> str | None:
    """Return a label for a retryable error, or None when it is fatal.

    Example:
        >>> classify_error(asyncio.TimeoutError())
        'ETIMEDOUT'
    """
    if isinstance(err, aiohttp.ClientResponseError):
        if err.status in RETRY_DEFAULTS.RETRYABLE_STATUS_CODES:
            return f"HTTP {err.status}"
        return None

    code = _error_code(err)
    if code in RETRY_DEFAULTS.RETRYABLE_ERROR_CODES:
        return code
    return None


def _describe(err: BaseException) -> str:
    if isinstance(err, aiohttp.ClientResponseError):
        return f"HTTP {err.status}"
    return _error_code(err) or type(err).__name__


def _normalize_fingerprint(fingerprint: str) -> bytes:
    return bytes.fromhex(fingerprint.replace(":", "").strip())


class HueTransport:
    """Authenticated, retrying client for one Hue bridge.

    Args:
        bridge_host: IP or hostname of the bridge.
        app_key: Hue application key.
        max_attempts: Total attempts per request (first attempt included).
        initial_backoff: Delay before the first retry in seconds.
        multiplier: Growth factor of the delay between retries.
        max_backoff: Upper bound for a single retry delay.
        request_timeout: Per-request timeout in seconds.
        cert_fingerprint: SHA-256 fingerprint to pin, None disables verification.
        tracker: Optional RequestTracker recording every attempt.
        session: Optional externally owned aiohttp session.
    """

    def __init__(
        self,
        bridge_host: str,
        app_key: str,
        *,
        max_attempts: int = RETRY_DEFAULTS.MAX_ATTEMPTS,
        initial_backoff: float = RETRY_DEFAULTS.INITIAL_BACKOFF,
        multiplier: float = RETRY_DEFAULTS.BACKOFF_MULTIPLIER,
        max_backoff: float = RETRY_DEFAULTS.MAX_BACKOFF,
        request_timeout: float = RETRY_DEFAULTS.REQUEST_TIMEOUT,
        cert_fingerprint: str | None = None,
        tracker: RequestTracker | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.bridge_host = bridge_host
        self.app_key = app_key
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self.multiplier = multiplier
        self.max_backoff = max_backoff
        self.request_timeout = request_timeout
        self.tracker = tracker or RequestTracker()
        self._session = session
        self._owns_session = session is None

        if cert_fingerprint:
            _LOGGER.info("Certificate pinning enabled for Hue bridge")
            self._ssl: aiohttp.Fingerprint | bool = aiohttp.Fingerprint(_normalize_fingerprint(cert_fingerprint))
        else:
            _LOGGER.warning("Certificate validation DISABLED - HTTPS traffic to the bridge is not authenticated")
            self._ssl = False

    @classmethod
    def from_config(cls, config, tracker: RequestTracker | None = None, session=None) -> HueTransport:
        """Build a transport from a BridgeConfig."""
        return cls(
            config.bridge_host,
            config.app_key,
            max_attempts=config.retry.max_attempts,
            initial_backoff=config.retry.initial_backoff,
            multiplier=config.retry.multiplier,
            max_backoff=config.retry.max_backoff,
            request_timeout=config.request_timeout,
            cert_fingerprint=config.cert_fingerprint if config.cert_pinning_enabled else None,
            tracker=tracker,
            session=session,
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.bridge_host}/clip/v2/resource"

    @property
    def event_stream_url(self) -> str:
        return f"https://{self.bridge_host}/eventstream/clip/v2"

    @property
    def headers(self) -> dict[str, str]:
        return {"hue-application-key": self.app_key}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session.

        Timeouts are set per request so the event stream can stay open
        without a total timeout.
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session if this transport created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the retry following attempt (0-indexed)."""
        return min(self.initial_backoff * self.multiplier**attempt, self.max_backoff)

    async def _request_once(self, method: str, path: str, body: dict | None) -> Any:
        resource_kind = path.strip("/").split("/", 1)[0] or "root"
        self.tracker.record_request(resource_kind)

        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        session = await self._get_session()
        async with session.request(
            method,
            self.base_url + path,
            json=body,
            headers=self.headers,
            timeout=timeout,
            ssl=self._ssl,
        ) as response:
            response.raise_for_status()
            return await response.json()

    async def request(self, method: str, path: str, body: dict | None = None) -> Any:
        """Send a request to the bridge, retrying transient failures.

        Args:
            method: HTTP method (GET, PUT, ...).
            path: Resource path below /clip/v2/resource, e.g. "/light/<id>".
            body: Optional JSON body.

        Returns:
            Decoded JSON response.

        Raises:
            TransientUpstreamError: Retryable failure persisted through every attempt.
            FatalUpstreamError: Non-retryable failure (4xx other than 408/429).
        """
        for attempt in range(self.max_attempts):
            try:
                result = await self._request_once(method, path, body)
            except asyncio.CancelledError:
                raise
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                condition = classify_error(e)
                status = e.status if isinstance(e, aiohttp.ClientResponseError) else None

                if condition is None:
                    self._log_upstream_error(e, path)
                    raise FatalUpstreamError(f"{method} {path} failed: {_describe(e)}", status=status) from e

                if attempt == self.max_attempts - 1:
                    self._log_upstream_error(e, path)
                    raise TransientUpstreamError(
                        f"{method} {path} failed after {self.max_attempts} attempts: {condition}",
                        status=status,
                        condition=condition,
                    ) from e

                delay = self.backoff_delay(attempt)
                _LOGGER.warning(
                    "%s - Retry %d/%d in %.2fs (%s)", condition, attempt + 1, self.max_attempts, delay, path
                )
                await asyncio.sleep(delay)
            else:
                if attempt > 0:
                    _LOGGER.info("Request succeeded after %d %s", attempt, "retry" if attempt == 1 else "retries")
                return result

        # max_attempts < 1 never enters the loop
        raise TransientUpstreamError(f"{method} {path} was not attempted")

    @staticmethod
    def _log_upstream_error(err: BaseException, path: str) -> None:
        if isinstance(err, aiohttp.ClientResponseError) and err.status == 429:
            _LOGGER.warning("HUE RATE LIMIT (429) - Slowing down... (%s)", path)
            return
        _LOGGER.error("HUE ERR %s: %s (%s)", _describe(err), err, path)

    @contextlib.asynccontextmanager
    async def open_event_stream(self) -> AsyncIterator[aiohttp.ClientResponse]:
        """Open the server-sent event stream of the bridge.

        The connection has no total timeout; only connecting is bounded.
        """
        self.tracker.record_request("eventstream")
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.request_timeout)
        session = await self._get_session()
        headers = {**self.headers, "Accept": "text/event-stream"}
        async with session.get(self.event_stream_url, headers=headers, timeout=timeout, ssl=self._ssl) as response:
            response.raise_for_status()
            yield response
