"""Blocking HTTP transport for the control plane.

Requests run on an ``aiohttp.ClientSession`` owned by a private event loop
thread; the public methods block the calling thread until the response
arrives or the configured timeout elapses.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Protocol

import aiohttp

from pytelelink._constants import JSON_CONTENT_TYPE, USER_AGENT
from pytelelink.config import TelelinkConfig
from pytelelink.exceptions import TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    def get_text(self, endpoint: str) -> str:
        ...

    def post_text(self, endpoint: str, body: str, *, content_type: str = JSON_CONTENT_TYPE) -> str:
        ...


class HttpTransport:
    """HTTP transport with Basic auth, bounded timeouts and a private loop."""

    def __init__(self, config: TelelinkConfig) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._http: aiohttp.ClientSession | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _ensure_started(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is not None:
                return self._loop
            loop = asyncio.new_event_loop()
            thread = threading.Thread(
                target=loop.run_forever,
                name="pytelelink-http",
                daemon=True,
            )
            thread.start()
            self._loop = loop
            self._thread = thread
            return loop

    async def _session(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout)
            auth = aiohttp.BasicAuth(self._config.mid, self._config.pre_shared_key)
            self._http = aiohttp.ClientSession(timeout=timeout, auth=auth)
        return self._http

    def close(self) -> None:
        """Close the HTTP session and stop the loop thread."""
        with self._lock:
            loop = self._loop
            thread = self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        http = self._http
        self._http = None
        try:
            if http is not None and not http.closed:
                asyncio.run_coroutine_threadsafe(http.close(), loop).result(timeout=self._config.timeout)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            if thread is not None:
                thread.join(timeout=self._config.timeout)
            loop.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _request(self, method: str, endpoint: str, body: str | None, content_type: str) -> str:
        http = await self._session()
        url = f"{self._config.base_url}{endpoint}"
        headers: dict[str, str] = {
            "accept": JSON_CONTENT_TYPE,
            "user-agent": USER_AGENT,
        }
        if body is not None:
            headers["content-type"] = content_type

        ssl_option = not self._config.ignore_ssl_certificate_errors

        _logger.debug("%s %s", method, url)

        try:
            async with http.request(method, url, data=body, headers=headers, ssl=ssl_option) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise TransportError(
                        f"HTTP {resp.status} from {endpoint}: {resp.reason or text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
                return text
        except TransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(
                f"Request to {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

    def _run(self, method: str, endpoint: str, body: str | None = None, content_type: str = JSON_CONTENT_TYPE) -> str:
        loop = self._ensure_started()
        future = asyncio.run_coroutine_threadsafe(self._request(method, endpoint, body, content_type), loop)
        try:
            # Backstop for a wedged loop thread; requests carry their own total timeout.
            return future.result(timeout=self._config.timeout + 5.0)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise TransportError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc

    def get_text(self, endpoint: str) -> str:
        """GET *endpoint* and return the response body."""
        return self._run("GET", endpoint)

    def post_text(self, endpoint: str, body: str, *, content_type: str = JSON_CONTENT_TYPE) -> str:
        """POST *body* to *endpoint* and return the response body."""
        return self._run("POST", endpoint, body, content_type)
