"""Network round trips against a deployed service.

``ProbeClient`` performs one HTTP request (httpx) or one realtime socket
exchange (websockets) against a target base URL and reports how long it
took. Malformed URLs and transport failures are raised as
:class:`ProbeFailure`; interpreting the response is the verification
suite's job.

Example::

    with ProbeClient("https://api.example.up.railway.app") as client:
        response = client.get("/health")
        response.status_code, response.json, response.elapsed_ms
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx
from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from shipwright.core.errors import ProbeFailure
from shipwright.deploy.config import DEFAULT_PROBE_TIMEOUT_MS

FrameFilter = Callable[[Any], bool]


@dataclass(frozen=True)
class HttpResponse:
    """Status, body and timing of one HTTP round trip."""

    status_code: int
    text: str
    elapsed_ms: float

    @property
    def json(self) -> Any:
        """Parsed body, or None when it is not JSON."""
        try:
            return json.loads(self.text)
        except ValueError:
            return None


@dataclass(frozen=True)
class SocketExchange:
    """The frame a realtime exchange ended on, and timing."""

    frame: Any
    elapsed_ms: float
    frames_seen: int


def to_websocket_url(base_url: str, path: str) -> str:
    """``http(s)://host/base`` + ``/ws`` -> ``ws(s)://host/base/ws``."""
    parts = urlsplit(base_url)
    scheme = {"https": "wss", "http": "ws"}.get(parts.scheme, parts.scheme)
    joined = parts.path.rstrip("/") + "/" + path.lstrip("/")
    return urlunsplit((scheme, parts.netloc, joined, "", ""))


def _decode_frame(raw: str | bytes) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(raw)
    except ValueError:
        return raw


class ProbeClient:
    """HTTP and realtime socket access to one target.

    ``transport`` is passed to ``httpx.Client`` (tests use
    ``httpx.MockTransport``); ``connector`` replaces
    ``websockets.sync.client.connect``.
    """

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
        *,
        transport: httpx.BaseTransport | None = None,
        connector: Callable[..., Any] = ws_connect,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.connector = connector
        self.clock = clock
        try:
            self._http = httpx.Client(
                base_url=self.base_url,
                timeout=timeout_ms / 1000,
                transport=transport,
                follow_redirects=True,
            )
        except httpx.InvalidURL as e:
            raise ProbeFailure(f"Invalid target URL {base_url!r}: {e}", cause=e).with_context(url=base_url) from e

    def __enter__(self) -> ProbeClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def get(self, path: str) -> HttpResponse:
        """One GET round trip. Any status code is returned, not raised."""
        started = self.clock()
        try:
            response = self._http.get(path)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProbeFailure(f"GET {path} failed: {e}", cause=e).with_context(
                url=f"{self.base_url}{path}",
            ) from e
        elapsed_ms = (self.clock() - started) * 1000
        return HttpResponse(status_code=response.status_code, text=response.text, elapsed_ms=elapsed_ms)

    def exchange(
        self,
        path: str,
        message: dict[str, Any],
        accept: FrameFilter | None = None,
    ) -> SocketExchange:
        """Open a socket, send ``message``, and wait for an accepted frame.

        Frames rejected by ``accept`` are skipped. With no filter the first
        frame ends the exchange. The connection is closed on every path.

        Raises:
            ProbeFailure: connect error, closed connection, or no accepted
                frame before the timeout.
        """
        url = to_websocket_url(self.base_url, path)
        timeout_s = self.timeout_ms / 1000
        started = self.clock()
        deadline = started + timeout_s
        frames_seen = 0

        try:
            with self.connector(url, open_timeout=timeout_s, close_timeout=timeout_s) as connection:
                connection.send(json.dumps(message))
                while True:
                    remaining = deadline - self.clock()
                    if remaining <= 0:
                        raise TimeoutError()
                    frame = _decode_frame(connection.recv(timeout=remaining))
                    frames_seen += 1
                    if accept is None or accept(frame):
                        return SocketExchange(
                            frame=frame,
                            elapsed_ms=(self.clock() - started) * 1000,
                            frames_seen=frames_seen,
                        )
        except TimeoutError as e:
            raise ProbeFailure(
                f"No response from {url} within {self.timeout_ms}ms",
                cause=e,
            ).with_context(url=url, frames_seen=frames_seen) from e
        except (WebSocketException, OSError) as e:
            raise ProbeFailure(f"Realtime connection to {url} failed: {e}", cause=e).with_context(
                url=url,
            ) from e
