"""
An in-memory stand-in for a deployed service.

HTTP goes through ``httpx.MockTransport``; the realtime channel is a fake
connector with the ``send``/``recv(timeout=)`` surface of a websockets
sync connection. Tests mutate ``routes`` and ``frames`` to break things.

Usage in test code::

    service = FakeService()
    service.routes["/metrics"] = (500, {"error": "boom"})
    suite = VerificationSuite(client_factory=service.client_factory, sleep=lambda s: None)
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from shipwright.deploy.probes import ProbeClient


def healthy_routes() -> dict[str, tuple[int, Any]]:
    return {
        "/health": (
            200,
            {
                "status": "healthy",
                "timestamp": "2026-10-18T12:00:00Z",
                "version": "1.4.0",
                "environment": "production",
                "uptime": 1234.5,
            },
        ),
        "/health/detailed": (200, {"status": "healthy", "services": {"database": "up", "auth": "up"}}),
        "/health/database": (200, {"healthy": True}),
        "/health/memory": (200, {"healthy": True}),
        "/metrics": (200, {"requests_total": 42, "connections": 3}),
    }


def healthy_frames() -> dict[str, list[Any]]:
    return {
        "heartbeat": [{"type": "heartbeat_ack"}],
        "authenticate": [{"type": "connected"}, {"type": "auth_error", "message": "anonymous"}],
    }


class FakeSocket:
    """One open realtime connection."""

    def __init__(self, service: FakeService, url: str) -> None:
        self.service = service
        self.url = url
        self.pending: list[Any] = []
        self.closed = False

    def __enter__(self) -> FakeSocket:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True

    def send(self, message: str) -> None:
        payload = json.loads(message)
        self.service.sent.append(payload)
        self.pending.extend(self.service.frames.get(payload.get("type"), []))

    def recv(self, timeout: float | None = None) -> str:
        if not self.pending:
            raise TimeoutError("timed out while waiting for a frame")
        frame = self.pending.pop(0)
        return frame if isinstance(frame, str) else json.dumps(frame)


class FakeService:
    def __init__(self) -> None:
        self.routes = healthy_routes()
        self.frames = healthy_frames()
        self.refuse_sockets = False
        self.requests: list[str] = []
        self.sent: list[dict[str, Any]] = []
        self.sockets: list[FakeSocket] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        route = self.routes.get(path, (404, {"error": "Not found"}))
        if isinstance(route, Exception):
            raise route
        status, body = route
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def connect(self, url: str, open_timeout: float | None = None, close_timeout: float | None = None) -> FakeSocket:
        if self.refuse_sockets:
            raise ConnectionRefusedError(f"connection refused: {url}")
        socket = FakeSocket(self, url)
        self.sockets.append(socket)
        return socket

    def client_factory(self, target: str, timeout_ms: int) -> ProbeClient:
        return ProbeClient(
            target,
            timeout_ms,
            transport=httpx.MockTransport(self.handle),
            connector=self.connect,
        )
