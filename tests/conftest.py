"""Shared fakes: an in-process messaging backend behind httpx.MockTransport."""

import json
from typing import Any

import httpx
import pytest


class FakeBackend:
    def __init__(self) -> None:
        self.statuses: list[dict[str, Any]] = [{"status": "authenticated"}]
        self.contacts: list[Any] = [{"phone": "15550001"}, {"phone": "15550002"}]
        self.fail_send = False
        self.requests: list[tuple[str, str]] = []
        self.registered: list[str] = []
        self.uploads: list[bytes] = []
        self.sent: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.requests.append((method, path))
        if method == "POST" and path == "/init-session":
            self.registered.append(json.loads(request.content)["userId"])
            return httpx.Response(200, json={"message": "Session initialized"})
        if method == "GET" and path.startswith("/qr/"):
            item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json=item)
        if method == "POST" and path.startswith("/upload/"):
            self.uploads.append(request.content)
            return httpx.Response(200, json={"contacts": self.contacts})
        if method == "POST" and path.startswith("/send/"):
            if self.fail_send:
                return httpx.Response(500, text="whatsapp client crashed")
            body = json.loads(request.content)
            self.sent.append(body)
            return httpx.Response(200, json={"count": len(body["contacts"])})
        return httpx.Response(404, text="not found")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def status_queries(self) -> int:
        return sum(1 for method, path in self.requests if method == "GET" and path.startswith("/qr/"))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
