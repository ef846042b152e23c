from __future__ import annotations

import os
import socket
import sys
import threading
from pathlib import Path
from typing import Any, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")

from owls_portal.core.config import Settings, get_settings  # noqa: E402

get_settings.cache_clear()

from owls_portal.core.http import override_http_client  # noqa: E402
from owls_portal.main import create_app  # noqa: E402

API_SERVER_URL = "http://api.test"
INTERNAL_SECRET = "internal-secret"
REDIRECT_URI = "https://owlsinsight.com/api/auth/discord/callback"


class FakeUpstream:
    """Scripted stand-in for the upstream API server."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def reply(
        self,
        method: str,
        path: str,
        *,
        status_code: int = 200,
        json: Any = None,
        content: bytes | None = None,
    ) -> None:
        if content is not None:
            self.routes[(method, path)] = httpx.Response(status_code, content=content)
        else:
            self.routes[(method, path)] = httpx.Response(status_code, json=json if json is not None else {})

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.routes[(method, path)] = exc

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.routes.get((request.method, request.url.path))
        if outcome is None:
            return httpx.Response(404, json={"error": "not_found"})
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class DripServer:
    """Real HTTP upstream on 127.0.0.1 that sends headers at once, then the body one byte at a time."""

    def __init__(self, body: bytes, delay: float) -> None:
        self.body = body
        self.delay = delay
        self._stop = threading.Event()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen()
        self._sock.settimeout(0.1)
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._sock.getsockname()
        return f"http://{host}:{port}"

    def start(self) -> None:
        self._thread.start()

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=5)
        self._sock.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(5)
                try:
                    conn.recv(65536)
                    head = (
                        "HTTP/1.1 200 OK\r\n"
                        "Content-Type: application/json\r\n"
                        f"Content-Length: {len(self.body)}\r\n"
                        "Connection: close\r\n\r\n"
                    )
                    conn.sendall(head.encode("ascii"))
                    for byte in self.body:
                        if self._stop.wait(self.delay):
                            return
                        conn.sendall(bytes([byte]))
                except OSError:
                    continue


def set_cookie_headers(response: httpx.Response) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw in response.headers.get_list("set-cookie"):
        name = raw.split("=", 1)[0].strip()
        headers[name] = raw
    return headers


def cookie_value(raw_header: str) -> str:
    value = raw_header.split(";", 1)[0].split("=", 1)[1]
    return value.strip('"')


def is_expired(raw_header: str) -> bool:
    return "max-age=0" in raw_header.lower().replace(" ", "")


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        app_env="test",
        discord_client_id="client-123",
        discord_redirect_uri=REDIRECT_URI,
        api_server_url=API_SERVER_URL,
        internal_auth_secret=INTERNAL_SECRET,
    )


@pytest.fixture()
def upstream() -> Generator[FakeUpstream, None, None]:
    fake = FakeUpstream()
    override_http_client(httpx.Client(transport=httpx.MockTransport(fake.handle)))
    yield fake
    override_http_client(None)


@pytest.fixture()
def client(settings: Settings, upstream: FakeUpstream) -> Generator[TestClient, None, None]:
    app = create_app(settings)
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client
