"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Dict, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from requestpipe import HTTPServer, ServerConfig
from requestpipe.http import HttpContext, HTTPRequest, ResponseWriter
from requestpipe.http.response import DEFAULT_BUFFER_SIZE


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


# =============================================================================
# IN-MEMORY RESPONSES
# =============================================================================

class RecordingTransport:
    """
    Transport that records every send.

    Args:
        fail_after: Number of successful sends before every further send
            raises ConnectionResetError. None never fails.
    """

    def __init__(self, fail_after: Optional[int] = None):
        self.sends: List[bytes] = []
        self.fail_after = fail_after

    def __call__(self, data: bytes) -> None:
        if self.fail_after is not None and len(self.sends) >= self.fail_after:
            raise ConnectionResetError("client went away")
        self.sends.append(data)

    @property
    def data(self) -> bytes:
        return b"".join(self.sends)


class ParsedResponse:
    """A raw response split into status, headers and (de-chunked) body."""

    def __init__(self, raw: bytes):
        head, _, rest = raw.partition(b"\r\n\r\n")
        lines = head.decode("utf-8").split("\r\n")

        self.status_line = lines[0]
        self.status_code = int(lines[0].split(" ")[1])
        self.headers: Dict[str, str] = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            self.headers[name.strip().lower()] = value.strip()

        self.chunked = self.headers.get("transfer-encoding") == "chunked"
        self.terminated = True
        if self.chunked:
            self.body, self.terminated = decode_chunked(rest)
        else:
            self.body = rest

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


def decode_chunked(data: bytes) -> Tuple[bytes, bool]:
    """Decode a chunked body. Returns (payload, saw terminating chunk)."""
    payload = b""
    while data:
        size_line, sep, data = data.partition(b"\r\n")
        if not sep:
            break
        size = int(size_line, 16)
        if size == 0:
            return payload, True
        payload += data[:size]
        data = data[size + 2:]
    return payload, False


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def make_context() -> Callable[..., HttpContext]:
    """
    Factory for an HttpContext backed by a RecordingTransport.

        ctx = make_context("POST", "/orders", body=b"{}")
        ctx.response._transport.data
    """
    def make(
        method: str = "GET",
        path: str = "/",
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        transport: Optional[RecordingTransport] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> HttpContext:
        request = HTTPRequest(
            method=method,
            path=path,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            body=body,
            client_address=("127.0.0.1", 50000),
        )
        response = ResponseWriter(
            transport if transport is not None else RecordingTransport(),
            buffer_size=buffer_size,
        )
        return HttpContext(request=request, response=response)

    return make


def sent(ctx: HttpContext) -> ParsedResponse:
    """Parse everything the context's response has sent so far."""
    return ParsedResponse(ctx.response._transport.data)


# =============================================================================
# LIVE SERVER
# =============================================================================

@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        max_workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class LiveServer:
    """Runs an HTTPServer in a background thread."""

    def __init__(self, server: HTTPServer, port: int):
        self.server = server
        self.port = port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"port": self.port},
            daemon=True
        )
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw request bytes and read until the server closes."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(raw)
            chunks = []
            while True:
                try:
                    chunk = s.recv(65536)
                except ConnectionResetError:
                    break
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


def get(path: str) -> bytes:
    return (
        f"GET {path} HTTP/1.1\r\n"
        f"Host: localhost\r\n"
        f"Connection: close\r\n"
        f"\r\n"
    ).encode()


def post_json(path: str, body: bytes, content_type: str = "application/json") -> bytes:
    return (
        f"POST {path} HTTP/1.1\r\n"
        f"Host: localhost\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"Connection: close\r\n"
        f"\r\n"
    ).encode() + body


@pytest.fixture
def live_server_factory(free_port: int) -> Generator[Callable[..., LiveServer], None, None]:
    """
    Start a server after the test registered its routes.

        live = live_server_factory(server)
        raw = live.request(get("/"))
    """
    started: List[LiveServer] = []

    def start(server: HTTPServer) -> LiveServer:
        live = LiveServer(server, free_port)
        live.start()
        started.append(live)
        return live

    yield start

    for live in started:
        live.stop()
