"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Builds and commits HTTP/1.1 responses for a single request.

=============================================================================
WHY A WRITER AND NOT A RETURN VALUE?
=============================================================================

A handler that only returns a response object can always be overruled by
the handler wrapped around it. Real responses are not like that: once the
status line has gone out on the socket it cannot be taken back. The writer
models that boundary explicitly.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     RESPONSE WRITER LIFECYCLE                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   NOT STARTED ──── flush() / buffer full ────► STARTED (chunked)    │
    │       │                                            │                 │
    │       │ complete()                                 │ complete()      │
    │       ▼                                            ▼                 │
    │   COMPLETED (Content-Length)              COMPLETED (0\r\n\r\n)     │
    │                                                                      │
    │   While NOT STARTED: status, headers and the body buffer can be     │
    │   changed or clear()ed freely.                                      │
    │   Once STARTED: status and headers are frozen, body bytes go out    │
    │   as chunks, clear() raises ResponseAlreadyStartedError.            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

ResponseState is the one piece of per-request shared state the abort
trapper reads. Only the writer mutates it, and only forward.

=============================================================================
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple, Union

from .status_codes import HTTPStatus, is_valid_status_code, status_phrase


Transport = Callable[[bytes], None]
StartingCallback = Callable[["ResponseWriter"], None]

DEFAULT_BUFFER_SIZE = 64 * 1024


class ResponseAlreadyStartedError(RuntimeError):
    """Raised when a committed response is modified."""


class ResponseState:
    """
    Tracks whether output for the current request has begun.

    Monotonic: once started it never resets. One instance per request.
    """

    def __init__(self):
        self._started = False

    @property
    def has_started(self) -> bool:
        return self._started

    def mark_started(self) -> None:
        self._started = True

    def __repr__(self) -> str:
        return f"ResponseState(started={self._started})"


class ResponseWriter:
    """
    Per-request HTTP response.

    Usage:
        response = ResponseWriter(conn.send)
        response.status_code = 201
        response.content_type = "application/json"
        response.write('{"id": 1}')
        response.complete()

    Args:
        transport: Callable that sends bytes to the client. It may raise
            OSError; the response is already marked as started by then.
        server_name: Value for the Server header.
        buffer_size: Body bytes held back before the response starts
            streaming with chunked transfer encoding.
        version: HTTP version for the status line.
    """

    def __init__(
        self,
        transport: Transport,
        server_name: str = "requestpipe/1.0",
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        version: str = "HTTP/1.1",
    ):
        self._transport = transport
        self._server_name = server_name
        self._buffer_size = buffer_size
        self._version = version

        self.state = ResponseState()

        self._status_code: int = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._buffer = bytearray()
        self._chunked = False
        self._completed = False
        self._body_length = 0
        self._starting_callbacks: List[Tuple[StartingCallback, bool]] = []

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def has_started(self) -> bool:
        """True once any byte of the response was handed to the transport."""
        return self.state.has_started

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def body_length(self) -> int:
        """Body bytes written so far (buffered or sent)."""
        return self._body_length

    # =========================================================================
    # STATUS AND HEADERS
    # =========================================================================

    @property
    def status_code(self) -> int:
        return self._status_code

    @status_code.setter
    def status_code(self, code: int) -> None:
        self._ensure_not_started("set the status code")
        if not is_valid_status_code(code):
            raise ValueError(f"Invalid HTTP status code: {code!r}")
        self._status_code = code

    @property
    def headers(self) -> Dict[str, str]:
        """Response headers. Treat as read-only once the response started."""
        return self._headers

    def set_header(self, name: str, value: str) -> "ResponseWriter":
        self._ensure_not_started(f"set header {name}")
        # Replace any existing header with the same name in another case
        for existing in [h for h in self._headers if h.lower() == name.lower()]:
            del self._headers[existing]
        self._headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        for existing, value in self._headers.items():
            if existing.lower() == name.lower():
                return value
        return default

    @property
    def content_type(self) -> Optional[str]:
        return self.get_header("Content-Type")

    @content_type.setter
    def content_type(self, value: str) -> None:
        self.set_header("Content-Type", value)

    def on_starting(self, callback: StartingCallback, transport: bool = False) -> None:
        """
        Register a callback run once, right before headers are serialized.

        Args:
            callback: Called with this writer; may set headers.
            transport: Connection-level callback registered by the host.
                Only these survive clear(); everything else is discarded
                with the headers it would have added.
        """
        self._ensure_not_started("register an on_starting callback")
        self._starting_callbacks.append((callback, transport))

    # =========================================================================
    # BODY
    # =========================================================================

    def write(self, data: Union[str, bytes]) -> None:
        """
        Append body data.

        Buffered until the buffer exceeds buffer_size or flush() is called;
        after that every write goes straight out as a chunk.
        """
        if self._completed:
            raise ResponseAlreadyStartedError("Response already completed")

        if isinstance(data, str):
            data = data.encode("utf-8")
        if not data:
            return

        self._body_length += len(data)

        if self.has_started:
            self._send(self._encode_chunk(data))
            return

        self._buffer.extend(data)
        if len(self._buffer) > self._buffer_size:
            self.flush()

    def flush(self) -> None:
        """Start the response (chunked) and send whatever is buffered."""
        if self._completed or self.has_started:
            return

        self._chunked = True
        head = self._serialize_head()
        payload = bytes(self._buffer)
        self._buffer.clear()

        self.state.mark_started()
        self._send(head + (self._encode_chunk(payload) if payload else b""))

    def complete(self) -> None:
        """
        Finish the response. Idempotent.

        An unstarted response goes out whole with Content-Length; a started
        one gets the terminating zero-length chunk.
        """
        if self._completed:
            return

        if self.has_started:
            self._completed = True
            if self._chunked:
                self._send(b"0\r\n\r\n")
            return

        head = self._serialize_head()
        payload = bytes(self._buffer)
        self._buffer.clear()

        self._completed = True
        self.state.mark_started()
        self._send(head + payload)

    def clear(self) -> None:
        """
        Discard status, headers, buffered body and non-transport
        on_starting callbacks.

        Raises:
            ResponseAlreadyStartedError: If any byte was already committed.
        """
        self._ensure_not_started("clear the response")
        self._status_code = HTTPStatus.OK
        self._headers = {}
        self._buffer.clear()
        self._body_length = 0
        self._starting_callbacks = [
            (callback, transport)
            for callback, transport in self._starting_callbacks
            if transport
        ]

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @property
    def status_line(self) -> str:
        return f"{self._version} {self._status_code} {status_phrase(self._status_code)}"

    def _serialize_head(self) -> bytes:
        """
        Run on_starting callbacks and render status line plus headers.

            HTTP/1.1 200 OK\r\n
            Content-Type: text/plain\r\n
            Content-Length: 5\r\n          (or Transfer-Encoding: chunked)
            Date: Wed, 01 Jan 2026 ...\r\n
            Server: requestpipe/1.0\r\n
            \r\n
        """
        callbacks, self._starting_callbacks = self._starting_callbacks, []
        for callback, _ in callbacks:
            callback(self)

        headers = dict(self._headers)
        if self._chunked:
            headers = {k: v for k, v in headers.items() if k.lower() != "content-length"}
            headers["Transfer-Encoding"] = "chunked"
        elif self.get_header("Content-Length") is None:
            headers["Content-Length"] = str(len(self._buffer))

        if self.get_header("Date") is None:
            headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if self.get_header("Server") is None:
            headers["Server"] = self._server_name

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")
        return "\r\n".join(lines).encode("utf-8") + b"\r\n"

    @staticmethod
    def _encode_chunk(data: bytes) -> bytes:
        return f"{len(data):X}\r\n".encode("ascii") + data + b"\r\n"

    def _send(self, data: bytes) -> None:
        self._transport(data)

    def _ensure_not_started(self, action: str) -> None:
        if self.has_started:
            raise ResponseAlreadyStartedError(
                f"Cannot {action}: response has already started"
            )

    def __repr__(self) -> str:
        return (
            f"ResponseWriter(status_code={self._status_code}, "
            f"started={self.has_started}, completed={self._completed})"
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Example: ``Wed, 01 Jan 2026 12:00:00 GMT``. HTTP dates are always GMT.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
