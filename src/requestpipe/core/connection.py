"""
=============================================================================
CONNECTION WRAPPER
=============================================================================

Wraps a client socket with buffered request reading, response sending and
the two ways a connection can end.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► KEEP_ALIVE ──► READING ...
                                │
                                ├──► CLOSED   close(): orderly FIN
                                └──► ABORTED  abort(): RST, used when a
                                              started response can't be
                                              finished honestly

Reading a complete request:
1. Read until we see \r\n\r\n (end of headers)
2. Parse Content-Length from headers
3. Read exactly Content-Length more bytes (the body)

=============================================================================
"""

import socket
import struct
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    KEEP_ALIVE = "keep_alive"
    CLOSED = "closed"
    ABORTED = "aborted"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Unique connection identifier (for logging).
        requests_handled: Number of requests read on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def is_open(self) -> bool:
        return self.state not in (ConnectionState.CLOSED, ConnectionState.ABORTED)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            Complete request bytes, or None if the client closed the
            connection (or an idle keep-alive connection timed out).

        Raises:
            TimeoutError: The first request did not arrive in time.
            ValueError: The request exceeds max_request_size.
        """
        self.state = ConnectionState.READING

        # Subsequent requests on a keep-alive connection get less patience
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]  # keep pipelined leftovers

            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.is_open:
                self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return int(line.split(":", 1)[1].strip())
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> None:
        """
        Send bytes to the client.

        Raises:
            OSError: The client went away. The response writer lets this
                propagate so the pipeline can see the failed write.
        """
        self.socket.sendall(data)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN: we're done sending
        2. drain whatever the client still sent
        3. close() releases the file descriptor
        """
        if not self.is_open:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except (socket.timeout, OSError):
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def abort(self):
        """
        Terminate the connection abruptly.

        SO_LINGER with a zero timeout makes close() send RST instead of FIN,
        so the client can't mistake a truncated response for a complete one.
        """
        if not self.is_open:
            return

        try:
            self.socket.setsockopt(
                socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0)
            )
        except OSError:
            pass
        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.ABORTED
        logger.debug(f"[{self.id}] Connection aborted")

    def set_keep_alive(self):
        """Mark connection for keep-alive (ready for next request)."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
