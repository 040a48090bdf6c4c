"""
Low-level transport: the listening socket and client connections.
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer

__all__ = ["Connection", "ConnectionState", "SocketServer"]
