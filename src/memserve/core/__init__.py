"""
Socket-level building blocks: the TCP listener and the per-client
connection wrapper.
"""

from .connection import Connection, ConnectionState, RequestTooLarge
from .listener import SocketServer

__all__ = ["Connection", "ConnectionState", "RequestTooLarge", "SocketServer"]
