"""
I/O layer for the CalDAV protocol.

This module provides sync and async implementations for executing
DAVRequest objects and returning DAVResponse objects.

The I/O layer is intentionally thin - it only handles HTTP transport.
All protocol logic (XML building/parsing, status classification) is in
calgrid.protocol.

Example (sync):
    from calgrid.protocol import CalDAVProtocol
    from calgrid.io import SyncIO

    protocol = CalDAVProtocol("https://cal.example.com", "user", "pass")
    with SyncIO() as io:
        request = protocol.principal_search_request()
        users = protocol.parse_principal_search(io.execute(request))
"""

from .base import AsyncIOProtocol, SyncIOProtocol
from .sync import SyncIO
from .async_ import AsyncIO

__all__ = [
    # Protocols
    "SyncIOProtocol",
    "AsyncIOProtocol",
    # Implementations
    "SyncIO",
    "AsyncIO",
]
