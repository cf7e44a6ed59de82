#!/usr/bin/env python
import logging

__version__ = "0.1.0"

from .protocol_client import AsyncProtocolClient
from .protocol_client import SyncProtocolClient
from .protocol.types import CalendarEvent
from .protocol.types import ConnectionInfo
from .protocol.types import User
from .schedule import build_schedule_rows

## Silence notification of no default logging handler
log = logging.getLogger("calgrid")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "AsyncProtocolClient",
    "SyncProtocolClient",
    "CalendarEvent",
    "ConnectionInfo",
    "User",
    "build_schedule_rows",
]
