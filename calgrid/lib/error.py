#!/usr/bin/env python
import logging
import os
from typing import Optional

from calgrid import __version__

## Environmental variables prepended with "CALGRID_" are used both for
## connection parameters and for debug purposes.
## CALGRID_DEBUGMODE is one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("CALGRID_DEBUGMODE")
if not debugmode:
    if "dev" in __version__ or __version__ == "(unknown)":
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("calgrid")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def weirdness(*reasons) -> None:
    reason = " : ".join(str(x) for x in reasons)
    log.warning(f"Deviation from expectations found: {reason}")


class CalGridError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason
        super().__init__(self.reason)

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class ValidationError(CalGridError):
    """
    Input was rejected before any request was sent (blank url,
    username, password or search term).
    """

    pass


class AuthenticationError(CalGridError):
    """The server answered 401, the credentials were not accepted."""

    reason = "Authentication failed. Please check your username and password."


class AccessDeniedError(CalGridError):
    """
    The server answered 403.  When fetching the events of a week this
    is the one error that triggers the free-busy fallback.
    """

    reason = "Access denied."


class NotFoundError(CalGridError):
    reason = "Not found."


class ProtocolError(CalGridError):
    """
    Unexpected status code, unparseable XML, or a network failure
    (including timeouts).  ``status`` is None when no HTTP status was
    received.
    """

    status: Optional[int] = None

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(url, reason)
        self.status = status


class ParseError(CalGridError):
    pass


