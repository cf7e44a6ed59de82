"""
Core protocol types for the Sans-I/O CalDAV layer.

The request/response dataclasses represent HTTP traffic at the protocol
level, independent of any I/O implementation.  The remaining records are
the parsed results handed to the schedule engine and to the renderer.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Optional, Union

from calgrid.lib import error


class DAVMethod(Enum):
    """WebDAV/CalDAV HTTP methods used by calgrid."""

    PROPFIND = "PROPFIND"
    REPORT = "REPORT"


@dataclass(frozen=True)
class DAVRequest:
    """
    Represents an HTTP request to be made.

    This is a pure data structure with no I/O.  It describes what request
    should be made, but does not make it.

    Attributes:
        method: HTTP method
        url: Full URL for the request
        headers: HTTP headers as dict
        body: Request body as bytes (optional)
    """

    method: DAVMethod
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def with_header(self, name: str, value: str) -> "DAVRequest":
        """Return new request with additional header."""
        return DAVRequest(
            method=self.method,
            url=self.url,
            headers={**self.headers, name: value},
            body=self.body,
        )


@dataclass(frozen=True)
class DAVResponse:
    """
    Represents an HTTP response received.

    Attributes:
        status: HTTP status code
        headers: HTTP headers as dict
        body: Response body as bytes
    """

    status: int
    headers: dict[str, str]
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class User:
    """
    A principal discovered on the server.

    ``href`` is the identity key: selection, event maps and failure
    tracking are all keyed on it.
    """

    display_name: str
    href: str


@dataclass(frozen=True)
class CalendarEvent:
    """
    One appointment, or one busy period from a free-busy report.

    Attributes:
        summary: Title of the event, None when the calendar is restricted
        date: Day of the event
        start_time: Start, None for all-day events
        end_time: End, None for all-day events
        status: CLASS of the event (PUBLIC, PRIVATE, ...) or the FBTYPE of
            a free-busy period (BUSY, BUSY-TENTATIVE, BUSY-UNAVAILABLE)
        accessible: Whether the event details are visible to the current user
    """

    summary: Optional[str]
    date: date
    start_time: Optional[time]
    end_time: Optional[time]
    status: str
    accessible: bool

    def __post_init__(self) -> None:
        if self.summary is not None and not self.accessible:
            raise ValueError("a summary requires an accessible event")
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must both be set or both be None")

    @property
    def all_day(self) -> bool:
        return self.start_time is None


@dataclass(frozen=True)
class SlotInfo:
    """Display state of a single cell in the schedule grid."""

    css_class: str
    label: Optional[str] = None
    tooltip: Optional[str] = None
    busy: bool = False


@dataclass(frozen=True)
class ScheduleRow:
    """
    One row of the schedule grid.  ``user`` is None for the synthetic
    "all free" row, which is always the last one.
    """

    user: Optional[User]
    slots: dict[str, SlotInfo] = field(default_factory=dict)


@dataclass(frozen=True)
class ConnectionInfo:
    """
    Server URL and credentials.  Kept in memory only, calgrid never
    writes them anywhere.
    """

    url: str
    username: str
    password: str

    def __repr__(self) -> str:
        return "ConnectionInfo(url=%r, username=%r, password='***')" % (
            self.url,
            self.username,
        )

    def validate(self) -> None:
        """Raise ValidationError for blank fields, before any I/O happens."""
        if not self.url or not self.url.strip():
            raise error.ValidationError(reason="CalDAV URL must not be empty.")
        if not self.username or not self.username.strip():
            raise error.ValidationError(reason="Username must not be empty.")
        if not self.password or not self.password.strip():
            raise error.ValidationError(reason="Password must not be empty.")


@dataclass(frozen=True)
class CalendarInfo:
    """
    A calendar collection found by PROPFIND discovery.

    Attributes:
        display_name: Name of the calendar (falls back to the href)
        href: URL or path of the calendar collection
        description: Optional calendar-description
        color: Optional colour as #RRGGBB
        ctag: Optional CalendarServer ctag
        owner: Display name of the owning principal, if known
        accessible: Whether the current user may read the calendar
    """

    display_name: str
    href: str
    description: Optional[str] = None
    color: Optional[str] = None
    ctag: Optional[str] = None
    owner: Optional[str] = None
    accessible: bool = True


@dataclass
class PropfindResult:
    """
    Parsed PROPFIND multistatus: calendars found directly, plus the hrefs
    of non-calendar child collections (usually principals).
    """

    calendars: list[CalendarInfo] = field(default_factory=list)
    child_collections: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DirectCalendars:
    """The discovery URL pointed at a collection holding calendars."""

    calendars: list[CalendarInfo]


@dataclass(frozen=True)
class NeedsPrincipalFallback:
    """
    The discovery URL pointed at a server root; each child collection has
    to be queried for its calendars.
    """

    child_hrefs: list[str]


DiscoveryResult = Union[DirectCalendars, NeedsPrincipalFallback]


@dataclass(frozen=True)
class UserFetchResult:
    """
    Outcome of fetching one user's week.  Exactly one of ``events`` and
    ``error`` is meaningful: ``error`` is None on success.
    """

    user: User
    week_start: date
    events: list[CalendarEvent] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
