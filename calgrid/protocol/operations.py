"""
CalDAV protocol operations combining request building and response parsing.

This class provides a high-level interface to the queries calgrid needs
while remaining completely I/O-free.
"""

import base64
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from calgrid.lib import error
from calgrid.lib.url import normalize_url

from .ical_parsers import parse_freebusy_response
from .types import (
    CalendarEvent,
    DAVMethod,
    DAVRequest,
    DAVResponse,
    PropfindResult,
    User,
)
from .xml_builders import (
    build_calendar_query_xml,
    build_freebusy_query_xml,
    build_principal_search_xml,
    build_propfind_calendars_xml,
)
from .xml_parsers import (
    parse_calendar_query_response,
    parse_principal_search_response,
    parse_propfind_calendars_response,
)

log = logging.getLogger("calgrid")

## Per query kind: the status that counts as success, and the message
## used when the server answers 403 / 404.  Note that a free-busy-query
## is answered with a plain 200 and a text/calendar body, not with a 207
## multistatus.
PRINCIPAL_SEARCH = "principal-search"
CALENDAR_QUERY = "calendar-query"
FREEBUSY_QUERY = "free-busy-query"
PROPFIND_CALENDARS = "propfind"

EXPECTED_STATUS: Dict[str, int] = {
    PRINCIPAL_SEARCH: 207,
    CALENDAR_QUERY: 207,
    FREEBUSY_QUERY: 200,
    PROPFIND_CALENDARS: 207,
}

_ACCESS_DENIED_MESSAGES: Dict[str, str] = {
    PRINCIPAL_SEARCH: "Access denied. You don't have permission to search principals.",
    CALENDAR_QUERY: "Access denied. You don't have permission to access this calendar.",
    FREEBUSY_QUERY: "Access denied. You don't have permission to view free/busy data for this calendar.",
    PROPFIND_CALENDARS: "Access denied. You don't have permission to access this calendar.",
}

_NOT_FOUND_MESSAGES: Dict[str, str] = {
    PRINCIPAL_SEARCH: "URL not found. Please check the URL.",
    CALENDAR_QUERY: "Calendar not found at this URL.",
    FREEBUSY_QUERY: "Calendar not found at this URL.",
    PROPFIND_CALENDARS: "Calendar URL not found. Please check the URL.",
}


def week_range(week_start: date) -> Tuple[date, date]:
    """The half-open range [week_start, week_start + 7 days)."""
    return week_start, week_start + timedelta(days=7)


class CalDAVProtocol:
    """
    Sans-I/O CalDAV protocol handler.

    Builds requests and parses responses without doing any I/O.
    All HTTP communication is delegated to an external I/O implementation.

    Example:
        protocol = CalDAVProtocol("https://cal.example.com/", "user", "pass")

        request = protocol.principal_search_request()
        response = io.execute(request)
        users = protocol.parse_principal_search(response)
    """

    def __init__(
        self,
        base_url: str = "",
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        """
        Initialize the protocol handler.

        Args:
            base_url: Base URL for the CalDAV server
            username: Username for Basic authentication
            password: Password for Basic authentication
        """
        self.base_url = normalize_url(base_url) if base_url else ""
        self.username = username
        self._auth_header = self._build_auth_header(username, password)

    def _build_auth_header(
        self,
        username: Optional[str],
        password: Optional[str],
    ) -> Optional[str]:
        """Build Basic auth header if credentials provided."""
        if username and password:
            credentials = f"{username}:{password}"
            encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
            return f"Basic {encoded}"
        return None

    def _request(self, method: DAVMethod, url: str, body: str, depth: int) -> DAVRequest:
        request = DAVRequest(
            method=method,
            url=url,
            headers={
                "Content-Type": "application/xml; charset=utf-8",
                "Depth": str(depth),
            },
            body=body.encode("utf-8"),
        )
        if self._auth_header:
            request = request.with_header("Authorization", self._auth_header)
        return request

    # =========================================================================
    # Request builders
    # =========================================================================

    def principal_search_request(self, search_term: Optional[str] = None) -> DAVRequest:
        """REPORT principal-property-search against the base URL, Depth 0."""
        return self._request(
            DAVMethod.REPORT,
            self.base_url,
            build_principal_search_xml(search_term),
            depth=0,
        )

    def calendar_query_request(self, calendar_url: str, week_start: date) -> DAVRequest:
        """REPORT calendar-query for one week, Depth 1."""
        start, end = week_range(week_start)
        return self._request(
            DAVMethod.REPORT,
            calendar_url,
            build_calendar_query_xml(start, end),
            depth=1,
        )

    def freebusy_query_request(self, calendar_url: str, week_start: date) -> DAVRequest:
        """REPORT free-busy-query for one week, Depth 1."""
        start, end = week_range(week_start)
        return self._request(
            DAVMethod.REPORT,
            calendar_url,
            build_freebusy_query_xml(start, end),
            depth=1,
        )

    def propfind_calendars_request(self, url: str) -> DAVRequest:
        """PROPFIND for calendar discovery, Depth 1."""
        return self._request(
            DAVMethod.PROPFIND,
            url,
            build_propfind_calendars_xml(),
            depth=1,
        )

    # =========================================================================
    # Response handling
    # =========================================================================

    def check_status(self, response: DAVResponse, query: str, url: Optional[str] = None) -> None:
        """
        Raise the typed error matching the response status, unless it is
        exactly the success status of ``query``.

        Raises:
            AuthenticationError: 401
            AccessDeniedError: 403
            NotFoundError: 404
            ProtocolError: any other unexpected status
        """
        if response.status == EXPECTED_STATUS[query]:
            return
        log.debug("%s at %s answered with status %i", query, url, response.status)
        if response.status == 401:
            raise error.AuthenticationError(url=url)
        if response.status == 403:
            raise error.AccessDeniedError(url=url, reason=_ACCESS_DENIED_MESSAGES[query])
        if response.status == 404:
            raise error.NotFoundError(url=url, reason=_NOT_FOUND_MESSAGES[query])
        raise error.ProtocolError(
            url=url,
            reason="Server returned unexpected status %i." % response.status,
            status=response.status,
        )

    def parse_principal_search(self, response: DAVResponse, url: Optional[str] = None) -> List[User]:
        self.check_status(response, PRINCIPAL_SEARCH, url)
        return parse_principal_search_response(response.body)

    def parse_calendar_query(
        self, response: DAVResponse, url: Optional[str] = None
    ) -> List[CalendarEvent]:
        self.check_status(response, CALENDAR_QUERY, url)
        return parse_calendar_query_response(response.body, accessible=True)

    def parse_freebusy_query(
        self, response: DAVResponse, url: Optional[str] = None
    ) -> List[CalendarEvent]:
        self.check_status(response, FREEBUSY_QUERY, url)
        return parse_freebusy_response(response.text)

    def parse_propfind_calendars(self, response: DAVResponse, url: str) -> PropfindResult:
        self.check_status(response, PROPFIND_CALENDARS, url)
        return parse_propfind_calendars_response(response.body, url)
