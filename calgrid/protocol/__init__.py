"""
Sans-I/O CalDAV protocol implementation.

This module provides protocol-level operations without any I/O.
It builds requests and parses responses as pure data transformations.

The protocol layer is organized into:
- types: Core data structures (DAVRequest, DAVResponse, result types)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Pure functions to parse multistatus response bodies
- ical_parsers: Minimal iCalendar / free-busy text scanner
- operations: CalDAVProtocol class combining builders and parsers

Example usage:

    from calgrid.protocol import CalDAVProtocol

    protocol = CalDAVProtocol("https://cal.example.com", "user", "pass")

    # Build a request (no I/O)
    request = protocol.calendar_query_request(calendar_url, week_start)

    # Execute via your preferred I/O (sync, async, or mock)
    response = your_http_client.execute(request)

    # Parse response (no I/O)
    events = protocol.parse_calendar_query(response)
"""

from .types import (
    # Enums
    DAVMethod,
    # Request/Response
    DAVRequest,
    DAVResponse,
    # Result types
    CalendarEvent,
    CalendarInfo,
    ConnectionInfo,
    DirectCalendars,
    DiscoveryResult,
    NeedsPrincipalFallback,
    PropfindResult,
    ScheduleRow,
    SlotInfo,
    User,
    UserFetchResult,
)
from .xml_builders import (
    build_calendar_query_xml,
    build_freebusy_query_xml,
    build_principal_search_xml,
    build_propfind_calendars_xml,
    escape_xml,
    format_utc_instant,
)
from .xml_parsers import (
    classify_discovery,
    parse_calendar_data,
    parse_calendar_query_response,
    parse_principal_search_response,
    parse_propfind_calendars_response,
)
from .ical_parsers import (
    parse_freebusy_response,
    parse_icalendar_data,
    unfold,
)
from .operations import CalDAVProtocol

__all__ = [
    # Enums
    "DAVMethod",
    # Request/Response
    "DAVRequest",
    "DAVResponse",
    # Result types
    "CalendarEvent",
    "CalendarInfo",
    "ConnectionInfo",
    "DirectCalendars",
    "DiscoveryResult",
    "NeedsPrincipalFallback",
    "PropfindResult",
    "ScheduleRow",
    "SlotInfo",
    "User",
    "UserFetchResult",
    # XML Builders
    "build_calendar_query_xml",
    "build_freebusy_query_xml",
    "build_principal_search_xml",
    "build_propfind_calendars_xml",
    "escape_xml",
    "format_utc_instant",
    # XML Parsers
    "classify_discovery",
    "parse_calendar_data",
    "parse_calendar_query_response",
    "parse_principal_search_response",
    "parse_propfind_calendars_response",
    # iCalendar
    "parse_freebusy_response",
    "parse_icalendar_data",
    "unfold",
    # Protocol
    "CalDAVProtocol",
]
