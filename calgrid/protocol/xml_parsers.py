"""
Pure functions for parsing CalDAV XML responses.

All functions in this module are pure - they take XML in and return
structured data out, with no side effects or I/O.  Any XML syntax error
is reported as a single ProtocolError for the whole body; partial
results are never returned.
"""

import logging
from typing import Callable, List, Optional, TypeVar, Union

from lxml import etree
from lxml.etree import _Element

from calgrid.lib import error
from calgrid.lib.namespace import ns
from calgrid.lib.url import is_same_resource

from .ical_parsers import parse_icalendar_data
from .types import (
    CalendarEvent,
    CalendarInfo,
    DirectCalendars,
    DiscoveryResult,
    NeedsPrincipalFallback,
    PropfindResult,
    User,
)

log = logging.getLogger("calgrid")

T = TypeVar("T")

RESPONSE = ns("D", "response")
HREF = ns("D", "href")
PROPSTAT = ns("D", "propstat")
STATUS = ns("D", "status")
PROP = ns("D", "prop")
RESOURCETYPE = ns("D", "resourcetype")
DISPLAYNAME = ns("D", "displayname")
PRINCIPAL = ns("D", "principal")
COLLECTION = ns("D", "collection")
CALENDAR = ns("C", "calendar")
CALENDAR_DATA = ns("C", "calendar-data")
CALENDAR_DESCRIPTION = ns("C", "calendar-description")
CALENDAR_COLOR = ns("I", "calendar-color")
GETCTAG = ns("CS", "getctag")


def _parse_xml(body: Union[str, bytes]) -> _Element:
    if isinstance(body, str):
        body = body.encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    return etree.fromstring(body, parser)


def _parse_responses(
    body: Union[str, bytes],
    what: str,
    handle: Callable[[_Element, str], Optional[T]],
) -> List[T]:
    """
    Run ``handle(response, href)`` for every successful DAV:response that
    has an href, collecting whatever it returns except None.
    """
    try:
        tree = _parse_xml(body)
    except etree.XMLSyntaxError as e:
        raise error.ProtocolError(reason="Failed to parse %s: %s" % (what, e)) from e

    results: List[T] = []
    for response in tree.iter(RESPONSE):
        href = (_find_text(response, HREF) or "").strip()
        if not href:
            error.weirdness("response without href in", what)
            continue
        if not _is_success_response(response):
            continue
        result = handle(response, href)
        if result is not None:
            results.append(result)
    return results


# Helper functions


def _find_text(parent: _Element, tag: str) -> Optional[str]:
    """Text content of the first descendant ``tag``, or None."""
    elem = next(parent.iter(tag), None)
    if elem is None:
        return None
    return "".join(elem.itertext())


def _is_success_response(response: _Element) -> bool:
    """
    True if some propstat carries a status line mentioning 200.  Status
    lines are free text ("HTTP/1.1 200 OK"), so this is a substring test.
    """
    for propstat in response.iter(PROPSTAT):
        status = _find_text(propstat, STATUS)
        if status is not None and "200" in status:
            return True
    return False


def _get_property_text(response: _Element, tag: str) -> Optional[str]:
    """
    Stripped text of the property ``tag`` inside the first propstat/prop
    holding it.  Blank values are returned as None.
    """
    for propstat in response.iter(PROPSTAT):
        for prop in propstat.iter(PROP):
            elem = next(prop.iter(tag), None)
            if elem is not None:
                text = "".join(elem.itertext())
                return text.strip() if text.strip() else None
    return None


def _has_resource_type(response: _Element, tag: str) -> bool:
    for propstat in response.iter(PROPSTAT):
        for prop in propstat.iter(PROP):
            for resourcetype in prop.iter(RESOURCETYPE):
                if next(resourcetype.iter(tag), None) is not None:
                    return True
    return False


def _normalize_color(color: Optional[str]) -> Optional[str]:
    ## #RRGGBBAA -> #RRGGBB
    if color is not None and len(color) == 9 and color.startswith("#"):
        return color[:7]
    return color


# Parsers


def parse_principal_search_response(body: Union[str, bytes]) -> List[User]:
    """
    Parse a principal-property-search multistatus into Users.

    Only responses whose resourcetype contains ``<D:principal/>`` count.
    A missing or blank displayname falls back to the href.
    """

    def handle(response: _Element, href: str) -> Optional[User]:
        if not _has_resource_type(response, PRINCIPAL):
            return None
        display_name = _get_property_text(response, DISPLAYNAME) or href
        return User(display_name=display_name, href=href)

    return _parse_responses(body, "principal search response", handle)


def parse_calendar_data(body: Union[str, bytes]) -> List[str]:
    """
    The raw ``<C:calendar-data>`` texts of a calendar-query multistatus.
    Blank or missing calendar-data is skipped.
    """

    def handle(response: _Element, href: str) -> Optional[str]:
        return _get_property_text(response, CALENDAR_DATA)

    return _parse_responses(body, "calendar query response", handle)


def parse_calendar_query_response(
    body: Union[str, bytes],
    accessible: bool = True,
) -> List[CalendarEvent]:
    """
    Parse a calendar-query multistatus into CalendarEvents.

    Args:
        body: Raw XML response
        accessible: Passed on to the iCalendar parser; False hides summaries

    Returns:
        Events of all calendar objects, in response order
    """
    events: List[CalendarEvent] = []
    for calendar_data in parse_calendar_data(body):
        events.extend(parse_icalendar_data(calendar_data, accessible))
    return events


def parse_propfind_calendars_response(
    body: Union[str, bytes],
    request_url: str,
) -> PropfindResult:
    """
    Parse a Depth 1 PROPFIND multistatus into calendars and child
    collections.

    The response describing the requested collection itself is left out.
    Calendar collections become CalendarInfo records; other collections
    are returned by href, they are usually principals.
    """
    result = PropfindResult()

    def handle(response: _Element, href: str) -> None:
        if is_same_resource(href, request_url):
            return None
        if _has_resource_type(response, CALENDAR):
            result.calendars.append(
                CalendarInfo(
                    display_name=_get_property_text(response, DISPLAYNAME) or href,
                    href=href,
                    description=_get_property_text(response, CALENDAR_DESCRIPTION),
                    color=_normalize_color(_get_property_text(response, CALENDAR_COLOR)),
                    ctag=_get_property_text(response, GETCTAG),
                )
            )
        elif _has_resource_type(response, COLLECTION):
            result.child_collections.append(href)
        return None

    _parse_responses(body, "server response", handle)
    return result


def classify_discovery(result: PropfindResult) -> DiscoveryResult:
    """
    Decide how discovery continues after the first PROPFIND: calendars
    found directly are final, otherwise the child collections have to be
    asked for theirs.
    """
    if result.calendars or not result.child_collections:
        return DirectCalendars(calendars=list(result.calendars))
    return NeedsPrincipalFallback(child_hrefs=list(result.child_collections))
