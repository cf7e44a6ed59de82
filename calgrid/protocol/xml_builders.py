"""
Pure functions for building CalDAV XML request bodies.

All functions in this module are pure - they take data in and return XML
text out, with no side effects or I/O.  The principal search body is a
fixed template, its only input (the search term) goes through
``escape_xml``; the other bodies are built as lxml trees.
"""
from datetime import date, datetime, timezone
from typing import Optional, Union

from lxml import etree

from calgrid.lib.namespace import ns, nsmap, nsmap2

_PRINCIPAL_SEARCH_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    + '<d:principal-property-search xmlns:d="{dav}" test="anyof">\n'
    "  <d:property-search>\n"
    "    <d:prop>\n"
    "      <d:displayname/>\n"
    "    </d:prop>\n"
    "    {match}\n"
    "  </d:property-search>\n"
    "  <d:prop>\n"
    "    <d:displayname/>\n"
    "    <d:resourcetype/>\n"
    "  </d:prop>\n"
    "</d:principal-property-search>\n"
)


def _tostring(root: etree._Element) -> str:
    return etree.tostring(
        root, encoding="utf-8", xml_declaration=True, pretty_print=True
    ).decode("utf-8")


def escape_xml(text: str) -> str:
    """
    Escape the five XML special characters.

    The ampersand has to go first, otherwise the entities produced by the
    later replacements would be escaped once more.
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def format_utc_instant(day: Union[date, datetime]) -> str:
    """
    Format the start of ``day`` as a basic-format UTC instant,
    i.e. ``20250210T000000Z``.
    """
    if isinstance(day, datetime):
        if day.tzinfo is not None:
            day = day.astimezone(timezone.utc)
        day = day.date()
    return day.strftime("%Y%m%d") + "T000000Z"


def build_principal_search_xml(search_term: Optional[str] = None) -> str:
    """
    Build a principal-property-search REPORT body (RFC 3744).

    Args:
        search_term: Substring to look for in the display names.  An empty
            or missing term gives an empty ``<d:match/>``, which matches
            every principal.

    Returns:
        XML text
    """
    if search_term:
        match = "<d:match>%s</d:match>" % escape_xml(search_term)
    else:
        match = "<d:match/>"
    return _PRINCIPAL_SEARCH_TEMPLATE.format(dav=nsmap["D"], match=match)


def build_calendar_query_xml(start: date, end: date) -> str:
    """
    Build a calendar-query REPORT body fetching expanded VEVENTs in the
    half-open range [start, end).

    Args:
        start: First day of the range
        end: First day after the range

    Returns:
        XML text
    """
    time_range = {"start": format_utc_instant(start), "end": format_utc_instant(end)}
    root = etree.Element(ns("C", "calendar-query"), nsmap=nsmap)
    prop = etree.SubElement(root, ns("D", "prop"))
    etree.SubElement(prop, ns("D", "getetag"))
    data = etree.SubElement(prop, ns("C", "calendar-data"))
    ## <c:expand> makes the server expand recurring events into single
    ## instances (RFC 4791 section 9.6.5), so no RRULE evaluation is needed
    ## on our side.
    etree.SubElement(data, ns("C", "expand"), time_range)
    filter_ = etree.SubElement(root, ns("C", "filter"))
    vcalendar = etree.SubElement(filter_, ns("C", "comp-filter"), name="VCALENDAR")
    vevent = etree.SubElement(vcalendar, ns("C", "comp-filter"), name="VEVENT")
    etree.SubElement(vevent, ns("C", "time-range"), time_range)
    return _tostring(root)


def build_freebusy_query_xml(start: date, end: date) -> str:
    """
    Build a free-busy-query REPORT body (RFC 4791 section 7.10) for the
    half-open range [start, end).  Used when we only have the
    CALDAV:read-free-busy privilege.
    """
    root = etree.Element(ns("C", "free-busy-query"), nsmap={"C": nsmap["C"]})
    etree.SubElement(
        root,
        ns("C", "time-range"),
        start=format_utc_instant(start),
        end=format_utc_instant(end),
    )
    return _tostring(root)


def build_propfind_calendars_xml() -> str:
    """Build the PROPFIND body used for calendar discovery."""
    root = etree.Element(ns("D", "propfind"), nsmap=nsmap2)
    prop = etree.SubElement(root, ns("D", "prop"))
    for prefix, tag in (
        ("D", "displayname"),
        ("D", "resourcetype"),
        ("C", "calendar-description"),
        ("I", "calendar-color"),
        ("CS", "getctag"),
    ):
        etree.SubElement(prop, ns(prefix, tag))
    return _tostring(root)
