"""
Minimal, non-validating iCalendar (RFC 5545) scanner.

The input is what a CalDAV server hands back for a calendar-query with
``<c:expand>`` or for a free-busy-query: single-instance VEVENT blocks and
one VFREEBUSY block.  No recurrence rule is ever evaluated here, and only
the handful of properties the schedule grid needs are looked at.

All compiled patterns below are only used through ``search``/``finditer``,
which keep no scan position between calls, so the functions are safe to
call from concurrent fetches.
"""
import logging
import re
from datetime import date, time
from typing import List, Optional, Tuple

from calgrid.lib import error

from .types import CalendarEvent

log = logging.getLogger("calgrid")

DEFAULT_CLASS = "PUBLIC"
## RFC 4791 section 7.10 / RFC 5545 section 3.2.9
DEFAULT_FBTYPE = "BUSY"
NO_TITLE = "(No title)"

_FOLD_RE = re.compile(r"\r?\n[ \t]")
_VEVENT_RE = re.compile(r"BEGIN:VEVENT(.*?)END:VEVENT", re.S)
_VALARM_RE = re.compile(r"BEGIN:VALARM.*?END:VALARM", re.S)
_VFREEBUSY_RE = re.compile(r"BEGIN:VFREEBUSY(.*?)END:VFREEBUSY", re.S)
_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")
_FBTYPE_RE = re.compile(r"FBTYPE=([A-Za-z-]+)")


def _property_pattern(name: str) -> "re.Pattern[str]":
    ## group 1 is the separator: ";" means parameters follow
    return re.compile(r"^%s([;:])(.*)$" % name, re.M)


SUMMARY_PATTERN = _property_pattern("SUMMARY")
DTSTART_PATTERN = _property_pattern("DTSTART")
DTEND_PATTERN = _property_pattern("DTEND")
DURATION_PATTERN = _property_pattern("DURATION")
CLASS_PATTERN = _property_pattern("CLASS")
FREEBUSY_PATTERN = _property_pattern("FREEBUSY")


def unfold(text: str) -> str:
    """Join folded content lines (a line break followed by space or tab)."""
    return _FOLD_RE.sub("", text)


def _split_parameters(separator: str, raw: str) -> Tuple[str, str]:
    """
    Split ``;VALUE=DATE:20250210`` style content into its parameter part
    and its value.  Without parameters the parameter part is empty.
    """
    if separator == ";":
        params, colon, value = raw.partition(":")
        if colon:
            return params, value.strip()
    return "", raw.strip()


def extract_property(block: str, pattern: "re.Pattern[str]") -> Optional[str]:
    """
    Return the value of the first property in ``block`` matching
    ``pattern``, with any parameters removed, or None.
    """
    match = pattern.search(block)
    if match is None:
        return None
    return _split_parameters(match.group(1), match.group(2))[1]


def _unescape_text(value: str) -> str:
    return (
        value.replace("\\n", "\n")
        .replace("\\N", "\n")
        .replace("\\,", ",")
        .replace("\\;", ";")
        .replace("\\\\", "\\")
    )


def parse_ical_date(value: str) -> Optional[date]:
    """
    Date part of a DATE or DATE-TIME value (20250210, 20250210T140000,
    20250210T140000Z).
    """
    clean = value.replace("Z", "").strip()
    if len(clean) < 8:
        return None
    try:
        return date(int(clean[0:4]), int(clean[4:6]), int(clean[6:8]))
    except ValueError:
        log.warning("Failed to parse iCalendar date: %s", value)
        return None


def parse_ical_time(value: str) -> Optional[time]:
    """
    Time of day of a DATE-TIME value, or None for a plain DATE (all-day).
    Seconds are dropped.
    """
    clean = value.replace("Z", "").strip()
    if "T" not in clean or len(clean) < 15:
        return None
    try:
        return time(int(clean[9:11]), int(clean[11:13]))
    except ValueError:
        log.warning("Failed to parse iCalendar time: %s", value)
        return None


def parse_duration(value: str) -> int:
    """
    Parse a ``PT[nH][nM][nS]`` duration into minutes.

    Raises:
        ParseError: for anything outside that grammar, e.g. ``P1D``
    """
    match = _DURATION_RE.match(value.strip())
    if match is None:
        raise error.ParseError(reason="unsupported duration %r" % value)
    hours, minutes, seconds = (int(x) if x else 0 for x in match.groups())
    return hours * 60 + minutes + seconds // 60


def end_time_from_duration(start: Optional[time], duration: str) -> Optional[time]:
    """
    ``start`` plus ``duration``, wrapping around midnight.  Returns None
    when there is no start time or the duration can't be parsed.
    """
    if start is None:
        return None
    try:
        minutes = parse_duration(duration)
    except error.ParseError:
        log.warning("Failed to parse duration: %s", duration)
        return None
    total = (start.hour * 60 + start.minute + minutes) % (24 * 60)
    return time(total // 60, total % 60)


def _make_event(
    summary: Optional[str],
    day: date,
    start: Optional[time],
    end: Optional[time],
    status: str,
    accessible: bool,
) -> CalendarEvent:
    ## An event whose end can't be determined blocks the whole day, the
    ## same way an all-day event does.
    if start is None or end is None:
        start = end = None
    return CalendarEvent(
        summary=summary if accessible else None,
        date=day,
        start_time=start,
        end_time=end,
        status=status,
        accessible=accessible,
    )


def parse_icalendar_data(ical_data: str, accessible: bool) -> List[CalendarEvent]:
    """
    Parse the VEVENT blocks of raw iCalendar text into CalendarEvents.

    The end time is taken from DTEND when present, else computed from
    DTSTART + DURATION (server-expanded recurrences often carry DURATION
    only).  CLASS defaults to PUBLIC.

    Args:
        ical_data: Raw text, typically one calendar-data element
        accessible: False for restricted calendars; forces the summary
            to None

    Returns:
        Events in the order they appear in the text.  Blocks without a
        usable DTSTART are skipped.
    """
    events: List[CalendarEvent] = []
    for match in _VEVENT_RE.finditer(unfold(ical_data)):
        block = _VALARM_RE.sub("", match.group(1))

        dtstart = extract_property(block, DTSTART_PATTERN)
        if dtstart is None:
            log.debug("Skipping VEVENT without DTSTART")
            continue
        day = parse_ical_date(dtstart)
        if day is None:
            continue

        start = parse_ical_time(dtstart)
        dtend = extract_property(block, DTEND_PATTERN)
        end = parse_ical_time(dtend) if dtend is not None else None
        if dtend is None:
            duration = extract_property(block, DURATION_PATTERN)
            if duration is not None:
                end = end_time_from_duration(start, duration)

        status = extract_property(block, CLASS_PATTERN) or DEFAULT_CLASS

        summary = None
        if accessible:
            raw_summary = extract_property(block, SUMMARY_PATTERN)
            summary = _unescape_text(raw_summary) if raw_summary else NO_TITLE

        events.append(_make_event(summary, day, start, end, status, accessible))
    return events


def parse_freebusy_period(period: str, fbtype: str) -> CalendarEvent:
    """
    Parse one ``start/end`` or ``start/duration`` period.

    Raises:
        ParseError: if the period has no slash or no usable start date
    """
    start_str, slash, end_or_duration = period.partition("/")
    if not slash:
        raise error.ParseError(reason="FREEBUSY period without slash: %r" % period)

    day = parse_ical_date(start_str)
    if day is None:
        raise error.ParseError(reason="no date in FREEBUSY period: %r" % period)
    start = parse_ical_time(start_str)

    if end_or_duration.startswith("P"):
        end = end_time_from_duration(start, end_or_duration)
    else:
        end = parse_ical_time(end_or_duration)

    return _make_event(None, day, start, end, fbtype, accessible=False)


def parse_freebusy_response(ical_body: str) -> List[CalendarEvent]:
    """
    Parse the text/calendar body of a free-busy-query into
    CalendarEvents, one per period.

    FREEBUSY lines look like::

        FREEBUSY;FBTYPE=BUSY:20250210T140000Z/20250210T150000Z
        FREEBUSY:20250210T140000Z/20250210T150000Z,20250211T090000Z/PT1H

    Periods that can't be parsed are skipped with a warning; the rest of
    the response is still used.
    """
    events: List[CalendarEvent] = []
    match = _VFREEBUSY_RE.search(unfold(ical_body))
    if match is None:
        return events

    for line in FREEBUSY_PATTERN.finditer(match.group(1)):
        params, periods = _split_parameters(line.group(1), line.group(2))
        fbtype_match = _FBTYPE_RE.search(params)
        ## unknown FBTYPE values are passed on as they are
        fbtype = fbtype_match.group(1) if fbtype_match else DEFAULT_FBTYPE

        for period in periods.split(","):
            period = period.strip()
            if not period:
                continue
            try:
                events.append(parse_freebusy_period(period, fbtype))
            except error.ParseError as e:
                log.warning("Skipping invalid FREEBUSY period: %s", e.reason)
    return events
