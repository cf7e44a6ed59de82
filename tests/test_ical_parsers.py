"""
Tests for the iCalendar / free-busy text scanner.
"""

from datetime import date, time

import pytest

from calgrid.lib import error
from calgrid.protocol.ical_parsers import (
    end_time_from_duration,
    extract_property,
    parse_duration,
    parse_freebusy_period,
    parse_freebusy_response,
    parse_ical_date,
    parse_ical_time,
    parse_icalendar_data,
    unfold,
    DTSTART_PATTERN,
    SUMMARY_PATTERN,
)


def vcalendar(*lines):
    return "\r\n".join(["BEGIN:VCALENDAR", "VERSION:2.0", *lines, "END:VCALENDAR", ""])


def freebusy(*lines):
    return vcalendar("BEGIN:VFREEBUSY", "DTSTART:20250210T000000Z", *lines, "END:VFREEBUSY")


class TestHelpers:
    def test_unfold(self):
        assert unfold("SUMMARY:Long\r\n  meeting\r\n\tname") == "SUMMARY:Long meetingname"
        assert unfold("A:1\nB:2") == "A:1\nB:2"

    def test_extract_property_with_parameters(self):
        block = "\nDTSTART;TZID=Europe/Berlin:20250210T090000\nSUMMARY:Hi\n"
        assert extract_property(block, DTSTART_PATTERN) == "20250210T090000"
        assert extract_property(block, SUMMARY_PATTERN) == "Hi"

    def test_extract_property_first_match_only(self):
        block = "\nSUMMARY:First\nSUMMARY:Second\n"
        assert extract_property(block, SUMMARY_PATTERN) == "First"

    def test_extract_property_missing(self):
        assert extract_property("\nDTEND:20250210T100000Z\n", DTSTART_PATTERN) is None

    def test_dates_and_times(self):
        assert parse_ical_date("20250210T140000Z") == date(2025, 2, 10)
        assert parse_ical_date("20250210") == date(2025, 2, 10)
        assert parse_ical_date("2025") is None
        assert parse_ical_time("20250210T140000Z") == time(14, 0)
        assert parse_ical_time("20250210T093000") == time(9, 30)
        assert parse_ical_time("20250210") is None

    def test_parse_duration(self):
        assert parse_duration("PT1H30M") == 90
        assert parse_duration("PT45M") == 45
        assert parse_duration("PT2H") == 120
        assert parse_duration("PT90S") == 1
        with pytest.raises(error.ParseError):
            parse_duration("P1D")

    def test_end_time_from_duration(self):
        assert end_time_from_duration(time(14, 0), "PT1H30M") == time(15, 30)
        assert end_time_from_duration(time(23, 30), "PT1H") == time(0, 30)
        assert end_time_from_duration(time(14, 0), "P1W") is None
        assert end_time_from_duration(None, "PT1H") is None


class TestParseICalendarData:
    def test_timed_event(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "UID:1",
            "SUMMARY:Team meeting",
            "DTSTART:20250210T100000Z",
            "DTEND:20250210T110000Z",
            "CLASS:PRIVATE",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.summary == "Team meeting"
        assert event.date == date(2025, 2, 10)
        assert event.start_time == time(10, 0)
        assert event.end_time == time(11, 0)
        assert event.status == "PRIVATE"
        assert event.accessible

    def test_all_day_event(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "SUMMARY:Holiday",
            "DTSTART;VALUE=DATE:20250212",
            "DTEND;VALUE=DATE:20250213",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.date == date(2025, 2, 12)
        assert event.start_time is None
        assert event.end_time is None
        assert event.status == "PUBLIC"

    def test_duration_instead_of_dtend(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "SUMMARY:Standup",
            "DTSTART:20250211T090000Z",
            "DURATION:PT15M",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.start_time == time(9, 0)
        assert event.end_time == time(9, 15)

    def test_dtend_wins_over_duration(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "DTSTART:20250211T090000Z",
            "DURATION:PT15M",
            "DTEND:20250211T100000Z",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.end_time == time(10, 0)

    def test_unparseable_duration_blocks_the_day(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "DTSTART:20250211T090000Z",
            "DURATION:P1D",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.start_time is None
        assert event.end_time is None

    def test_folded_summary_and_escapes(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "SUMMARY:Budget\\, planning",
            "  and review",
            "DTSTART:20250210T100000Z",
            "DTEND:20250210T110000Z",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.summary == "Budget, planning and review"

    def test_missing_summary(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "DTSTART:20250210T100000Z",
            "DTEND:20250210T110000Z",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.summary == "(No title)"

    def test_not_accessible_hides_summary(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "SUMMARY:Secret",
            "DTSTART:20250210T100000Z",
            "DTEND:20250210T110000Z",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=False)
        assert event.summary is None
        assert not event.accessible

    def test_alarm_properties_are_ignored(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "BEGIN:VALARM",
            "SUMMARY:Alarm text",
            "DURATION:PT5M",
            "END:VALARM",
            "SUMMARY:Dentist",
            "DTSTART:20250213T150000Z",
            "DTEND:20250213T160000Z",
            "END:VEVENT",
        )
        (event,) = parse_icalendar_data(data, accessible=True)
        assert event.summary == "Dentist"

    def test_event_without_dtstart_is_skipped(self):
        data = vcalendar(
            "BEGIN:VEVENT",
            "SUMMARY:Broken",
            "END:VEVENT",
            "BEGIN:VEVENT",
            "SUMMARY:Fine",
            "DTSTART:20250214T080000Z",
            "DTEND:20250214T083000Z",
            "END:VEVENT",
        )
        events = parse_icalendar_data(data, accessible=True)
        assert [e.summary for e in events] == ["Fine"]

    def test_no_events(self):
        assert parse_icalendar_data(vcalendar(), accessible=True) == []


class TestFreeBusy:
    def test_period_with_duration(self):
        (event,) = parse_freebusy_response(
            freebusy("FREEBUSY;FBTYPE=BUSY:20250210T140000Z/PT1H30M")
        )
        assert event.date == date(2025, 2, 10)
        assert event.start_time == time(14, 0)
        assert event.end_time == time(15, 30)
        assert event.status == "BUSY"
        assert event.summary is None
        assert not event.accessible

    def test_multiple_periods_and_types(self):
        events = parse_freebusy_response(
            freebusy(
                "FREEBUSY:20250210T080000Z/20250210T090000Z,20250211T100000Z/20250211T110000Z",
                "FREEBUSY;FBTYPE=BUSY-TENTATIVE:20250212T120000Z/PT30M",
                "FREEBUSY;FBTYPE=BUSY-UNAVAILABLE:20250213T070000Z/20250213T190000Z",
            )
        )
        assert [e.status for e in events] == [
            "BUSY",
            "BUSY",
            "BUSY-TENTATIVE",
            "BUSY-UNAVAILABLE",
        ]
        assert events[1].date == date(2025, 2, 11)
        assert events[2].end_time == time(12, 30)

    def test_non_standard_fbtype_kept(self):
        (event,) = parse_freebusy_response(
            freebusy("FREEBUSY;FBTYPE=X-OUT-OF-OFFICE:20250210T140000Z/PT1H")
        )
        assert event.status == "X-OUT-OF-OFFICE"

    def test_malformed_period_skipped(self):
        events = parse_freebusy_response(
            freebusy("FREEBUSY:20250210T140000Z,20250211T140000Z/PT1H")
        )
        assert len(events) == 1
        assert events[0].date == date(2025, 2, 11)

    def test_period_helper_raises(self):
        with pytest.raises(error.ParseError):
            parse_freebusy_period("20250210T140000Z", "BUSY")
        with pytest.raises(error.ParseError):
            parse_freebusy_period("x/PT1H", "BUSY")

    def test_no_vfreebusy(self):
        assert parse_freebusy_response(vcalendar()) == []
        assert parse_freebusy_response("") == []
