"""
Tests for the weekly schedule grid computation.
"""

from datetime import date, time

import pytest

from calgrid.protocol.types import CalendarEvent, ScheduleRow, SlotInfo, User
from calgrid.schedule import (
    add_weeks,
    build_schedule_rows,
    build_tooltip,
    compute_all_free_slots,
    compute_user_slots,
    css_class_for_event,
    event_priority,
    filter_events_for_day,
    find_overlapping_events,
    format_day_header,
    format_time_for_display,
    format_week_label,
    generate_slot_keys,
    generate_time_slots,
    monday_of_week,
    select_primary_event,
    slot_label,
)

MONDAY = date(2025, 2, 10)
TUESDAY = date(2025, 2, 11)


def event(summary=None, day=MONDAY, start=None, end=None, status="PUBLIC", accessible=None):
    if accessible is None:
        accessible = summary is not None
    return CalendarEvent(
        summary=summary,
        date=day,
        start_time=time(*start) if start else None,
        end_time=time(*end) if end else None,
        status=status,
        accessible=accessible,
    )


class TestSlots:
    def test_generate_time_slots(self):
        slots = generate_time_slots()
        assert len(slots) == 24
        assert slots[0] == "07:00"
        assert slots[1] == "07:30"
        assert slots[-1] == "18:30"

    def test_generate_slot_keys(self):
        keys = generate_slot_keys()
        assert len(keys) == 120
        assert keys[0] == "0-07:00"
        assert keys[24] == "1-07:00"
        assert keys[-1] == "4-18:30"
        assert len(set(keys)) == 120


class TestOverlap:
    def test_filter_events_for_day(self):
        monday, tuesday = event("A"), event("B", day=TUESDAY)
        assert filter_events_for_day([monday, tuesday], TUESDAY) == [tuesday]

    def test_half_open(self):
        meeting = event("Meeting", start=(9, 0), end=(10, 0))
        assert find_overlapping_events([meeting], time(10, 0), time(10, 30)) == []
        assert find_overlapping_events([meeting], time(8, 30), time(9, 0)) == []
        assert find_overlapping_events([meeting], time(9, 30), time(10, 0)) == [meeting]

    def test_partial_overlap(self):
        short = event("Short", start=(9, 10), end=(9, 20))
        assert find_overlapping_events([short], time(9, 0), time(9, 30)) == [short]

    def test_all_day_overlaps_everything(self):
        holiday = event("Holiday")
        assert find_overlapping_events([holiday], time(7, 0), time(7, 30)) == [holiday]
        assert find_overlapping_events([holiday], time(18, 30), time(19, 0)) == [holiday]


class TestPrimaryEvent:
    def test_priority(self):
        assert event_priority(event(status="BUSY-UNAVAILABLE")) == 3
        assert event_priority(event(status="BUSY")) == 2
        assert event_priority(event(status="PRIVATE")) == 2
        assert event_priority(event(status="X-SOMETHING")) == 2
        assert event_priority(event(status="BUSY-TENTATIVE")) == 1

    def test_priority_dominates_accessibility(self):
        unavailable = event(start=(9, 0), end=(10, 0), status="BUSY-UNAVAILABLE")
        meeting = event("Meeting", start=(9, 0), end=(10, 0), status="BUSY")
        assert select_primary_event([meeting, unavailable]) is unavailable

    def test_tie_prefers_accessible(self):
        busy = event(start=(9, 0), end=(10, 0), status="BUSY")
        meeting = event("Meeting", start=(9, 0), end=(10, 0), status="PUBLIC")
        assert select_primary_event([busy, meeting]) is meeting

    def test_tie_prefers_first_seen(self):
        first = event("First", start=(9, 0), end=(10, 0))
        second = event("Second", start=(9, 0), end=(10, 0))
        assert select_primary_event([first, second]) is first

    def test_css_class(self):
        assert css_class_for_event(event("Meeting", status="BUSY-TENTATIVE")) == "slot-busy"
        assert css_class_for_event(event(status="BUSY-TENTATIVE")) == "slot-busy-tentative"
        assert css_class_for_event(event(status="BUSY-UNAVAILABLE")) == "slot-busy-unavailable"
        assert css_class_for_event(event(status="BUSY")) == "slot-busy-fb"
        assert css_class_for_event(event(status="X-OUT-OF-OFFICE")) == "slot-busy-fb"


class TestLabelAndTooltip:
    def test_label(self):
        assert slot_label(event("Meeting")) == "Meeting"
        assert slot_label(event("12345678")) == "12345678"
        assert slot_label(event("Quarterly review")) == "Quarter…"
        assert slot_label(event(status="BUSY")) is None

    def test_format_time_for_display(self):
        assert format_time_for_display(time(7, 0)) == "7:00"
        assert format_time_for_display(time(0, 30)) == "0:30"
        assert format_time_for_display(time(14, 30)) == "14:30"

    def test_tooltip(self):
        events = [
            event("Meeting", start=(9, 0), end=(10, 0)),
            event(start=(9, 30), end=(11, 0), status="BUSY-TENTATIVE"),
            event("Holiday"),
        ]
        assert build_tooltip(events) == (
            "Meeting (9:00 - 10:00)\nBUSY-TENTATIVE (9:30 - 11:00)\nHoliday"
        )

    def test_empty_tooltip(self):
        assert build_tooltip([]) is None


class TestComputeUserSlots:
    def test_single_meeting(self):
        slots = compute_user_slots(
            [event("Meeting", start=(10, 0), end=(11, 0))], MONDAY, False
        )
        assert len(slots) == 120
        for key in ("0-10:00", "0-10:30"):
            assert slots[key].busy
            assert slots[key].css_class == "slot-busy"
            assert slots[key].label == "Meeting"
            assert slots[key].tooltip == "Meeting (10:00 - 11:00)"
        assert slots["0-11:00"] == SlotInfo(css_class="", label=None, tooltip=None, busy=False)
        assert not slots["0-09:30"].busy
        assert not slots["1-10:00"].busy

    def test_two_overlapping_events(self):
        events = [
            event("Review", start=(14, 0), end=(15, 0), status="BUSY"),
            event(start=(14, 0), end=(14, 30), status="BUSY-UNAVAILABLE"),
        ]
        slot = compute_user_slots(events, MONDAY)["0-14:00"]
        assert slot.css_class == "slot-busy-unavailable"
        assert slot.label is None
        assert slot.tooltip.split("\n") == [
            "Review (14:00 - 15:00)",
            "BUSY-UNAVAILABLE (14:00 - 14:30)",
        ]

    def test_events_outside_window_or_week(self):
        events = [
            event("Early", start=(6, 0), end=(7, 0)),
            event("Weekend", day=date(2025, 2, 15), start=(10, 0), end=(11, 0)),
            event("Next week", day=date(2025, 2, 17), start=(10, 0), end=(11, 0)),
        ]
        slots = compute_user_slots(events, MONDAY)
        assert not any(s.busy for s in slots.values())

    def test_all_day_on_friday(self):
        slots = compute_user_slots([event("Offsite", day=date(2025, 2, 14))], MONDAY)
        assert all(slots["4-%s" % t].busy for t in generate_time_slots())
        assert slots["4-07:00"].tooltip == "Offsite"
        assert not slots["3-07:00"].busy

    def test_failed_fetch(self):
        slots = compute_user_slots([event("Meeting", start=(10, 0), end=(11, 0))], MONDAY, True)
        assert set(slots) == set(generate_slot_keys())
        for slot in slots.values():
            assert slot == SlotInfo(
                css_class="schedule-error-cell", label="?", tooltip="Failed to load", busy=True
            )


class TestAllFree:
    def test_compute_all_free_slots(self):
        busy = SlotInfo(css_class="slot-busy", busy=True)
        free = SlotInfo(css_class="")
        rows = [
            ScheduleRow(user=User("A", "/a/"), slots={"0-07:00": busy, "0-07:30": free}),
            ScheduleRow(user=User("B", "/b/"), slots={"0-07:00": free}),
        ]
        slots = compute_all_free_slots(rows)
        assert len(slots) == 120
        assert slots["0-07:00"].css_class == "slot-not-all-free"
        assert slots["0-07:00"].busy
        ## missing keys count as free
        assert slots["0-07:30"].css_class == "slot-all-free"
        assert slots["0-07:30"].tooltip == "All users are free"
        assert not slots["0-07:30"].busy
        assert slots["4-18:30"].css_class == "slot-all-free"

    def test_no_rows_is_all_free(self):
        assert all(s.css_class == "slot-all-free" for s in compute_all_free_slots([]).values())


class TestBuildScheduleRows:
    def test_rows(self):
        alice = User("Alice", "/caldav.php/alice/")
        bob = User("Bob", "/caldav.php/bob/")
        carol = User("Carol", "/caldav.php/carol/")
        rows = build_schedule_rows(
            [alice, bob, carol],
            {alice.href: [event("Meeting", start=(10, 0), end=(11, 0))]},
            {carol.href},
            MONDAY,
        )
        assert [r.user for r in rows] == [alice, bob, carol, None]
        assert rows[0].slots["0-10:00"].busy
        assert not rows[1].slots["0-10:00"].busy
        assert rows[2].slots["2-12:00"].css_class == "schedule-error-cell"
        ## a failed user is never "free"
        assert all(s.css_class == "slot-not-all-free" for s in rows[3].slots.values())

    def test_all_free_row_without_failures(self):
        alice = User("Alice", "/caldav.php/alice/")
        rows = build_schedule_rows(
            [alice], {alice.href: [event("Meeting", start=(10, 0), end=(11, 0))]}, set(), MONDAY
        )
        all_free = rows[-1].slots
        assert all_free["0-10:00"].css_class == "slot-not-all-free"
        assert all_free["0-11:00"].css_class == "slot-all-free"


class TestWeekHelpers:
    @pytest.mark.parametrize(
        "day", [date(2025, 2, 10), date(2025, 2, 12), date(2025, 2, 15), date(2025, 2, 16)]
    )
    def test_monday_of_week(self, day):
        assert monday_of_week(day) == MONDAY

    def test_monday_of_week_today(self):
        assert monday_of_week().weekday() == 0

    def test_add_weeks(self):
        assert add_weeks(MONDAY, 1) == date(2025, 2, 17)
        assert add_weeks(MONDAY, -2) == date(2025, 1, 27)

    def test_format_week_label(self):
        assert format_week_label(MONDAY) == "Feb 10 - Feb 14, 2025"
        assert format_week_label(date(2025, 3, 31)) == "Mar 31 - Apr 4, 2025"

    def test_format_day_header(self):
        assert format_day_header(MONDAY, 0) == "Mon Feb 10"
        assert format_day_header(MONDAY, 4) == "Fri Feb 14"
