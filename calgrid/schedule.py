"""
Weekly schedule grid computation.

Maps the events of each selected user onto a fixed grid of 30 minute
slots (07:00 to 19:00, Monday to Friday) and derives a synthetic "all
free" row from the user rows.  Everything in here is a pure function.

Slots are keyed as ``"<day index>-<HH:MM>"``, day index 0 being Monday,
e.g. ``"0-07:00"`` ... ``"4-18:30"``.
"""

from datetime import date, datetime, time, timedelta
from typing import Collection, Dict, List, Mapping, Optional, Sequence

from calgrid.protocol.types import CalendarEvent, ScheduleRow, SlotInfo, User

SCHEDULE_START = time(7, 0)
## exclusive
SCHEDULE_END = time(19, 0)
SLOT_MINUTES = 30
WEEKDAY_COUNT = 5

DAY_SHORT_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri"]
MONTH_SHORT_NAMES = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

BUSY_UNAVAILABLE = "BUSY-UNAVAILABLE"
BUSY = "BUSY"
BUSY_TENTATIVE = "BUSY-TENTATIVE"

CSS_FREE = ""
CSS_BUSY = "slot-busy"
CSS_BUSY_TENTATIVE = "slot-busy-tentative"
CSS_BUSY_UNAVAILABLE = "slot-busy-unavailable"
CSS_BUSY_FREEBUSY = "slot-busy-fb"
CSS_ERROR = "schedule-error-cell"
CSS_ALL_FREE = "slot-all-free"
CSS_NOT_ALL_FREE = "slot-not-all-free"

LABEL_MAX_LENGTH = 8
ELLIPSIS = "…"

FAILED_SLOT = SlotInfo(css_class=CSS_ERROR, label="?", tooltip="Failed to load", busy=True)
FREE_SLOT = SlotInfo(css_class=CSS_FREE)
ALL_FREE_SLOT = SlotInfo(css_class=CSS_ALL_FREE, tooltip="All users are free")
NOT_ALL_FREE_SLOT = SlotInfo(css_class=CSS_NOT_ALL_FREE, busy=True)


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _time_from_minutes(minutes: int) -> time:
    minutes %= 24 * 60
    return time(minutes // 60, minutes % 60)


def _slot_times() -> List[time]:
    return [
        _time_from_minutes(m)
        for m in range(_minutes(SCHEDULE_START), _minutes(SCHEDULE_END), SLOT_MINUTES)
    ]


def slot_key(day_index: int, slot_start: time) -> str:
    return "%i-%s" % (day_index, slot_start.strftime("%H:%M"))


def generate_time_slots() -> List[str]:
    """
    Start times of all slots of a day, ``["07:00", "07:30", ..., "18:30"]``.
    """
    return [t.strftime("%H:%M") for t in _slot_times()]


def generate_slot_keys() -> List[str]:
    """All slot keys of the week, ``["0-07:00", ..., "4-18:30"]``."""
    return [
        slot_key(day_index, t)
        for day_index in range(WEEKDAY_COUNT)
        for t in _slot_times()
    ]


def filter_events_for_day(events: Sequence[CalendarEvent], day: date) -> List[CalendarEvent]:
    return [e for e in events if e.date == day]


def find_overlapping_events(
    day_events: Sequence[CalendarEvent], slot_start: time, slot_end: time
) -> List[CalendarEvent]:
    """
    Events overlapping the half-open slot ``[slot_start, slot_end)``.

    All-day events overlap every slot.  A timed event overlaps iff it
    starts before the slot ends and ends after the slot starts, so an
    event ending exactly at ``slot_start`` does not count.
    """
    return [
        e
        for e in day_events
        if e.start_time is None
        or e.end_time is None
        or (e.start_time < slot_end and e.end_time > slot_start)
    ]


def event_priority(event: CalendarEvent) -> int:
    """
    BUSY-UNAVAILABLE (3) > BUSY (2) > BUSY-TENTATIVE (1).  Anything else,
    including the CLASS values of calendar-query events, counts as BUSY.
    """
    if event.status == BUSY_UNAVAILABLE:
        return 3
    if event.status == BUSY_TENTATIVE:
        return 1
    return 2


def select_primary_event(events: Sequence[CalendarEvent]) -> CalendarEvent:
    """
    The event that decides how a slot is shown: highest priority first,
    then an accessible event over a free-busy one, then the first seen.
    """
    best = events[0]
    for event in events[1:]:
        if event_priority(event) > event_priority(best):
            best = event
        elif (
            event_priority(event) == event_priority(best)
            and event.accessible
            and not best.accessible
        ):
            best = event
    return best


def css_class_for_event(event: CalendarEvent) -> str:
    if event.accessible:
        return CSS_BUSY
    if event.status == BUSY_TENTATIVE:
        return CSS_BUSY_TENTATIVE
    if event.status == BUSY_UNAVAILABLE:
        return CSS_BUSY_UNAVAILABLE
    return CSS_BUSY_FREEBUSY


def slot_label(event: CalendarEvent) -> Optional[str]:
    """Short cell label, only for accessible events with a summary."""
    if not event.accessible or event.summary is None:
        return None
    summary = event.summary
    if len(summary) > LABEL_MAX_LENGTH:
        return summary[: LABEL_MAX_LENGTH - 1] + ELLIPSIS
    return summary


def format_time_for_display(t: time) -> str:
    """``07:00`` -> ``7:00``, ``14:30`` -> ``14:30``."""
    text = t.strftime("%H:%M")
    return text[1:] if text.startswith("0") else text


def build_tooltip(events: Sequence[CalendarEvent]) -> Optional[str]:
    """
    One line per overlapping event, newline separated.  Accessible
    events show their summary, others their status, each followed by
    the time range unless the event is all-day.
    """
    if not events:
        return None
    lines = []
    for event in events:
        if event.accessible and event.summary is not None:
            line = event.summary
        else:
            line = event.status
        if event.start_time is not None and event.end_time is not None:
            line += " (%s - %s)" % (
                format_time_for_display(event.start_time),
                format_time_for_display(event.end_time),
            )
        lines.append(line)
    return "\n".join(lines)


def compute_user_slots(
    events: Sequence[CalendarEvent],
    week_start: date,
    has_fetch_failed: bool = False,
) -> Dict[str, SlotInfo]:
    """
    Slot states of one user for the week starting at ``week_start``.

    A failed fetch marks every slot with the error state, regardless of
    ``events``.
    """
    slots: Dict[str, SlotInfo] = {}
    slot_times = _slot_times()
    for day_index in range(WEEKDAY_COUNT):
        day_events = filter_events_for_day(events, week_start + timedelta(days=day_index))
        for slot_start in slot_times:
            key = slot_key(day_index, slot_start)
            if has_fetch_failed:
                slots[key] = FAILED_SLOT
                continue
            slot_end = _time_from_minutes(_minutes(slot_start) + SLOT_MINUTES)
            overlapping = find_overlapping_events(day_events, slot_start, slot_end)
            if not overlapping:
                slots[key] = FREE_SLOT
                continue
            primary = select_primary_event(overlapping)
            slots[key] = SlotInfo(
                css_class=css_class_for_event(primary),
                label=slot_label(primary),
                tooltip=build_tooltip(overlapping),
                busy=True,
            )
    return slots


def compute_all_free_slots(user_rows: Sequence[ScheduleRow]) -> Dict[str, SlotInfo]:
    """
    A slot is all free iff no row is busy there.  Rows lacking the key
    count as free.
    """
    slots: Dict[str, SlotInfo] = {}
    for key in generate_slot_keys():
        all_free = not any(
            row.slots[key].busy for row in user_rows if key in row.slots
        )
        slots[key] = ALL_FREE_SLOT if all_free else NOT_ALL_FREE_SLOT
    return slots


def build_schedule_rows(
    users: Sequence[User],
    user_events: Mapping[str, Sequence[CalendarEvent]],
    failed_users: Collection[str],
    week_start: date,
) -> List[ScheduleRow]:
    """
    One row per user, in the given order, followed by the all free row
    (``user=None``).

    Args:
        users: Selected users
        user_events: Events of the week, keyed on user href
        failed_users: Hrefs of users whose fetch failed
        week_start: Monday of the displayed week
    """
    rows = [
        ScheduleRow(
            user=user,
            slots=compute_user_slots(
                user_events.get(user.href, []),
                week_start,
                user.href in failed_users,
            ),
        )
        for user in users
    ]
    rows.append(ScheduleRow(user=None, slots=compute_all_free_slots(rows)))
    return rows


# Week helpers


def monday_of_week(day: Optional[date] = None) -> date:
    """Monday of the week containing ``day`` (today by default)."""
    if day is None:
        day = datetime.now().date()
    return day - timedelta(days=day.weekday())


def add_weeks(week_start: date, offset: int) -> date:
    return week_start + timedelta(weeks=offset)


def weekday_date(week_start: date, day_index: int) -> date:
    return week_start + timedelta(days=day_index)


def _month_day(day: date) -> str:
    return "%s %i" % (MONTH_SHORT_NAMES[day.month - 1], day.day)


def format_week_label(week_start: date) -> str:
    """``Feb 10 - Feb 14, 2025`` for the week starting 2025-02-10."""
    friday = weekday_date(week_start, WEEKDAY_COUNT - 1)
    return "%s - %s, %i" % (_month_day(week_start), _month_day(friday), week_start.year)


def format_day_header(week_start: date, day_index: int) -> str:
    """``Mon Feb 10``"""
    return "%s %s" % (
        DAY_SHORT_NAMES[day_index],
        _month_day(weekday_date(week_start, day_index)),
    )
