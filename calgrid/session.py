"""
State of one interactive schedule session.

ScheduleSession keeps the selected users, their events for the displayed
week and the users whose fetch failed, and turns that into schedule rows.
A renderer drives it through the action coroutines (add_user,
navigate_week, ...) and reads ``rows()`` afterwards.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Set

from calgrid.lib import error
from calgrid.protocol.types import CalendarEvent, ScheduleRow, User, UserFetchResult
from calgrid.protocol_client import AsyncProtocolClient
from calgrid.schedule import add_weeks, build_schedule_rows, format_week_label, monday_of_week

log = logging.getLogger("calgrid")

## Term used to check the credentials when connecting.
CONNECT_CHECK_TERM = "a"


class ScheduleSession:
    """
    Selected users, events and the displayed week.

    Every fetch is tagged with the week it was issued for.  A result
    arriving after the displayed week has changed, or for a user that
    has been removed meanwhile, is dropped.

    Example:
        async with AsyncProtocolClient(connection) as client:
            session = ScheduleSession(client)
            await session.connect()
            for user in await session.search_users("smith"):
                await session.add_user(user)
            rows = session.rows()
    """

    def __init__(self, client: AsyncProtocolClient, week_start: Optional[date] = None):
        self.client = client
        self.connected = False
        self.selected_users: List[User] = []
        self.user_events: Dict[str, List[CalendarEvent]] = {}
        self.failed_users: Set[str] = set()
        self.week_start = monday_of_week(week_start)

    @property
    def week_label(self) -> str:
        return format_week_label(self.week_start)

    def is_selected(self, user: User) -> bool:
        return any(u.href == user.href for u in self.selected_users)

    async def connect(self) -> None:
        """
        Check URL and credentials with a principal search.  Any
        CalGridError is passed on and leaves the session disconnected.
        """
        await self.client.search_users(CONNECT_CHECK_TERM)
        self.connected = True
        log.info("Connected to %s", self.client.protocol.base_url)

    def disconnect(self) -> None:
        self.connected = False
        self.selected_users = []
        self.user_events = {}
        self.failed_users = set()

    async def search_users(self, search_term: str) -> List[User]:
        """
        Matching users that are not selected yet.  Errors are logged and
        give an empty list, so a search box can call this on every key
        press.
        """
        if not self.connected:
            return []
        try:
            users = await self.client.search_users(search_term)
        except error.CalGridError as e:
            log.warning("User search for '%s' failed: %s", search_term, e.reason)
            return []
        return [u for u in users if not self.is_selected(u)]

    async def add_user(self, user: User) -> None:
        """Select ``user`` (once per href) and fetch their week."""
        if self.is_selected(user):
            return
        self.selected_users.append(user)
        await self._fetch([user])

    def remove_user(self, user: User) -> None:
        self.selected_users = [u for u in self.selected_users if u.href != user.href]
        self.user_events.pop(user.href, None)
        self.failed_users.discard(user.href)

    async def navigate_week(self, offset: int) -> None:
        """Move ``offset`` weeks forward (negative: backward) and refetch."""
        self.week_start = add_weeks(self.week_start, offset)
        await self.refresh()

    async def navigate_to_today(self, today: Optional[date] = None) -> None:
        self.week_start = monday_of_week(today)
        await self.refresh()

    async def refresh(self) -> None:
        """Drop all events and fetch every selected user again, concurrently."""
        self.user_events = {}
        self.failed_users = set()
        await self._fetch(list(self.selected_users))

    async def _fetch(self, users: List[User]) -> None:
        if not users:
            return
        results = await self.client.fetch_users_week_events(users, self.week_start)
        for result in results:
            self._apply(result)

    def _apply(self, result: UserFetchResult) -> bool:
        href = result.user.href
        if result.week_start != self.week_start:
            log.debug(
                "Discarding events of %s for week %s, now showing %s",
                href,
                result.week_start,
                self.week_start,
            )
            return False
        if not self.is_selected(result.user):
            log.debug("Discarding events of %s, no longer selected", href)
            return False
        if result.failed:
            self.user_events[href] = []
            self.failed_users.add(href)
        else:
            self.user_events[href] = list(result.events)
            self.failed_users.discard(href)
        return True

    def rows(self) -> List[ScheduleRow]:
        """Schedule rows of the displayed week; empty without selected users."""
        if not self.selected_users:
            return []
        return build_schedule_rows(
            self.selected_users,
            self.user_events,
            self.failed_users,
            self.week_start,
        )
