"""
High-level clients using the Sans-I/O protocol layer.

This module provides SyncProtocolClient and AsyncProtocolClient, which
combine CalDAVProtocol with an I/O shell.  They add input validation,
the 403 -> free-busy fallback when fetching the events of a week, event
ordering, and (sync only) calendar discovery.

The free-busy fallback is a capability degradation, not a retry: a
calendar-query that is refused with 403 is followed by exactly one
free-busy-query against the same calendar URL, parsed by the free-busy
parser.  Any other error propagates unchanged.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, List, Optional

from calgrid.io import AsyncIO, AsyncIOProtocol, SyncIO, SyncIOProtocol
from calgrid.io.base import DEFAULT_CONNECT_TIMEOUT, DEFAULT_REQUEST_TIMEOUT
from calgrid.lib import error
from calgrid.lib.url import default_calendar_href, normalize_url, resolve_href
from calgrid.protocol import (
    CalDAVProtocol,
    CalendarEvent,
    CalendarInfo,
    ConnectionInfo,
    DirectCalendars,
    NeedsPrincipalFallback,
    PropfindResult,
    User,
    UserFetchResult,
    classify_discovery,
)

log = logging.getLogger("calgrid")


def sort_events(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    """
    Order by date, then start time, all-day events first within a day.
    """
    return sorted(
        events,
        key=lambda e: (e.date, e.start_time is not None, e.start_time or ""),
    )


def calendar_url_for(base_url: str, user_href: str) -> str:
    """Absolute URL of the default calendar of the principal ``user_href``."""
    return resolve_href(normalize_url(base_url), default_calendar_href(user_href))


def _validate_search_term(search_term: Optional[str]) -> None:
    if not search_term or not search_term.strip():
        raise error.ValidationError(reason="Search term must not be empty.")


class SyncProtocolClient:
    """
    Synchronous CalDAV client using the Sans-I/O protocol layer.

    Example:
        connection = ConnectionInfo("https://cal.example.com/caldav.php/", "me", "secret")
        with SyncProtocolClient(connection) as client:
            for user in client.search_users("smith"):
                events = client.fetch_week_events(user.href, date(2025, 2, 10))
    """

    def __init__(
        self,
        connection: ConnectionInfo,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        verify_ssl: bool = True,
        io: Optional[SyncIOProtocol] = None,
    ):
        """
        Initialize the client.  Nothing is sent to the server here.

        Args:
            connection: Server URL and credentials
            connect_timeout: Connect timeout in seconds
            timeout: Request timeout in seconds
            verify_ssl: Verify SSL certificates
            io: I/O shell to use instead of a new SyncIO
        """
        self.connection = connection
        self.protocol = CalDAVProtocol(
            base_url=connection.url,
            username=connection.username,
            password=connection.password,
        )
        self.io = io or SyncIO(
            connect_timeout=connect_timeout, timeout=timeout, verify=verify_ssl
        )

    def close(self) -> None:
        """Close the HTTP session."""
        self.io.close()

    def __enter__(self) -> "SyncProtocolClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Principals

    def discover_users(self) -> List[User]:
        """All principals on the server (empty match)."""
        self.connection.validate()
        log.info("Discovering users at %s", self.protocol.base_url)
        users = self._principal_search(None)
        log.info("Discovered %i user(s) at %s", len(users), self.protocol.base_url)
        return users

    def search_users(self, search_term: str) -> List[User]:
        """Principals whose display name contains ``search_term``."""
        self.connection.validate()
        _validate_search_term(search_term)
        users = self._principal_search(search_term)
        log.info("Found %i user(s) matching '%s'", len(users), search_term)
        return users

    def _principal_search(self, search_term: Optional[str]) -> List[User]:
        request = self.protocol.principal_search_request(search_term)
        response = self.io.execute(request)
        return self.protocol.parse_principal_search(response, request.url)

    # Events

    def fetch_week_events(self, user_href: str, week_start: date) -> List[CalendarEvent]:
        """
        Events of the week starting at ``week_start`` from the default
        calendar of ``user_href``.

        A calendar-query is tried first.  If the server refuses it with
        403, a free-busy-query is sent to the same URL and the resulting
        events are not accessible (no summaries).

        Raises:
            ValidationError, AuthenticationError, NotFoundError, ProtocolError,
            and AccessDeniedError if the free-busy-query is refused too
        """
        self.connection.validate()
        calendar_url = calendar_url_for(self.connection.url, user_href)
        log.info("Fetching week events for user at %s (week of %s)", user_href, week_start)
        try:
            try:
                request = self.protocol.calendar_query_request(calendar_url, week_start)
                events = self.protocol.parse_calendar_query(self.io.execute(request), calendar_url)
            except error.AccessDeniedError:
                log.debug("No read access to %s, falling back to free-busy-query", calendar_url)
                request = self.protocol.freebusy_query_request(calendar_url, week_start)
                events = self.protocol.parse_freebusy_query(self.io.execute(request), calendar_url)
        except error.CalGridError:
            raise
        except Exception as e:
            raise error.ProtocolError(
                url=calendar_url, reason="Failed to fetch events: %s" % e
            ) from e
        events = sort_events(events)
        log.info("Found %i event(s) for user at %s", len(events), user_href)
        return events

    # Calendar discovery

    def _propfind_calendars(self, url: str) -> PropfindResult:
        request = self.protocol.propfind_calendars_request(url)
        return self.protocol.parse_propfind_calendars(self.io.execute(request), url)

    def discover_calendars(self) -> List[CalendarInfo]:
        """
        Calendars reachable from the connection URL.

        If the URL points at a principal's collection the calendars are
        found directly.  If it points at a server root, each child
        collection (principal) is asked for its calendars; children that
        fail are logged and skipped.
        """
        self.connection.validate()
        base_url = self.protocol.base_url
        discovery = classify_discovery(self._propfind_calendars(base_url))

        if isinstance(discovery, DirectCalendars):
            return discovery.calendars

        assert isinstance(discovery, NeedsPrincipalFallback)
        log.debug(
            "No calendars found directly at %s, querying %i sub-collection(s)",
            base_url,
            len(discovery.child_hrefs),
        )
        calendars: List[CalendarInfo] = []
        for href in discovery.child_hrefs:
            collection_url = resolve_href(base_url, href)
            try:
                calendars.extend(self._propfind_calendars(collection_url).calendars)
            except error.CalGridError as e:
                log.warning("Failed to query sub-collection %s: %s", collection_url, e.reason)
        return calendars

    def discover_all_calendars(self) -> List[CalendarInfo]:
        """
        Calendars of every principal on the server, including the ones
        not shared with the current user.

        A principal answering 403 gets one placeholder entry pointing at
        its default calendar, with ``accessible=False``.  Without any
        principals this falls back to ``discover_calendars``.
        """
        principals = self.discover_users()
        if not principals:
            log.info("No principals found, falling back to standard calendar discovery")
            return self.discover_calendars()

        base_url = self.protocol.base_url
        calendars: List[CalendarInfo] = []
        for principal in principals:
            principal_url = resolve_href(base_url, principal.href)
            try:
                found = self._propfind_calendars(principal_url).calendars
            except error.AccessDeniedError:
                calendars.append(
                    CalendarInfo(
                        display_name=principal.display_name,
                        href=default_calendar_href(principal.href),
                        owner=principal.display_name,
                        accessible=False,
                    )
                )
                continue
            except error.CalGridError as e:
                log.warning("Failed to query principal %s: %s", principal.display_name, e.reason)
                continue
            calendars.extend(replace(c, owner=principal.display_name) for c in found)
        return calendars


class AsyncProtocolClient:
    """
    Asynchronous CalDAV client using the Sans-I/O protocol layer.

    Example:
        async with AsyncProtocolClient(connection) as client:
            results = await client.fetch_users_week_events(users, week_start)
    """

    def __init__(
        self,
        connection: ConnectionInfo,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        verify_ssl: bool = True,
        io: Optional[AsyncIOProtocol] = None,
    ):
        self.connection = connection
        self.protocol = CalDAVProtocol(
            base_url=connection.url,
            username=connection.username,
            password=connection.password,
        )
        self.io = io or AsyncIO(
            connect_timeout=connect_timeout, timeout=timeout, verify_ssl=verify_ssl
        )

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.io.close()

    async def __aenter__(self) -> "AsyncProtocolClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def discover_users(self) -> List[User]:
        """All principals on the server (empty match)."""
        self.connection.validate()
        request = self.protocol.principal_search_request(None)
        response = await self.io.execute(request)
        return self.protocol.parse_principal_search(response, request.url)

    async def search_users(self, search_term: str) -> List[User]:
        """Principals whose display name contains ``search_term``."""
        self.connection.validate()
        _validate_search_term(search_term)
        request = self.protocol.principal_search_request(search_term)
        response = await self.io.execute(request)
        return self.protocol.parse_principal_search(response, request.url)

    async def fetch_week_events(self, user_href: str, week_start: date) -> List[CalendarEvent]:
        """Async version of SyncProtocolClient.fetch_week_events."""
        self.connection.validate()
        calendar_url = calendar_url_for(self.connection.url, user_href)
        log.info("Fetching week events for user at %s (week of %s)", user_href, week_start)
        try:
            try:
                request = self.protocol.calendar_query_request(calendar_url, week_start)
                response = await self.io.execute(request)
                events = self.protocol.parse_calendar_query(response, calendar_url)
            except error.AccessDeniedError:
                log.debug("No read access to %s, falling back to free-busy-query", calendar_url)
                request = self.protocol.freebusy_query_request(calendar_url, week_start)
                response = await self.io.execute(request)
                events = self.protocol.parse_freebusy_query(response, calendar_url)
        except error.CalGridError:
            raise
        except Exception as e:
            raise error.ProtocolError(
                url=calendar_url, reason="Failed to fetch events: %s" % e
            ) from e
        events = sort_events(events)
        log.info("Found %i event(s) for user at %s", len(events), user_href)
        return events

    async def _fetch_user(self, user: User, week_start: date) -> UserFetchResult:
        try:
            events = await self.fetch_week_events(user.href, week_start)
        except error.CalGridError as e:
            log.warning("Failed to fetch events for %s: %s", user.display_name, e.reason)
            return UserFetchResult(user=user, week_start=week_start, error=e)
        return UserFetchResult(user=user, week_start=week_start, events=events)

    async def fetch_users_week_events(
        self, users: Iterable[User], week_start: date
    ) -> List[UserFetchResult]:
        """
        Fetch the week of every user concurrently.

        Each user's outcome is collected independently, in the order of
        ``users``: a failing user yields a result with ``error`` set and
        does not affect the others.  Every result is tagged with
        ``week_start``.
        """
        return list(
            await asyncio.gather(*(self._fetch_user(user, week_start) for user in users))
        )
