"""
Asynchronous I/O implementation using the aiohttp library.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from calgrid.lib import error
from calgrid.protocol.types import DAVRequest, DAVResponse

from .base import DEFAULT_CONNECT_TIMEOUT, DEFAULT_REQUEST_TIMEOUT

log = logging.getLogger("calgrid")


class AsyncIO:
    """
    Asynchronous I/O shell using aiohttp.

    Example:
        async with AsyncIO() as io:
            response = await io.execute(protocol.principal_search_request())
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        verify_ssl: bool = True,
    ):
        """
        Initialize the async I/O handler.

        Args:
            session: Existing aiohttp ClientSession to use (creates new if None)
            connect_timeout: Connect timeout in seconds
            timeout: Total request timeout in seconds
            verify_ssl: Verify SSL certificates
        """
        self._session = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=connect_timeout)
        self.verify_ssl = verify_ssl

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None:
            connector = aiohttp.TCPConnector(ssl=self.verify_ssl)
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                connector=connector,
            )
        return self._session

    async def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a DAVRequest and return DAVResponse.

        Raises:
            ProtocolError: on connection failures and timeouts
        """
        session = await self._get_session()
        log.debug("sending %s to %s", request.method.value, request.url)
        try:
            async with session.request(
                method=request.method.value,
                url=request.url,
                headers=request.headers,
                data=request.body,
            ) as response:
                body = await response.read()
                log.debug("server responded with %i %s", response.status, response.reason)
                return DAVResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=body,
                )
        except asyncio.TimeoutError as e:
            raise error.ProtocolError(url=request.url, reason="Request timed out") from e
        except aiohttp.ClientError as e:
            raise error.ProtocolError(url=request.url, reason="Request failed: %s" % e) from e

    async def close(self) -> None:
        """Close the session if we created it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "AsyncIO":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
