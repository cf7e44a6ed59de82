"""
Synchronous I/O implementation using the requests library.
"""

import logging
from typing import Optional

import requests

from calgrid.lib import error
from calgrid.protocol.types import DAVRequest, DAVResponse

from .base import DEFAULT_CONNECT_TIMEOUT, DEFAULT_REQUEST_TIMEOUT

log = logging.getLogger("calgrid")


class SyncIO:
    """
    Synchronous I/O shell using requests.

    This is a thin wrapper that executes DAVRequest objects via HTTP
    and returns DAVResponse objects.

    Example:
        io = SyncIO()
        response = io.execute(protocol.principal_search_request())
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        verify: bool = True,
    ):
        """
        Initialize the sync I/O handler.

        Args:
            session: Existing requests Session to use (creates new if None)
            connect_timeout: Connect timeout in seconds
            timeout: Read timeout in seconds
            verify: Verify SSL certificates
        """
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.connect_timeout = connect_timeout
        self.timeout = timeout
        self.verify = verify

    def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a DAVRequest and return DAVResponse.

        Raises:
            ProtocolError: on connection failures and timeouts
        """
        log.debug("sending %s to %s", request.method.value, request.url)
        try:
            response = self.session.request(
                method=request.method.value,
                url=request.url,
                headers=request.headers,
                data=request.body,
                timeout=(self.connect_timeout, self.timeout),
                verify=self.verify,
            )
        except requests.Timeout as e:
            raise error.ProtocolError(url=request.url, reason="Request timed out: %s" % e) from e
        except requests.RequestException as e:
            raise error.ProtocolError(url=request.url, reason="Request failed: %s" % e) from e

        log.debug("server responded with %i %s", response.status_code, response.reason)
        return DAVResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def close(self) -> None:
        """Close the session if we created it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self) -> "SyncIO":
        return self

    def __exit__(self, *args) -> None:
        self.close()
