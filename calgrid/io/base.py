"""
Abstract I/O protocol definition.

This module defines the interface that all I/O implementations must follow.
Implementations report network failures and timeouts as
``calgrid.lib.error.ProtocolError``, so callers treat them the same way as
an unexpected status code.
"""

from typing import Protocol, runtime_checkable

from calgrid.protocol.types import DAVRequest, DAVResponse

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_REQUEST_TIMEOUT = 30.0


@runtime_checkable
class SyncIOProtocol(Protocol):
    """Synchronous I/O interface."""

    def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a request and return the response.

        Args:
            request: The DAVRequest to execute

        Returns:
            DAVResponse with status, headers, and body
        """
        ...

    def close(self) -> None:
        """Close any resources (e.g., HTTP session)."""
        ...


@runtime_checkable
class AsyncIOProtocol(Protocol):
    """Asynchronous I/O interface."""

    async def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a request and return the response.

        Args:
            request: The DAVRequest to execute

        Returns:
            DAVResponse with status, headers, and body
        """
        ...

    async def close(self) -> None:
        """Close any resources (e.g., HTTP session)."""
        ...
