r"""Exception handling utilities for HTTP requests.

This module converts the exceptions raised by the ``httpx`` transport
into ``TransportError`` instances that keep the kind of failure
(timeout, unreachable host, other) instead of collapsing every failure
into a generic message.
"""

from __future__ import annotations

__all__ = ["to_transport_error"]

import logging

import httpx

from arefresh.exceptions import TransportError, TransportErrorKind

logger: logging.Logger = logging.getLogger(__name__)


def to_transport_error(exc: httpx.RequestError, *, method: str, url: str) -> TransportError:
    """Convert a transport exception into a ``TransportError``.

    Args:
        exc: The exception raised by the transport.
        method: The HTTP method name (e.g., "GET", "POST"), used in error messages.
        url: The URL that was requested, used in error messages.

    Returns:
        The transport error. The original exception is attached as cause.

    Example:
        ```pycon
        >>> import httpx
        >>> from arefresh.utils.exceptions import to_transport_error
        >>> error = to_transport_error(
        ...     httpx.ConnectTimeout("timed out"), method="GET", url="https://api.example.com"
        ... )
        >>> error.kind
        <TransportErrorKind.TIMEOUT: 'timeout'>

        ```
    """
    error_type = type(exc).__name__
    if isinstance(exc, httpx.TimeoutException):
        kind = TransportErrorKind.TIMEOUT
        message = f"{method} request to {url} timed out: {exc}"
    elif isinstance(exc, httpx.NetworkError):
        kind = TransportErrorKind.NO_CONNECTION
        message = f"{method} request to {url} could not connect: {exc}"
    else:
        kind = TransportErrorKind.OTHER
        message = f"{method} request to {url} failed with {error_type}: {exc}"
    logger.debug(f"{method} request to {url} encountered {error_type}: {exc}")
    error = TransportError(method=method, url=url, message=message, kind=kind, cause=exc)
    error.__cause__ = exc
    return error
