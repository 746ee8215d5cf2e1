r"""Exceptions raised by the request pipeline.

All request failures derive from ``HttpRequestError`` so that callers of
the raw ``request`` methods can catch a single type, while still being
able to tell a transport problem from a failed token refresh or a failed
retry.
"""

from __future__ import annotations

__all__ = [
    "HttpRequestError",
    "RefreshFailedError",
    "RefreshTimeoutError",
    "RetryFailedError",
    "TransportError",
    "TransportErrorKind",
]

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class HttpRequestError(RuntimeError):
    """Exception raised when an HTTP request fails.

    Args:
        method: The HTTP method (e.g., "GET", "POST").
        url: The URL that was requested.
        message: A descriptive error message.
        status_code: The HTTP status code, if a response was received.
        response: The HTTP response object, if a response was received.
        cause: The underlying exception, if any.

    Example:
        ```pycon
        >>> from arefresh.exceptions import HttpRequestError
        >>> error = HttpRequestError(
        ...     method="GET",
        ...     url="https://api.example.com/data",
        ...     message="GET request to https://api.example.com/data failed with status 404",
        ...     status_code=404,
        ... )
        >>> error.status_code
        404

        ```
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: str,
        status_code: int | None = None,
        response: httpx.Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.message = message
        self.status_code = status_code
        self.response = response
        self.cause = cause


class TransportErrorKind(Enum):
    """Kinds of transport failures.

    Attributes:
        TIMEOUT: The request timed out (connect, read, write or pool).
        NO_CONNECTION: The host could not be reached.
        OTHER: Any other transport failure.
    """

    TIMEOUT = "timeout"
    NO_CONNECTION = "no_connection"
    OTHER = "other"


class TransportError(HttpRequestError):
    """Exception raised when the transport could not complete a request.

    Args:
        method: The HTTP method.
        url: The URL that was requested.
        message: A descriptive error message.
        kind: The kind of transport failure.
        cause: The underlying ``httpx`` exception.
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: str,
        *,
        kind: TransportErrorKind = TransportErrorKind.OTHER,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(method=method, url=url, message=message, cause=cause)
        self.kind = kind


class RefreshFailedError(HttpRequestError):
    """Exception raised when a request hit the token-expired status and
    the token refresh failed.

    The ``response`` attribute holds the original authorization-failure
    response and ``cause`` the exception produced by the refresh
    callback.
    """


class RetryFailedError(HttpRequestError):
    """Exception raised when the retry issued after a successful token
    refresh failed.

    The retry is never repeated. ``response`` is the retry response when
    the server answered (e.g. with the token-expired status again), and
    ``None`` when the retry failed in the transport.
    """


class RefreshTimeoutError(TimeoutError):
    """Exception raised when a caller stops waiting for a token refresh.

    Example:
        ```pycon
        >>> from arefresh.exceptions import RefreshTimeoutError
        >>> raise RefreshTimeoutError("Timed out after 1.0s waiting for token refresh")
        Traceback (most recent call last):
            ...
        arefresh.exceptions.RefreshTimeoutError: Timed out after 1.0s waiting for token refresh

        ```
    """
