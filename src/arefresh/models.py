r"""Value objects exchanged between the pipeline and the refresh
coordinator.

This module defines the signal describing an authorization failure,
the two possible outcomes of a token refresh and the immutable request
snapshot used to resend a request after a refresh.
"""

from __future__ import annotations

__all__ = [
    "AuthFailureSignal",
    "RefreshFailure",
    "RefreshOutcome",
    "RefreshSuccess",
    "RetryableRequest",
    "merge_headers",
]

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

import httpx

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


@dataclass(frozen=True)
class AuthFailureSignal:
    """Description of a response answered with the token-expired
    status.

    Attributes:
        method: The HTTP method of the failed request.
        url: The URL of the failed request.
        status_code: The status code that was observed.
    """

    method: str
    url: str
    status_code: int

    @classmethod
    def from_response(cls, response: httpx.Response) -> AuthFailureSignal:
        """Create a signal from an authorization-failure response.

        Args:
            response: The response answered with the token-expired status.

        Returns:
            The signal describing the failed request.
        """
        request = response.request
        return cls(method=request.method, url=str(request.url), status_code=response.status_code)


@dataclass(frozen=True)
class RefreshSuccess:
    """Outcome of a successful token refresh.

    Attributes:
        headers: The credential headers returned by the refresh callback.
            They have already been merged into the credential store when
            the outcome is delivered.
        cycle: The number of the refresh cycle that produced the outcome.
    """

    headers: dict[str, str] = field(default_factory=dict)
    cycle: int = 0

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class RefreshFailure:
    """Outcome of a failed token refresh.

    Attributes:
        cause: The exception raised by the refresh callback, or a
            ``RefreshTimeoutError`` when the caller stopped waiting.
        cycle: The number of the refresh cycle that produced the outcome.
    """

    cause: BaseException
    cycle: int = 0

    @property
    def ok(self) -> bool:
        return False


RefreshOutcome = Union[RefreshSuccess, RefreshFailure]


def merge_headers(
    request_headers: Iterable[tuple[str, str]] | Mapping[str, str] | httpx.Headers,
    store_headers: Mapping[str, str] | httpx.Headers,
) -> httpx.Headers:
    """Merge credential headers over request headers.

    Header names are compared case-insensitively. A header present in
    ``store_headers`` replaces every request header with the same name;
    all the other request headers are kept unchanged.

    Args:
        request_headers: The headers of the request snapshot.
        store_headers: The current credential headers.

    Returns:
        The merged headers.

    Example:
        ```pycon
        >>> from arefresh.models import merge_headers
        >>> headers = merge_headers(
        ...     [("authorization", "Bearer OLD"), ("X-Trace", "1")],
        ...     {"Authorization": "Bearer NEW"},
        ... )
        >>> headers["Authorization"]
        'Bearer NEW'
        >>> headers["x-trace"]
        '1'

        ```
    """
    merged = httpx.Headers(request_headers)
    for name, value in httpx.Headers(store_headers).items():
        merged[name] = value
    return merged


@dataclass(frozen=True)
class RetryableRequest:
    """Immutable snapshot of a request taken before its first send.

    The snapshot owns its own copy of every field, so that a retry is
    never affected by later changes to the original request object.

    Attributes:
        method: The HTTP method.
        url: The absolute URL, including the encoded query string.
        headers: The request headers as ``(name, value)`` pairs.
        content: The fully read request body.
        extensions: The request extensions (e.g. the per-request timeout).
    """

    method: str
    url: str
    headers: tuple[tuple[str, str], ...]
    content: bytes = b""
    extensions: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: httpx.Request) -> RetryableRequest:
        """Snapshot a request whose body can be read synchronously.

        Args:
            request: The request to snapshot.

        Returns:
            The request snapshot.
        """
        content = request.read()
        return cls._from_read_request(request, content)

    @classmethod
    async def from_request_async(cls, request: httpx.Request) -> RetryableRequest:
        """Snapshot a request whose body may only be read asynchronously.

        Args:
            request: The request to snapshot.

        Returns:
            The request snapshot.
        """
        content = await request.aread()
        return cls._from_read_request(request, content)

    @classmethod
    def _from_read_request(cls, request: httpx.Request, content: bytes) -> RetryableRequest:
        return cls(
            method=request.method,
            url=str(request.url),
            headers=tuple(request.headers.multi_items()),
            content=content,
            extensions=dict(request.extensions),
        )

    def rebuild(self, credentials: Mapping[str, str] | httpx.Headers) -> httpx.Request:
        """Build a fresh request from the snapshot with credentials merged
        in.

        Args:
            credentials: The current credential headers. They take
                precedence over the snapshot headers.

        Returns:
            A new request ready to be sent.
        """
        return httpx.Request(
            self.method,
            self.url,
            headers=merge_headers(self.headers, credentials),
            content=self.content,
            extensions=dict(self.extensions),
        )
