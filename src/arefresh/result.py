r"""Success/failure envelope returned by the client convenience methods.

``ApiResult`` unifies decoded payloads and failures under a single type so
that calling code can branch on the outcome without catching exceptions.

Example:
    ```pycon
    >>> from arefresh.result import ApiResult, FailureKind
    >>> result = ApiResult.success({"id": 1, "name": "Ada"}, status_code=200)
    >>> result.is_success
    True
    >>> result.map(lambda user: user["name"]).data
    'Ada'
    >>> failure = ApiResult.failure("Not Found", status_code=404)
    >>> failure.kind
    <FailureKind.HTTP: 'http'>
    >>> failure.map(lambda user: user["name"]) is failure
    True

    ```
"""

from __future__ import annotations

__all__ = ["ApiResult", "ErrorMessages", "FailureKind"]

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")
R = TypeVar("R")


class ErrorMessages:
    """User-facing fallback error messages."""

    # Generic message for unexpected failures
    GLOBAL_ERROR = "An error occurred, please try again later."

    # Message used when the host cannot be reached
    GLOBAL_NETWORK_ERROR = (
        "An error occurred, please try again later or check your internet connection."
    )

    TIMEOUT = "Request timeout"


class FailureKind(Enum):
    """Kinds of failures carried by ``ApiResult``.

    Attributes:
        TIMEOUT: The transport timed out.
        NO_CONNECTION: The host could not be reached.
        TRANSPORT: Any other transport failure.
        HTTP: The server answered with a non-successful status.
        REFRESH_FAILED: The token expired and the refresh failed.
        RETRY_FAILED: The token was refreshed but the retried request failed.
        DECODE: The response body could not be decoded.
        FILE: A file to upload could not be read.
    """

    TIMEOUT = "timeout"
    NO_CONNECTION = "no_connection"
    TRANSPORT = "transport"
    HTTP = "http"
    REFRESH_FAILED = "refresh_failed"
    RETRY_FAILED = "retry_failed"
    DECODE = "decode"
    FILE = "file"


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """Result of an API call: decoded data or a structured failure.

    Attributes:
        data: The decoded payload of a success.
        message: The error message of a failure.
        status_code: The HTTP status code, if a response was received.
        kind: The kind of failure, ``None`` for a success.
        error: The exception behind a failure, if any.
    """

    data: T | None = None
    message: str | None = None
    status_code: int | None = None
    kind: FailureKind | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, data: T, status_code: int | None = None) -> ApiResult[T]:
        """Create a successful result.

        Args:
            data: The decoded payload.
            status_code: The HTTP status code of the response.

        Returns:
            The successful result.
        """
        return cls(data=data, status_code=status_code)

    @classmethod
    def failure(
        cls,
        message: str,
        *,
        status_code: int | None = None,
        kind: FailureKind = FailureKind.HTTP,
        error: BaseException | None = None,
    ) -> ApiResult[T]:
        """Create a failed result.

        Args:
            message: The error message.
            status_code: The HTTP status code, if a response was received.
            kind: The kind of failure.
            error: The exception behind the failure, if any.

        Returns:
            The failed result.
        """
        return cls(message=message, status_code=status_code, kind=kind, error=error)

    @property
    def is_success(self) -> bool:
        return self.kind is None

    @property
    def is_failure(self) -> bool:
        return self.kind is not None

    def map(self, transform: Callable[[T], R]) -> ApiResult[R]:
        """Transform the data of a successful result.

        Failures are returned unchanged. If ``transform`` raises, the
        result is a ``DECODE`` failure.

        Args:
            transform: Function applied to the data.

        Returns:
            The transformed result.
        """
        if self.is_failure:
            return self  # type: ignore[return-value]
        try:
            return ApiResult.success(transform(self.data), status_code=self.status_code)
        except Exception as exc:  # noqa: BLE001
            return ApiResult.failure(
                f"Failed to decode response: {exc}",
                status_code=self.status_code,
                kind=FailureKind.DECODE,
                error=exc,
            )

    def __str__(self) -> str:
        if self.is_success:
            return f"ApiResult.success(status: {self.status_code}, data: {self.data!r})"
        return f"ApiResult.failure(status: {self.status_code}, error: {self.message})"
