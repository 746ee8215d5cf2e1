r"""HTTP response handling utilities.

This module converts HTTP responses and request errors into
``ApiResult`` values: successful responses are parsed and decoded, every
other outcome becomes a failure with a user-facing message and a
``FailureKind``.
"""

from __future__ import annotations

__all__ = [
    "extract_error_message",
    "parse_body",
    "process_response",
    "result_from_error",
    "result_from_file_error",
]

import logging
from typing import TYPE_CHECKING, Any

from arefresh.core.config import SUCCESS_STATUS_RANGE
from arefresh.exceptions import (
    RefreshFailedError,
    RetryFailedError,
    TransportError,
    TransportErrorKind,
)
from arefresh.result import ApiResult, ErrorMessages, FailureKind

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from arefresh.exceptions import HttpRequestError

logger: logging.Logger = logging.getLogger(__name__)

_TRANSPORT_FAILURE_KINDS = {
    TransportErrorKind.TIMEOUT: FailureKind.TIMEOUT,
    TransportErrorKind.NO_CONNECTION: FailureKind.NO_CONNECTION,
    TransportErrorKind.OTHER: FailureKind.TRANSPORT,
}


def parse_body(response: httpx.Response) -> Any:
    """Parse the body of a response.

    Args:
        response: The response to parse.

    Returns:
        ``None`` for an empty body, the decoded JSON document when the
        content type is JSON, and the text of the body otherwise.

    Raises:
        ValueError: If a JSON body is malformed.
    """
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        return response.json()
    return response.text


def extract_error_message(body: Any) -> str | None:
    """Extract an error message from a response body.

    Args:
        body: The parsed response body.

    Returns:
        The ``"message"`` (or else ``"error"``) value of a JSON object, the
        body itself if it is a non-empty string, ``None`` otherwise.

    Example:
        ```pycon
        >>> from arefresh.utils.response import extract_error_message
        >>> extract_error_message({"message": "Invalid credentials"})
        'Invalid credentials'
        >>> extract_error_message({"error": {"code": 7}})
        "{'code': 7}"
        >>> extract_error_message([1, 2]) is None
        True

        ```
    """
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if value is not None:
                return value if isinstance(value, str) else str(value)
        return None
    if isinstance(body, str) and body.strip():
        return body
    return None


def process_response(
    response: httpx.Response,
    decoder: Callable[[Any], Any] | None = None,
    *,
    global_error_message: str | None = None,
) -> ApiResult[Any]:
    """Convert a response into an ``ApiResult``.

    Args:
        response: The final response of a request.
        decoder: Optional function converting the parsed body into the
            caller's type. Without it the parsed body is returned.
        global_error_message: Optional message overriding the message of
            every non-successful response.

    Returns:
        A success holding the decoded body for a 2xx status, a failure
        otherwise.
    """
    status_code = response.status_code
    if status_code in SUCCESS_STATUS_RANGE:
        try:
            body = parse_body(response)
            data = decoder(body) if decoder is not None else body
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Failed to decode response: {exc}")
            return ApiResult.failure(
                f"Failed to decode response: {exc}",
                status_code=status_code,
                kind=FailureKind.DECODE,
                error=exc,
            )
        return ApiResult.success(data, status_code=status_code)

    return ApiResult.failure(
        _error_message(response, global_error_message),
        status_code=status_code,
        kind=FailureKind.HTTP,
    )


def result_from_error(
    error: HttpRequestError,
    *,
    global_error_message: str | None = None,
    global_network_error_message: str | None = None,
) -> ApiResult[Any]:
    """Convert a request error into a failed ``ApiResult``.

    Args:
        error: The error raised by the request pipeline.
        global_error_message: Optional message overriding the message of
            refresh and retry failures.
        global_network_error_message: Optional message used when the host
            cannot be reached.

    Returns:
        The failed result.
    """
    if isinstance(error, TransportError):
        return _transport_failure(error, global_network_error_message)

    if isinstance(error, RefreshFailedError):
        message = global_error_message or f"Token refresh failed: {error.cause}"
        kind = FailureKind.REFRESH_FAILED
    elif isinstance(error, RetryFailedError):
        if global_error_message is not None:
            message = global_error_message
        elif error.response is not None:
            detail = _error_message(error.response, None)
            message = f"Request failed after token refresh: {detail}"
        else:
            message = f"Request failed after token refresh: {error.cause}"
        kind = FailureKind.RETRY_FAILED
    else:
        message = global_error_message or error.message
        kind = FailureKind.HTTP
    return ApiResult.failure(message, status_code=error.status_code, kind=kind, error=error)


def result_from_file_error(
    error: OSError, *, global_error_message: str | None = None
) -> ApiResult[Any]:
    """Convert a failure to read an upload file into a failed ``ApiResult``.

    Args:
        error: The error raised while reading the file.
        global_error_message: Optional message overriding the default one.

    Returns:
        The failed result, of kind ``FailureKind.FILE``.
    """
    logger.debug(f"Failed to read form file: {error}")
    message = global_error_message or f"Failed to read form file: {error}"
    return ApiResult.failure(message, kind=FailureKind.FILE, error=error)


def _transport_failure(
    error: TransportError, global_network_error_message: str | None
) -> ApiResult[Any]:
    if error.kind is TransportErrorKind.TIMEOUT:
        message = ErrorMessages.TIMEOUT
    elif error.kind is TransportErrorKind.NO_CONNECTION:
        message = global_network_error_message or ErrorMessages.GLOBAL_NETWORK_ERROR
    else:
        message = ErrorMessages.GLOBAL_ERROR
    return ApiResult.failure(message, kind=_TRANSPORT_FAILURE_KINDS[error.kind], error=error)


def _error_message(response: httpx.Response, global_error_message: str | None) -> str:
    if global_error_message is not None:
        return global_error_message
    try:
        server_message = extract_error_message(parse_body(response))
    except ValueError:
        server_message = None
    return server_message or response.reason_phrase or ErrorMessages.GLOBAL_ERROR
