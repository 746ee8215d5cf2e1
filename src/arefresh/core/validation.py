r"""Parameter validation utilities for the client configuration.

This module provides validation functions for configuration values to
ensure they meet the required constraints before a client is created.
"""

from __future__ import annotations

__all__ = ["validate_refresh_timeout", "validate_status_code", "validate_timeout"]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


def validate_timeout(timeout: float | httpx.Timeout) -> None:
    """Validate timeout parameter.

    Args:
        timeout: Maximum seconds to wait for server responses.
            Must be > 0 if provided as a numeric value.

    Raises:
        ValueError: If timeout is a numeric value <= 0.

    Example:
        ```pycon
        >>> from arefresh.core.validation import validate_timeout
        >>> validate_timeout(10.0)
        >>> validate_timeout(30)
        >>> validate_timeout(0)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        ValueError: timeout must be > 0, got 0

        ```
    """
    if isinstance(timeout, (int, float)) and timeout <= 0:
        msg = f"timeout must be > 0, got {timeout}"
        raise ValueError(msg)


def validate_status_code(status_code: int) -> None:
    """Validate an HTTP status code.

    Args:
        status_code: The status code to validate. Must be in ``[100, 599]``.

    Raises:
        ValueError: If the status code is outside the valid range.

    Example:
        ```pycon
        >>> from arefresh.core.validation import validate_status_code
        >>> validate_status_code(401)
        >>> validate_status_code(42)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        ValueError: token_expired_code must be an HTTP status code in [100, 599], got 42

        ```
    """
    if not 100 <= status_code <= 599:
        msg = f"token_expired_code must be an HTTP status code in [100, 599], got {status_code}"
        raise ValueError(msg)


def validate_refresh_timeout(refresh_timeout: float | None) -> None:
    """Validate the deadline applied while waiting for a token refresh.

    Args:
        refresh_timeout: Maximum seconds a caller waits for a refresh
            outcome. Must be > 0 if provided.

    Raises:
        ValueError: If refresh_timeout is <= 0.
    """
    if refresh_timeout is not None and refresh_timeout <= 0:
        msg = f"refresh_timeout must be > 0, got {refresh_timeout}"
        raise ValueError(msg)
