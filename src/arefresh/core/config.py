r"""Configuration dataclass and defaults for ApiClient.

This module provides configuration constants and a dataclass-based
configuration object for the ApiClient and AsyncApiClient context
manager classes.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_HEADERS",
    "DEFAULT_TIMEOUT",
    "DEFAULT_TOKEN_EXPIRED_CODE",
    "SUCCESS_STATUS_RANGE",
    "ClientConfig",
]

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from arefresh.core.validation import (
    validate_refresh_timeout,
    validate_status_code,
    validate_timeout,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from arefresh.events import RefreshEvent


# Default timeout in seconds for HTTP requests (connect, read, write and pool)
DEFAULT_TIMEOUT = 60.0

# HTTP status code that signals an expired access token
DEFAULT_TOKEN_EXPIRED_CODE = 401

# Headers sent with every request unless overridden
DEFAULT_HEADERS: dict[str, str] = {"Accept": "application/json"}

# Status codes treated as successful responses
SUCCESS_STATUS_RANGE = range(200, 300)


@dataclass
class ClientConfig:
    """Configuration for ApiClient and AsyncApiClient.

    Args:
        base_url: Base endpoint prepended to every relative request path.
        headers: Default headers. They are added on top of
            ``DEFAULT_HEADERS``, replacing a default with the same name
            whatever its casing, and seed the client's credential store.
        timeout: Maximum seconds to wait for server responses. Must be > 0.
        token_expired_code: HTTP status code meaning that the access token
            expired and must be refreshed.
        refresh_timeout: Optional maximum seconds a request waits for a
            token refresh started by another request. Must be > 0 if
            provided. The refresh itself is never cancelled.
        global_error_message: Optional message used for every failure that
            is not a transport failure, instead of the server message.
        global_network_error_message: Optional message used when the host
            cannot be reached.
        observer: Optional callback receiving refresh lifecycle events.

    Example:
        ```pycon
        >>> from arefresh.core.config import ClientConfig
        >>> config = ClientConfig(base_url="https://api.example.com")
        >>> config.token_expired_code
        401
        >>> merged = config.merge(token_expired_code=419)
        >>> merged.token_expired_code
        419
        >>> config.token_expired_code  # Original unchanged
        401

        ```
    """

    base_url: str = ""
    headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    timeout: float | httpx.Timeout = DEFAULT_TIMEOUT
    token_expired_code: int = DEFAULT_TOKEN_EXPIRED_CODE
    refresh_timeout: float | None = None
    global_error_message: str | None = None
    global_network_error_message: str | None = None
    observer: Callable[[RefreshEvent], None] | None = None

    def __post_init__(self) -> None:
        """Validate configuration parameters after initialization.

        Raises:
            ValueError: If any parameter fails validation.
        """
        validate_timeout(self.timeout)
        validate_status_code(self.token_expired_code)
        validate_refresh_timeout(self.refresh_timeout)

    def merge(self, **overrides: Any) -> ClientConfig:
        """Create a new config with specified parameters overridden.

        Only non-None override values are applied.

        Args:
            **overrides: Keyword arguments for parameters to override.

        Returns:
            A new ClientConfig instance with overrides applied.
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered_overrides)

    def resolve_headers(self) -> dict[str, str]:
        """Return the headers sent with every request.

        Returns:
            ``DEFAULT_HEADERS`` updated with ``headers``. Header names are
            compared case-insensitively.

        Example:
            ```pycon
            >>> from arefresh.core.config import ClientConfig
            >>> ClientConfig(headers={"Authorization": "Bearer T"}).resolve_headers()
            {'Accept': 'application/json', 'Authorization': 'Bearer T'}
            >>> ClientConfig(headers={"accept": "text/plain"}).resolve_headers()
            {'accept': 'text/plain'}

            ```
        """
        overridden = {name.lower() for name in self.headers}
        headers = {
            name: value
            for name, value in DEFAULT_HEADERS.items()
            if name.lower() not in overridden
        }
        headers.update(self.headers)
        return headers
