r"""arefresh - HTTP API client with single-flight access token refresh.

This package provides an HTTP client for APIs protected by short-lived
access tokens. When concurrent requests are rejected because the token
expired, exactly one token refresh runs and every rejected request is
retried once with the new credentials. Built on top of the modern httpx
library, it works from threads as well as from asyncio tasks.

Key Features:
    - Single-flight token refresh shared by all the concurrent requests
    - Exactly one retry per request, with the refreshed credential headers
    - Configurable token-expired status code and refresh wait timeout
    - Failures returned as values (``ApiResult``) instead of exceptions
    - Convenience methods for GET, POST, PUT, DELETE and multipart forms
    - Full async support for high-performance applications
    - Observer callback for refresh events (logging, metrics, alerting)

Example:
    ```pycon
    >>> from arefresh import ApiClient
    >>> from arefresh.core import ClientConfig
    >>> def refresh_token():
    ...     return {"Authorization": "Bearer <new token>"}
    ...
    >>> with ApiClient(
    ...     config=ClientConfig(base_url="https://api.example.com"),
    ...     refresh_token=refresh_token,
    ... ) as client:  # doctest: +SKIP
    ...     result = client.get("/users/1")
    ...     if result.is_success:
    ...         print(result.data)
    ...

    ```
"""

from __future__ import annotations

__all__ = [
    "ApiClient",
    "ApiResult",
    "AsyncApiClient",
    "AsyncRefreshCoordinator",
    "ClientConfig",
    "CredentialStore",
    "ErrorMessages",
    "FailureKind",
    "FormDataMethod",
    "HttpRequestError",
    "RefreshCoordinator",
    "RefreshFailedError",
    "RefreshState",
    "RefreshTimeoutError",
    "RetryFailedError",
    "TransportError",
    "TransportErrorKind",
    "__version__",
]

from importlib.metadata import PackageNotFoundError, version

from arefresh.client import ApiClient
from arefresh.client_async import AsyncApiClient
from arefresh.coordinator import AsyncRefreshCoordinator, RefreshCoordinator, RefreshState
from arefresh.core.config import ClientConfig
from arefresh.credentials import CredentialStore
from arefresh.exceptions import (
    HttpRequestError,
    RefreshFailedError,
    RefreshTimeoutError,
    RetryFailedError,
    TransportError,
    TransportErrorKind,
)
from arefresh.result import ApiResult, ErrorMessages, FailureKind
from arefresh.utils.forms import FormDataMethod

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
