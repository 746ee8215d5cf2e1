r"""Shared test helpers for the token refresh tests.

This module contains small request handlers and recorders used across
multiple test files.
"""

from __future__ import annotations

__all__ = ["BASE_URL", "RequestRecorder", "expiring_handler"]

import threading
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Callable

BASE_URL = "https://api.example.com"


class RequestRecorder:
    """Wrap a request handler and record every request it receives.

    Args:
        handler: The wrapped request handler.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._handler = handler
        self._lock = threading.Lock()
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return self._handler(request)

    @property
    def authorizations(self) -> list[str | None]:
        with self._lock:
            return [request.headers.get("Authorization") for request in self.requests]

    def count(self, authorization: str) -> int:
        return self.authorizations.count(authorization)


def expiring_handler(
    valid_token: str = "Bearer NEW", status_code: int = 401
) -> Callable[[httpx.Request], httpx.Response]:
    """Create a handler rejecting every token but ``valid_token``.

    Args:
        valid_token: The only accepted ``Authorization`` header value.
        status_code: The status code answered to other tokens.

    Returns:
        The request handler.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != valid_token:
            return httpx.Response(status_code, json={"message": "Token expired"})
        return httpx.Response(200, json={"path": request.url.path})

    return handler
