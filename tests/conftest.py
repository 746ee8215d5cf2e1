from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import Mock

import httpx
import pytest

from arefresh.credentials import CredentialStore

if TYPE_CHECKING:
    from collections.abc import Callable


@pytest.fixture
def store() -> CredentialStore:
    """Create a credential store holding an expired token."""
    return CredentialStore({"Accept": "application/json", "Authorization": "Bearer OLD"})


@pytest.fixture
def mock_callback() -> Mock:
    """Create a mock callback function for testing observers.

    Returns:
        A Mock object that can be used as an observer.
    """
    return Mock()


@pytest.fixture
def token_server() -> Callable[[httpx.Request], httpx.Response]:
    """Create a request handler accepting only the ``Bearer NEW`` token.

    The handler answers 401 to any other token, and echoes the request
    path, method and body otherwise.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != "Bearer NEW":
            return httpx.Response(401, json={"message": "Token expired"})
        return httpx.Response(
            200,
            json={
                "path": request.url.path,
                "method": request.method,
                "body": request.content.decode(errors="replace"),
            },
        )

    return handler
