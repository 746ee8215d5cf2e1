r"""Thread-safe store of the credential headers owned by a client."""

from __future__ import annotations

__all__ = ["CredentialStore"]

import threading
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping


class CredentialStore:
    r"""Mutable set of headers shared by every request of a client.

    The store is seeded with the client's default headers and updated by
    each successful token refresh. Header names are case-insensitive.
    Every read returns a copy taken under the lock, so a reader never
    observes a partially applied update.

    Args:
        headers: Optional initial headers.

    Example:
        ```pycon
        >>> from arefresh.credentials import CredentialStore
        >>> store = CredentialStore({"Authorization": "Bearer OLD"})
        >>> store.update({"authorization": "Bearer NEW"})
        >>> store.snapshot()["Authorization"]
        'Bearer NEW'
        >>> store.version
        1

        ```
    """

    def __init__(self, headers: Mapping[str, str] | None = None) -> None:
        self._headers = httpx.Headers(headers)
        self._version = 0
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(names={sorted(self.snapshot().keys())})"

    @property
    def version(self) -> int:
        """The number of updates applied to the store."""
        with self._lock:
            return self._version

    def snapshot(self) -> httpx.Headers:
        """Return a consistent copy of the current headers.

        Returns:
            A copy of the headers, safe to use without holding the lock.
        """
        with self._lock:
            return httpx.Headers(self._headers)

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the value of a single header.

        Args:
            name: The header name (case-insensitive).
            default: The value returned when the header is missing.

        Returns:
            The header value, or ``default``.
        """
        with self._lock:
            return self._headers.get(name, default)

    def update(self, headers: Mapping[str, str] | httpx.Headers) -> None:
        """Merge headers into the store.

        Each given header replaces any existing header with the same name,
        whatever its casing. The whole update is applied atomically.

        Args:
            headers: The headers to merge.
        """
        incoming = httpx.Headers(headers)
        with self._lock:
            for name, value in incoming.items():
                self._headers[name] = value
            self._version += 1
