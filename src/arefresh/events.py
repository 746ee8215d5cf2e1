r"""Event types and data structures for refresh observability.

This module lets users hook into the token refresh lifecycle for
logging, metrics or debugging. A single observer callable receives every
event; it is invoked fire-and-forget and can never change the outcome of
a request.

The event types are:
- RefreshStarted: a leader invoked the refresh callback
- RefreshSucceeded: the refresh callback returned new credentials
- RefreshFailed: the refresh callback failed
- RequestRetried: a request was resent after a successful refresh
- RetryFailed: a request resent after a refresh failed again

Example:
    ```pycon
    >>> from arefresh import AsyncApiClient
    >>> from arefresh.core import ClientConfig
    >>> from arefresh.events import RefreshEvent
    >>> def log_event(event: RefreshEvent):
    ...     print(f"{type(event).__name__} (cycle {event.cycle})")
    ...
    >>> config = ClientConfig(base_url="https://api.example.com", observer=log_event)

    ```
"""

from __future__ import annotations

__all__ = [
    "RefreshEvent",
    "RefreshFailed",
    "RefreshStarted",
    "RefreshSucceeded",
    "RequestRetried",
    "RetryFailed",
    "invoke_observer",
]

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from arefresh.models import AuthFailureSignal

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshEvent:
    """Base class of every refresh lifecycle event.

    Attributes:
        cycle: The number of the refresh cycle (1-indexed, per coordinator).
    """

    cycle: int


@dataclass(frozen=True)
class RefreshStarted(RefreshEvent):
    """Event emitted when a leader invokes the refresh callback.

    Attributes:
        signal: The authorization failure that triggered the refresh, if
            known.
    """

    signal: AuthFailureSignal | None = None


@dataclass(frozen=True)
class RefreshSucceeded(RefreshEvent):
    """Event emitted when the refresh callback returned credentials.

    Attributes:
        header_names: Names of the headers merged into the credential store.
        duration: Time spent in the refresh callback (seconds).
        credentials_version: The version of the credential store once the
            new headers were applied.
    """

    header_names: tuple[str, ...] = ()
    duration: float = 0.0
    credentials_version: int = 0


@dataclass(frozen=True)
class RefreshFailed(RefreshEvent):
    """Event emitted when the refresh callback failed.

    Attributes:
        error: The exception raised by the refresh callback.
        duration: Time spent in the refresh callback (seconds).
    """

    error: BaseException | None = None
    duration: float = 0.0


@dataclass(frozen=True)
class RequestRetried(RefreshEvent):
    """Event emitted when a request was resent after a refresh.

    Attributes:
        signal: The authorization failure of the first attempt.
        status_code: The status code of the retry response.
    """

    signal: AuthFailureSignal | None = None
    status_code: int | None = None


@dataclass(frozen=True)
class RetryFailed(RefreshEvent):
    """Event emitted when the retry after a refresh failed.

    Attributes:
        signal: The authorization failure of the first attempt.
        status_code: The status code of the retry response, if any.
        error: The transport exception of the retry, if any.
    """

    signal: AuthFailureSignal | None = None
    status_code: int | None = None
    error: BaseException | None = None


def invoke_observer(observer: Callable[[RefreshEvent], None] | None, event: RefreshEvent) -> None:
    """Invoke the observer if provided.

    Exceptions raised by the observer are logged and discarded.

    Args:
        observer: Optional callback receiving the event.
        event: The event to deliver.
    """
    if observer is None:
        return
    try:
        observer(event)
    except Exception as e:  # noqa: BLE001
        logger.warning(f"Error in refresh observer for {type(event).__name__}: {e}")
