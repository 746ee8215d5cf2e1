r"""Single-flight coordination of access token refreshes.

When an access token expires, many requests in flight may be answered
with the token-expired status at the same time. The coordinators in this
module make sure that the refresh callback runs only once for all of
them:

- IDLE: no refresh in progress. The first caller to observe this state
  becomes the leader of a new refresh cycle and invokes the callback.
- REFRESHING: a refresh is underway. Every other caller joins the current
  cycle as a follower and waits for its outcome.

The leader merges the new credentials into the credential store, returns
the coordinator to IDLE and then broadcasts the outcome to every waiter.
All callers of a cycle receive the very same outcome object, and a failed
refresh is never cached: the next caller starts a new cycle.

Example:
    ```pycon
    >>> from arefresh.coordinator import RefreshCoordinator, RefreshState
    >>> from arefresh.credentials import CredentialStore
    >>> store = CredentialStore({"Authorization": "Bearer OLD"})
    >>> coordinator = RefreshCoordinator(store, lambda: {"Authorization": "Bearer NEW"})
    >>> outcome = coordinator.ensure_fresh_token()
    >>> outcome.ok
    True
    >>> store.get("authorization")
    'Bearer NEW'
    >>> coordinator.state
    <RefreshState.IDLE: 'idle'>

    ```
"""

from __future__ import annotations

__all__ = [
    "AsyncRefreshCoordinator",
    "RefreshCoordinator",
    "RefreshCycle",
    "RefreshState",
]

import asyncio
import logging
import threading
import time
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from arefresh.events import RefreshFailed, RefreshStarted, RefreshSucceeded, invoke_observer
from arefresh.exceptions import RefreshTimeoutError
from arefresh.models import RefreshFailure, RefreshSuccess
from arefresh.utils.structured_logging import log_structured

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from arefresh.credentials import CredentialStore
    from arefresh.events import RefreshEvent
    from arefresh.models import AuthFailureSignal, RefreshOutcome

logger: logging.Logger = logging.getLogger(__name__)


class RefreshState(Enum):
    """Refresh coordinator states.

    Attributes:
        IDLE: No refresh in progress.
        REFRESHING: A refresh is underway and callers wait for its outcome.
    """

    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCycle:
    r"""Broadcast-once outcome slot shared by the callers of one refresh.

    Blocking waiters wait on a ``threading.Event``. Asynchronous waiters
    register a future on their own event loop; the future is resolved
    with ``call_soon_threadsafe`` so the outcome can be delivered from
    any thread.

    Args:
        number: The number of the cycle (1-indexed, per coordinator).
    """

    def __init__(self, number: int) -> None:
        self.number = number
        self.followers = 0
        self.task: asyncio.Future[None] | None = None
        self._outcome: RefreshOutcome | None = None
        self._event = threading.Event()
        self._slots: list[tuple[asyncio.AbstractEventLoop, asyncio.Future[RefreshOutcome]]] = []
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(number={self.number}, done={self.done})"

    @property
    def done(self) -> bool:
        """``True`` once the outcome has been broadcast."""
        return self._event.is_set()

    @property
    def outcome(self) -> RefreshOutcome | None:
        """The outcome of the cycle, or ``None`` while it is running."""
        with self._lock:
            return self._outcome

    def resolve(self, outcome: RefreshOutcome) -> None:
        """Broadcast the outcome to every current and future waiter.

        Args:
            outcome: The outcome of the refresh.

        Raises:
            RuntimeError: If the cycle was already resolved.
        """
        with self._lock:
            if self._outcome is not None:
                msg = f"Refresh cycle {self.number} was already resolved"
                raise RuntimeError(msg)
            self._outcome = outcome
            slots, self._slots = self._slots, []
            self._event.set()
        for loop, future in slots:
            try:
                loop.call_soon_threadsafe(_deliver, future, outcome)
            except RuntimeError:
                # The waiter's event loop is closed, nobody is left to wake up.
                logger.debug(f"Skipped refresh waiter on a closed event loop (cycle {self.number})")

    def wait(self, timeout: float | None = None) -> RefreshOutcome | None:
        """Block until the outcome is available.

        Args:
            timeout: Optional maximum seconds to wait.

        Returns:
            The outcome, or ``None`` if the timeout expired first.
        """
        if not self._event.wait(timeout):
            return None
        return self.outcome

    async def wait_async(self, timeout: float | None = None) -> RefreshOutcome | None:
        """Wait for the outcome without blocking the event loop.

        Args:
            timeout: Optional maximum seconds to wait.

        Returns:
            The outcome, or ``None`` if the timeout expired first.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._outcome is not None:
                return self._outcome
            future: asyncio.Future[RefreshOutcome] = loop.create_future()
            slot = (loop, future)
            self._slots.append(slot)
        try:
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            return None
        finally:
            with self._lock:
                if slot in self._slots:
                    self._slots.remove(slot)


def _deliver(future: asyncio.Future[RefreshOutcome], outcome: RefreshOutcome) -> None:
    if not future.done():
        future.set_result(outcome)


def _as_credentials(result: Any) -> dict[str, str]:
    """Convert the value returned by a refresh callback to headers.

    Args:
        result: The value returned by the refresh callback. ``None`` means
            that no header changes.

    Returns:
        The credential headers.

    Raises:
        TypeError: If the value is neither ``None`` nor a mapping.
    """
    if result is None:
        return {}
    if not isinstance(result, Mapping):
        msg = (
            "The refresh callback must return a mapping of header names to values "
            f"or None, got {type(result).__name__}"
        )
        raise TypeError(msg)
    return {str(name): str(value) for name, value in result.items()}


class _BaseRefreshCoordinator:
    """State machine shared by the blocking and asynchronous coordinators.

    Args:
        credentials: The credential store updated by successful refreshes.
        observer: Optional callback receiving refresh lifecycle events.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        observer: Callable[[RefreshEvent], None] | None = None,
    ) -> None:
        self._credentials = credentials
        self._observer = observer
        self._cycle: RefreshCycle | None = None
        self._cycle_count = 0
        self._lock = threading.Lock()

    @property
    def credentials(self) -> CredentialStore:
        """The credential store updated by successful refreshes."""
        return self._credentials

    @property
    def state(self) -> RefreshState:
        """The current state of the coordinator."""
        with self._lock:
            return RefreshState.IDLE if self._cycle is None else RefreshState.REFRESHING

    @property
    def refresh_count(self) -> int:
        """The number of refresh cycles started so far."""
        with self._lock:
            return self._cycle_count

    def _join(self) -> tuple[RefreshCycle, bool]:
        """Join the current refresh cycle or start a new one.

        Returns:
            The cycle and ``True`` if the caller is its leader.
        """
        with self._lock:
            if self._cycle is None:
                self._cycle_count += 1
                self._cycle = RefreshCycle(self._cycle_count)
                leader = True
            else:
                self._cycle.followers += 1
                leader = False
            cycle = self._cycle
        log_structured(
            logger,
            logging.DEBUG,
            f"{'Starting' if leader else 'Waiting for'} token refresh (cycle {cycle.number})",
            refresh_cycle=cycle.number,
            refresh_role="leader" if leader else "follower",
        )
        return cycle, leader

    def _start(self, cycle: RefreshCycle, signal: AuthFailureSignal | None) -> float:
        invoke_observer(self._observer, RefreshStarted(cycle=cycle.number, signal=signal))
        return time.monotonic()

    def _succeed(self, cycle: RefreshCycle, result: Any, start_time: float) -> None:
        """Apply new credentials, return to IDLE and release the waiters.

        A result that is not a valid credential mapping fails the cycle.
        """
        try:
            headers = _as_credentials(result)
        except TypeError as exc:
            self._fail(cycle, exc, start_time)
            return
        if headers:
            self._credentials.update(headers)
        version = self._credentials.version
        duration = time.monotonic() - start_time
        log_structured(
            logger,
            logging.DEBUG,
            f"Token refreshed successfully in {duration:.3f}s (cycle {cycle.number}, "
            f"{cycle.followers} waiting)",
            refresh_cycle=cycle.number,
            refresh_role="leader",
            credentials_version=version,
        )
        invoke_observer(
            self._observer,
            RefreshSucceeded(
                cycle=cycle.number,
                header_names=tuple(headers),
                duration=duration,
                credentials_version=version,
            ),
        )
        self._release(cycle, RefreshSuccess(headers=headers, cycle=cycle.number))

    def _fail(self, cycle: RefreshCycle, error: BaseException, start_time: float) -> None:
        """Return to IDLE and release the waiters with the failure."""
        duration = time.monotonic() - start_time
        log_structured(
            logger,
            logging.WARNING,
            f"Token refresh failed (cycle {cycle.number}, {cycle.followers} waiting): "
            f"{type(error).__name__}: {error}",
            refresh_cycle=cycle.number,
            refresh_role="leader",
        )
        invoke_observer(
            self._observer, RefreshFailed(cycle=cycle.number, error=error, duration=duration)
        )
        self._release(cycle, RefreshFailure(cause=error, cycle=cycle.number))

    def _release(self, cycle: RefreshCycle, outcome: RefreshOutcome) -> None:
        with self._lock:
            if self._cycle is cycle:
                self._cycle = None
        cycle.resolve(outcome)

    def _timed_out(self, cycle: RefreshCycle, timeout: float | None) -> RefreshFailure:
        log_structured(
            logger,
            logging.DEBUG,
            f"Stopped waiting for token refresh after {timeout}s (cycle {cycle.number})",
            refresh_cycle=cycle.number,
            refresh_role="follower",
        )
        error = RefreshTimeoutError(
            f"Timed out after {timeout}s waiting for token refresh (cycle {cycle.number})"
        )
        return RefreshFailure(cause=error, cycle=cycle.number)


def _missing_refresh_callback() -> RuntimeError:
    return RuntimeError("No refresh callback is configured to renew the expired token")


class RefreshCoordinator(_BaseRefreshCoordinator):
    r"""Single-flight token refresh coordinator for blocking callers.

    Safe to share between threads. The leader thread runs the refresh
    callback itself, so the optional deadline only applies to followers.

    Args:
        credentials: The credential store updated by successful refreshes.
        refresh_callback: Callable returning the new credential headers
            (or ``None``). It may raise any exception to signal a failure.
        observer: Optional callback receiving refresh lifecycle events.

    Example:
        ```pycon
        >>> from arefresh.coordinator import RefreshCoordinator
        >>> from arefresh.credentials import CredentialStore
        >>> def refresh():
        ...     raise ConnectionError("auth server unreachable")
        ...
        >>> coordinator = RefreshCoordinator(CredentialStore(), refresh)
        >>> outcome = coordinator.ensure_fresh_token()
        >>> outcome.ok
        False
        >>> outcome.cause
        ConnectionError('auth server unreachable')

        ```
    """

    def __init__(
        self,
        credentials: CredentialStore,
        refresh_callback: Callable[[], Mapping[str, str] | None] | None = None,
        *,
        observer: Callable[[RefreshEvent], None] | None = None,
    ) -> None:
        super().__init__(credentials, observer=observer)
        self._refresh_callback = refresh_callback

    def ensure_fresh_token(
        self,
        signal: AuthFailureSignal | None = None,
        *,
        timeout: float | None = None,
    ) -> RefreshOutcome:
        """Refresh the token, or wait for the refresh already in progress.

        Args:
            signal: Optional authorization failure that triggered the call.
            timeout: Optional maximum seconds a follower waits for the
                outcome. A follower that times out receives a
                ``RefreshFailure`` wrapping ``RefreshTimeoutError``; the
                refresh itself keeps running.

        Returns:
            The outcome of the refresh cycle.
        """
        cycle, leader = self._join()
        if leader:
            self._lead(cycle, signal)
            return cycle.outcome
        outcome = cycle.wait(timeout)
        if outcome is None:
            return self._timed_out(cycle, timeout)
        return outcome

    def _lead(self, cycle: RefreshCycle, signal: AuthFailureSignal | None) -> None:
        start_time = self._start(cycle, signal)
        try:
            if self._refresh_callback is None:
                raise _missing_refresh_callback()
            result = self._refresh_callback()
        except Exception as exc:  # noqa: BLE001
            self._fail(cycle, exc, start_time)
        except BaseException as exc:
            self._fail(cycle, exc, start_time)
            raise
        else:
            self._succeed(cycle, result, start_time)


class AsyncRefreshCoordinator(_BaseRefreshCoordinator):
    r"""Single-flight token refresh coordinator for asyncio callers.

    The refresh callback runs in its own task, so the refresh keeps going
    even if the leader is cancelled or stops waiting because of its
    deadline. State transitions are protected by a thread lock, so one
    coordinator can be shared by event loops running in different threads.

    Args:
        credentials: The credential store updated by successful refreshes.
        refresh_callback: Coroutine function returning the new credential
            headers (or ``None``). It may raise any exception to signal a
            failure.
        observer: Optional callback receiving refresh lifecycle events.

    Example:
        ```pycon
        >>> import asyncio
        >>> from arefresh.coordinator import AsyncRefreshCoordinator
        >>> from arefresh.credentials import CredentialStore
        >>> async def refresh():
        ...     await asyncio.sleep(0.01)
        ...     return {"Authorization": "Bearer NEW"}
        ...
        >>> async def main():
        ...     coordinator = AsyncRefreshCoordinator(CredentialStore(), refresh)
        ...     outcomes = await asyncio.gather(
        ...         *(coordinator.ensure_fresh_token() for _ in range(3))
        ...     )
        ...     return coordinator.refresh_count, len({id(o) for o in outcomes})
        ...
        >>> asyncio.run(main())
        (1, 1)

        ```
    """

    def __init__(
        self,
        credentials: CredentialStore,
        refresh_callback: Callable[[], Awaitable[Mapping[str, str] | None]] | None = None,
        *,
        observer: Callable[[RefreshEvent], None] | None = None,
    ) -> None:
        super().__init__(credentials, observer=observer)
        self._refresh_callback = refresh_callback

    async def ensure_fresh_token(
        self,
        signal: AuthFailureSignal | None = None,
        *,
        timeout: float | None = None,
    ) -> RefreshOutcome:
        """Refresh the token, or wait for the refresh already in progress.

        Args:
            signal: Optional authorization failure that triggered the call.
            timeout: Optional maximum seconds to wait for the outcome. A
                caller that times out receives a ``RefreshFailure`` wrapping
                ``RefreshTimeoutError``; the refresh itself keeps running.

        Returns:
            The outcome of the refresh cycle.
        """
        cycle, leader = self._join()
        if leader:
            cycle.task = asyncio.ensure_future(self._lead(cycle, signal))
        outcome = await cycle.wait_async(timeout)
        if outcome is None:
            return self._timed_out(cycle, timeout)
        return outcome

    async def _lead(self, cycle: RefreshCycle, signal: AuthFailureSignal | None) -> None:
        start_time = self._start(cycle, signal)
        try:
            if self._refresh_callback is None:
                raise _missing_refresh_callback()
            result = await self._refresh_callback()
        except Exception as exc:  # noqa: BLE001
            self._fail(cycle, exc, start_time)
        except BaseException as exc:
            self._fail(cycle, exc, start_time)
            raise
        else:
            self._succeed(cycle, result, start_time)
