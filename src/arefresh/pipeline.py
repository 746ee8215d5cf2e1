r"""Request pipelines that recover from expired access tokens.

A pipeline sends a request through the transport. When the response
carries the token-expired status, it asks the refresh coordinator for
fresh credentials and resends the request exactly once, rebuilt from a
snapshot taken before the first attempt with the new credential headers
merged in. Any other response is returned untouched.
"""

from __future__ import annotations

__all__ = ["AsyncRequestPipeline", "RequestPipeline"]

import logging
from typing import TYPE_CHECKING

import httpx

from arefresh.core.config import DEFAULT_TOKEN_EXPIRED_CODE
from arefresh.core.validation import validate_refresh_timeout, validate_status_code
from arefresh.events import RequestRetried, RetryFailed, invoke_observer
from arefresh.exceptions import RefreshFailedError, RetryFailedError, TransportError
from arefresh.models import AuthFailureSignal, RefreshFailure, RetryableRequest
from arefresh.utils.exceptions import to_transport_error

if TYPE_CHECKING:
    from collections.abc import Callable

    from arefresh.coordinator import AsyncRefreshCoordinator, RefreshCoordinator
    from arefresh.events import RefreshEvent
    from arefresh.models import RefreshSuccess

logger: logging.Logger = logging.getLogger(__name__)


class _BasePipeline:
    """Logic shared by the blocking and asynchronous pipelines.

    Args:
        token_expired_code: Status code meaning that the token expired.
        refresh_timeout: Optional maximum seconds to wait for a refresh.
        observer: Optional callback receiving retry events.
    """

    def __init__(
        self,
        *,
        token_expired_code: int = DEFAULT_TOKEN_EXPIRED_CODE,
        refresh_timeout: float | None = None,
        observer: Callable[[RefreshEvent], None] | None = None,
    ) -> None:
        validate_status_code(token_expired_code)
        validate_refresh_timeout(refresh_timeout)
        self._token_expired_code = token_expired_code
        self._refresh_timeout = refresh_timeout
        self._observer = observer

    @property
    def token_expired_code(self) -> int:
        return self._token_expired_code

    def _is_token_expired(self, response: httpx.Response) -> bool:
        return response.status_code == self._token_expired_code

    def _signal(self, response: httpx.Response) -> AuthFailureSignal:
        signal = AuthFailureSignal.from_response(response)
        logger.debug(
            f"{signal.method} request to {signal.url} failed with status "
            f"{signal.status_code}, token refresh required"
        )
        return signal

    def _refresh_failed(
        self, signal: AuthFailureSignal, response: httpx.Response, outcome: RefreshFailure
    ) -> RefreshFailedError:
        logger.debug(
            f"{signal.method} request to {signal.url} not retried, token refresh failed: "
            f"{outcome.cause}"
        )
        error = RefreshFailedError(
            method=signal.method,
            url=signal.url,
            message=(
                f"{signal.method} request to {signal.url} failed with status "
                f"{signal.status_code} and the token refresh failed: {outcome.cause}"
            ),
            status_code=signal.status_code,
            response=response,
            cause=outcome.cause,
        )
        error.__cause__ = outcome.cause
        return error

    def _retry_response(
        self, signal: AuthFailureSignal, outcome: RefreshSuccess, response: httpx.Response
    ) -> httpx.Response:
        """Validate the response of the retry.

        Raises:
            RetryFailedError: If the retry was answered with the
                token-expired status again.
        """
        if self._is_token_expired(response):
            invoke_observer(
                self._observer,
                RetryFailed(cycle=outcome.cycle, signal=signal, status_code=response.status_code),
            )
            logger.debug(
                f"{signal.method} request to {signal.url} failed with status "
                f"{response.status_code} again after token refresh, giving up"
            )
            raise RetryFailedError(
                method=signal.method,
                url=signal.url,
                message=(
                    f"{signal.method} request to {signal.url} failed with status "
                    f"{response.status_code} after token refresh"
                ),
                status_code=response.status_code,
                response=response,
            )
        invoke_observer(
            self._observer,
            RequestRetried(cycle=outcome.cycle, signal=signal, status_code=response.status_code),
        )
        logger.debug(
            f"{signal.method} request to {signal.url} retried after token refresh "
            f"with status {response.status_code}"
        )
        return response

    def _retry_transport_failed(
        self, signal: AuthFailureSignal, outcome: RefreshSuccess, error: TransportError
    ) -> RetryFailedError:
        invoke_observer(
            self._observer, RetryFailed(cycle=outcome.cycle, signal=signal, error=error)
        )
        retry_error = RetryFailedError(
            method=signal.method,
            url=signal.url,
            message=f"{error.message} (retry after token refresh)",
            cause=error,
        )
        retry_error.__cause__ = error
        return retry_error


class RequestPipeline(_BasePipeline):
    r"""Blocking request pipeline with single-flight token refresh.

    Args:
        client: The ``httpx.Client`` used as transport.
        coordinator: The refresh coordinator of the client.
        token_expired_code: Status code meaning that the token expired.
        refresh_timeout: Optional maximum seconds to wait for a refresh
            started by another request.
        observer: Optional callback receiving retry events.

    Example:
        ```pycon
        >>> import httpx
        >>> from arefresh.coordinator import RefreshCoordinator
        >>> from arefresh.credentials import CredentialStore
        >>> from arefresh.pipeline import RequestPipeline
        >>> def handler(request):
        ...     if request.headers.get("Authorization") == "Bearer NEW":
        ...         return httpx.Response(200, json={"ok": True})
        ...     return httpx.Response(401)
        ...
        >>> store = CredentialStore()
        >>> coordinator = RefreshCoordinator(store, lambda: {"Authorization": "Bearer NEW"})
        >>> with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        ...     pipeline = RequestPipeline(client, coordinator)
        ...     response = pipeline.send(client.build_request("GET", "https://api.example.com/me"))
        ...
        >>> response.status_code
        200

        ```
    """

    def __init__(
        self,
        client: httpx.Client,
        coordinator: RefreshCoordinator,
        *,
        token_expired_code: int = DEFAULT_TOKEN_EXPIRED_CODE,
        refresh_timeout: float | None = None,
        observer: Callable[[RefreshEvent], None] | None = None,
    ) -> None:
        super().__init__(
            token_expired_code=token_expired_code,
            refresh_timeout=refresh_timeout,
            observer=observer,
        )
        self._client = client
        self._coordinator = coordinator

    def send(self, request: httpx.Request) -> httpx.Response:
        """Send a request, refreshing the token and retrying once if it
        expired.

        Args:
            request: The request to send.

        Returns:
            The response of the request, or of its retry after a refresh.

        Raises:
            TransportError: If the first attempt failed in the transport.
            RefreshFailedError: If the token expired and the refresh failed.
            RetryFailedError: If the retry after a successful refresh failed
                in the transport or with the token-expired status.
        """
        snapshot = RetryableRequest.from_request(request)
        response = self._execute(request)
        if not self._is_token_expired(response):
            return response

        signal = self._signal(response)
        outcome = self._coordinator.ensure_fresh_token(signal, timeout=self._refresh_timeout)
        if isinstance(outcome, RefreshFailure):
            raise self._refresh_failed(signal, response, outcome)

        response.close()
        retry_request = snapshot.rebuild(self._coordinator.credentials.snapshot())
        try:
            retry_response = self._execute(retry_request)
        except TransportError as error:
            raise self._retry_transport_failed(signal, outcome, error) from error
        return self._retry_response(signal, outcome, retry_response)

    def _execute(self, request: httpx.Request) -> httpx.Response:
        try:
            return self._client.send(request)
        except httpx.RequestError as exc:
            raise to_transport_error(exc, method=request.method, url=str(request.url)) from exc


class AsyncRequestPipeline(_BasePipeline):
    r"""Asynchronous request pipeline with single-flight token refresh.

    Args:
        client: The ``httpx.AsyncClient`` used as transport.
        coordinator: The refresh coordinator of the client.
        token_expired_code: Status code meaning that the token expired.
        refresh_timeout: Optional maximum seconds to wait for a refresh.
        observer: Optional callback receiving retry events.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        coordinator: AsyncRefreshCoordinator,
        *,
        token_expired_code: int = DEFAULT_TOKEN_EXPIRED_CODE,
        refresh_timeout: float | None = None,
        observer: Callable[[RefreshEvent], None] | None = None,
    ) -> None:
        super().__init__(
            token_expired_code=token_expired_code,
            refresh_timeout=refresh_timeout,
            observer=observer,
        )
        self._client = client
        self._coordinator = coordinator

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send a request, refreshing the token and retrying once if it
        expired.

        Args:
            request: The request to send.

        Returns:
            The response of the request, or of its retry after a refresh.

        Raises:
            TransportError: If the first attempt failed in the transport.
            RefreshFailedError: If the token expired and the refresh failed.
            RetryFailedError: If the retry after a successful refresh failed
                in the transport or with the token-expired status.
        """
        snapshot = await RetryableRequest.from_request_async(request)
        response = await self._execute(request)
        if not self._is_token_expired(response):
            return response

        signal = self._signal(response)
        outcome = await self._coordinator.ensure_fresh_token(
            signal, timeout=self._refresh_timeout
        )
        if isinstance(outcome, RefreshFailure):
            raise self._refresh_failed(signal, response, outcome)

        await response.aclose()
        retry_request = snapshot.rebuild(self._coordinator.credentials.snapshot())
        try:
            retry_response = await self._execute(retry_request)
        except TransportError as error:
            raise self._retry_transport_failed(signal, outcome, error) from error
        return self._retry_response(signal, outcome, retry_response)

    async def _execute(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._client.send(request)
        except httpx.RequestError as exc:
            raise to_transport_error(exc, method=request.method, url=str(request.url)) from exc
