r"""Asynchronous context manager client with single-flight token refresh.

This module provides an async context manager-based client for making
HTTP requests against one API. The AsyncApiClient owns the credential
headers of the API, refreshes them once when many concurrent requests
find the access token expired, and returns every outcome as an
``ApiResult`` value.
"""

from __future__ import annotations

__all__ = ["AsyncApiClient"]

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from arefresh.coordinator import AsyncRefreshCoordinator
from arefresh.core.config import ClientConfig
from arefresh.credentials import CredentialStore
from arefresh.exceptions import HttpRequestError
from arefresh.pipeline import AsyncRequestPipeline
from arefresh.utils.forms import FormDataMethod, build_form
from arefresh.utils.response import (
    process_response,
    result_from_error,
    result_from_file_error,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping
    from types import TracebackType
    from typing import Self

    from arefresh.result import ApiResult
    from arefresh.utils.forms import FilePath

logger: logging.Logger = logging.getLogger(__name__)


class AsyncApiClient:
    r"""Asynchronous context manager for API calls with token refresh.

    When a response carries the token-expired status, the client calls
    ``refresh_token`` (only once for all concurrent requests), merges the
    returned headers into its credentials and resends each failed request
    once with the new credentials.

    Args:
        config: Optional ClientConfig instance. If ``None``, a default
            ClientConfig is used.
        refresh_token: Optional coroutine function returning the new
            credential headers, e.g. ``{"Authorization": "Bearer <token>"}``.
            If ``None``, ``handle_token_expired`` is used, which subclasses
            may override.
        client: Optional ``httpx.AsyncClient`` to send requests with. It is
            not closed by this client. If ``None``, a client is created on
            entering the context and closed on exit.
        transport: Optional transport for the created ``httpx.AsyncClient``.
        default_headers: Optional coroutine function returning extra default
            headers, e.g. read from secure storage. It is awaited once, on
            the first entry into the context, and its result is merged
            into the credentials on top of the configured headers.

    Example:
        ```pycon
        >>> import asyncio
        >>> from arefresh import AsyncApiClient
        >>> from arefresh.core import ClientConfig
        >>> async def refresh_token():
        ...     return {"Authorization": "Bearer NEW"}
        ...
        >>> async def main():  # doctest: +SKIP
        ...     config = ClientConfig(base_url="https://api.example.com")
        ...     async with AsyncApiClient(config=config, refresh_token=refresh_token) as client:
        ...         result = await client.get("/users/1")
        ...     if result.is_success:
        ...         print(result.data)
        ...     else:
        ...         print(result.message)
        ...
        >>> asyncio.run(main())  # doctest: +SKIP

        ```
    """

    def __init__(
        self,
        *,
        config: ClientConfig | None = None,
        refresh_token: Callable[[], Awaitable[Mapping[str, str] | None]] | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        default_headers: Callable[[], Awaitable[Mapping[str, str] | None]] | None = None,
    ) -> None:
        self._config = config if config is not None else ClientConfig()
        self._credentials = CredentialStore(self._config.resolve_headers())
        self._coordinator = AsyncRefreshCoordinator(
            self._credentials,
            refresh_token if refresh_token is not None else self.handle_token_expired,
            observer=self._config.observer,
        )
        self._default_headers = default_headers
        self._transport = transport
        self._external_client = client
        self._client: httpx.AsyncClient | None = None
        self._pipeline: AsyncRequestPipeline | None = None

    async def __aenter__(self) -> Self:
        """Enter the async context manager and create the underlying
        httpx client if none was provided.

        Returns:
            The AsyncApiClient instance for making requests.
        """
        if self._default_headers is not None:
            resolved = await self._default_headers()
            self._default_headers = None
            if resolved:
                logger.debug(f"Applying asynchronous default headers: {sorted(resolved)}")
                self._credentials.update(resolved)
        if self._external_client is not None:
            self._client = self._external_client
        else:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                transport=self._transport,
            )
        self._pipeline = AsyncRequestPipeline(
            self._client,
            self._coordinator,
            token_expired_code=self._config.token_expired_code,
            refresh_timeout=self._config.refresh_timeout,
            observer=self._config.observer,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the async context manager and close the underlying httpx
        client if it was created by this client.

        Args:
            exc_type: Exception type if an exception occurred.
            exc_val: Exception value if an exception occurred.
            exc_tb: Exception traceback if an exception occurred.
        """
        if self._client is not None and self._client is not self._external_client:
            await self._client.aclose()
        self._client = None
        self._pipeline = None

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def credentials(self) -> CredentialStore:
        """The credential headers sent with every request."""
        return self._credentials

    @property
    def coordinator(self) -> AsyncRefreshCoordinator:
        return self._coordinator

    async def handle_token_expired(self) -> Mapping[str, str] | None:
        """Return new credential headers when no ``refresh_token`` callback
        was given.

        Override this method in subclasses to implement the refresh.

        Raises:
            RuntimeError: Always, in the default implementation.
        """
        msg = "No refresh callback is configured to renew the expired token"
        raise RuntimeError(msg)

    def _ensure_client(self) -> tuple[httpx.AsyncClient, AsyncRequestPipeline]:
        """Ensure the client is available for use.

        Raises:
            RuntimeError: If the client is used outside of a context manager.
        """
        if self._client is None or self._pipeline is None:
            msg = "AsyncApiClient must be used within an async context manager (async with statement)"
            raise RuntimeError(msg)
        return self._client, self._pipeline

    def _request_headers(self, headers: Mapping[str, str] | None) -> httpx.Headers:
        merged = self._credentials.snapshot()
        if headers:
            merged.update(headers)
        return merged

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        files: Any = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> httpx.Response:
        r"""Send an HTTP request through the token refresh pipeline.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, etc.).
            path: Path relative to the base URL, or an absolute URL.
            json: Optional body sent as JSON.
            data: Optional form fields.
            files: Optional multipart files, in any format accepted by httpx.
            query: Optional query parameters.
            headers: Optional per-call headers. They take precedence over
                the client credentials for the first attempt only.
            timeout: Optional timeout overriding the configured one.

        Returns:
            The final ``httpx.Response``.

        Raises:
            RuntimeError: If called outside of a context manager.
            HttpRequestError: If the request fails in the transport, the
                token refresh fails or the retry after a refresh fails.
        """
        client, pipeline = self._ensure_client()
        request = client.build_request(
            method,
            path,
            json=json,
            data=data,
            files=files,
            params=query,
            headers=self._request_headers(headers),
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
        return await pipeline.send(request)

    async def call(
        self,
        request: Callable[[], Awaitable[httpx.Response]],
        decoder: Callable[[Any], Any] | None = None,
    ) -> ApiResult[Any]:
        r"""Run a request and convert its outcome into an ``ApiResult``.

        Args:
            request: Coroutine function sending the request.
            decoder: Optional function converting the parsed body.

        Returns:
            The decoded data, or a failure.
        """
        try:
            response = await request()
        except HttpRequestError as exc:
            return result_from_error(
                exc,
                global_error_message=self._config.global_error_message,
                global_network_error_message=self._config.global_network_error_message,
            )
        return process_response(
            response, decoder, global_error_message=self._config.global_error_message
        )

    async def get(
        self,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        decoder: Callable[[Any], Any] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> ApiResult[Any]:
        r"""Send an HTTP GET request.

        Args:
            path: Path relative to the base URL, or an absolute URL.
            query: Optional query parameters.
            headers: Optional per-call headers.
            decoder: Optional function converting the parsed body.
            timeout: Optional timeout overriding the configured one.

        Returns:
            The decoded data, or a failure.
        """
        return await self.call(
            lambda: self.request("GET", path, query=query, headers=headers, timeout=timeout),
            decoder,
        )

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        decoder: Callable[[Any], Any] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> ApiResult[Any]:
        r"""Send an HTTP POST request with a JSON body.

        Args:
            path: Path relative to the base URL, or an absolute URL.
            body: Optional body sent as JSON.
            query: Optional query parameters.
            headers: Optional per-call headers.
            decoder: Optional function converting the parsed body.
            timeout: Optional timeout overriding the configured one.

        Returns:
            The decoded data, or a failure.
        """
        return await self.call(
            lambda: self.request(
                "POST", path, json=body, query=query, headers=headers, timeout=timeout
            ),
            decoder,
        )

    async def put(
        self,
        path: str,
        body: Any = None,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        decoder: Callable[[Any], Any] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> ApiResult[Any]:
        r"""Send an HTTP PUT request with a JSON body.

        Args:
            path: Path relative to the base URL, or an absolute URL.
            body: Optional body sent as JSON.
            query: Optional query parameters.
            headers: Optional per-call headers.
            decoder: Optional function converting the parsed body.
            timeout: Optional timeout overriding the configured one.

        Returns:
            The decoded data, or a failure.
        """
        return await self.call(
            lambda: self.request(
                "PUT", path, json=body, query=query, headers=headers, timeout=timeout
            ),
            decoder,
        )

    async def delete(
        self,
        path: str,
        body: Any = None,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        decoder: Callable[[Any], Any] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> ApiResult[Any]:
        r"""Send an HTTP DELETE request, optionally with a JSON body.

        Args:
            path: Path relative to the base URL, or an absolute URL.
            body: Optional body sent as JSON.
            query: Optional query parameters.
            headers: Optional per-call headers.
            decoder: Optional function converting the parsed body.
            timeout: Optional timeout overriding the configured one.

        Returns:
            The decoded data, or a failure.
        """
        return await self.call(
            lambda: self.request(
                "DELETE", path, json=body, query=query, headers=headers, timeout=timeout
            ),
            decoder,
        )

    async def send_form_data(
        self,
        path: str,
        *,
        files: Mapping[str, Iterable[FilePath | None]] | None = None,
        single_files: Iterable[FilePath | None] | None = None,
        single_field_name: str = "image",
        body: Mapping[str, Any] | None = None,
        method: FormDataMethod = FormDataMethod.POST,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        decoder: Callable[[Any], Any] | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> ApiResult[Any]:
        r"""Submit files and form fields as a multipart form.

        Args:
            path: Path relative to the base URL, or an absolute URL.
            files: Mapping of field names to lists of file paths.
            single_files: List of file paths sent under ``single_field_name``.
            single_field_name: Field name used for ``single_files``.
            body: Plain form fields.
            method: Whether to submit with POST or PUT.
            query: Optional query parameters.
            headers: Optional per-call headers.
            decoder: Optional function converting the parsed body.
            timeout: Optional timeout overriding the configured one.

        Returns:
            The decoded data, or a failure. A file that cannot be read
            gives a ``FailureKind.FILE`` failure and no request is sent.

        Example:
            ```pycon
            >>> async def upload(client):  # doctest: +SKIP
            ...     return await client.send_form_data(
            ...         "/upload",
            ...         single_files=["avatar.png"],
            ...         single_field_name="avatar",
            ...         files={"gallery": ["g1.jpg", "g2.jpg"]},
            ...         body={"description": "Full upload"},
            ...     )
            ...

            ```
        """
        try:
            data, parts = await asyncio.to_thread(
                build_form,
                files=files,
                single_files=single_files,
                single_field_name=single_field_name,
                body=body,
            )
        except OSError as exc:
            return result_from_file_error(
                exc, global_error_message=self._config.global_error_message
            )
        return await self.call(
            lambda: self.request(
                method.value,
                path,
                data=data,
                files=parts or None,
                query=query,
                headers=headers,
                timeout=timeout,
            ),
            decoder,
        )
