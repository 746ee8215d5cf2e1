"""Unit tests for the synchronous ApiClient."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, NoReturn
from unittest.mock import Mock

import httpx
import pytest

from arefresh import ApiClient, FailureKind, FormDataMethod
from arefresh.core import ClientConfig
from arefresh.exceptions import RefreshFailedError
from arefresh.result import ErrorMessages
from tests.helpers import BASE_URL, RequestRecorder, expiring_handler

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def _config(**kwargs) -> ClientConfig:
    headers = {"Accept": "application/json", "Authorization": "Bearer OLD"}
    return ClientConfig(base_url=BASE_URL, headers=headers, **kwargs)


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    refresh_token: Callable[[], dict[str, str] | None] | None = None,
    **kwargs,
) -> ApiClient:
    return ApiClient(
        config=_config(**kwargs),
        refresh_token=refresh_token,
        transport=httpx.MockTransport(handler),
    )


def _new_token() -> dict[str, str]:
    return {"Authorization": "Bearer NEW"}


###############################
#     Tests for ApiClient     #
###############################


def test_client_outside_context_manager() -> None:
    client = ApiClient()
    with pytest.raises(RuntimeError, match=r"ApiClient must be used within a context manager"):
        client.request("GET", "/me")


def test_client_default_config() -> None:
    client = ApiClient()
    assert client.config == ClientConfig()
    assert client.credentials.get("Accept") == "application/json"
    assert client.coordinator.credentials is client.credentials


def test_client_custom_headers_keep_default_accept() -> None:
    recorder = RequestRecorder(lambda request: httpx.Response(200, json={}))
    config = ClientConfig(base_url=BASE_URL, headers={"Authorization": "Bearer OLD"})
    with ApiClient(config=config, transport=httpx.MockTransport(recorder)) as client:
        client.get("/me")
    request = recorder.requests[0]
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Authorization"] == "Bearer OLD"


def test_client_custom_accept_replaces_default() -> None:
    recorder = RequestRecorder(lambda request: httpx.Response(200, text="ok"))
    config = ClientConfig(base_url=BASE_URL, headers={"accept": "text/plain"})
    with ApiClient(config=config, transport=httpx.MockTransport(recorder)) as client:
        client.get("/status")
    assert recorder.requests[0].headers.get_list("Accept") == ["text/plain"]


def test_client_closes_created_client() -> None:
    client = _client(expiring_handler())
    with client:
        http_client = client._client
    assert http_client.is_closed
    assert client._client is None


def test_client_does_not_close_external_client(token_server) -> None:
    http_client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(token_server))
    with ApiClient(config=_config(), refresh_token=_new_token, client=http_client) as client:
        result = client.get("/me")
    assert result.is_success
    assert not http_client.is_closed
    http_client.close()


def test_client_get_success() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": 1, "name": "Ada"})

    with _client(handler) as client:
        result = client.get("/users/1")
    assert result.is_success
    assert result.data == {"id": 1, "name": "Ada"}
    assert result.status_code == 200


def test_client_get_with_decoder() -> None:
    with _client(lambda request: httpx.Response(200, json={"id": 1, "name": "Ada"})) as client:
        result = client.get("/users/1", decoder=lambda user: user["name"])
    assert result.data == "Ada"


def test_client_get_query_and_headers() -> None:
    recorder = RequestRecorder(lambda request: httpx.Response(200, json=[]))
    with _client(recorder) as client:
        client.get("/users", query={"page": 2}, headers={"X-Trace": "abc"})
    request = recorder.requests[0]
    assert str(request.url) == f"{BASE_URL}/users?page=2"
    assert request.headers["X-Trace"] == "abc"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Authorization"] == "Bearer OLD"


@pytest.mark.parametrize(
    ("method_name", "http_method"), [("post", "POST"), ("put", "PUT"), ("delete", "DELETE")]
)
def test_client_methods_send_json_body(method_name: str, http_method: str, token_server) -> None:
    with _client(token_server, refresh_token=_new_token) as client:
        result = getattr(client, method_name)("/items", {"name": "item"})
    assert result.is_success
    assert result.data["method"] == http_method
    assert json.loads(result.data["body"]) == {"name": "item"}


def test_client_refreshes_expired_token(token_server) -> None:
    refresh = Mock(side_effect=_new_token)
    recorder = RequestRecorder(token_server)
    with _client(recorder, refresh_token=refresh) as client:
        first = client.get("/a")
        second = client.get("/b")
    assert first.is_success
    assert second.is_success
    assert recorder.authorizations == ["Bearer OLD", "Bearer NEW", "Bearer NEW"]
    refresh.assert_called_once()
    assert client.credentials.get("Authorization") == "Bearer NEW"


def test_client_per_call_header_replaced_on_retry(token_server) -> None:
    recorder = RequestRecorder(token_server)
    with _client(recorder, refresh_token=_new_token) as client:
        result = client.get("/me", headers={"Authorization": "Bearer STALE"})
    assert result.is_success
    assert recorder.authorizations == ["Bearer STALE", "Bearer NEW"]


def test_client_refresh_failed() -> None:
    def refresh() -> NoReturn:
        msg = "invalid refresh token"
        raise ValueError(msg)

    with _client(expiring_handler(), refresh_token=refresh) as client:
        result = client.get("/me")
    assert result.is_failure
    assert result.kind == FailureKind.REFRESH_FAILED
    assert result.message == "Token refresh failed: invalid refresh token"
    assert result.status_code == 401
    assert isinstance(result.error, RefreshFailedError)


def test_client_without_refresh_callback() -> None:
    with _client(expiring_handler()) as client:
        result = client.get("/me")
    assert result.kind == FailureKind.REFRESH_FAILED
    assert isinstance(result.error.cause, RuntimeError)


def test_client_handle_token_expired_override(token_server) -> None:
    class MyClient(ApiClient):
        def handle_token_expired(self) -> dict[str, str]:
            return {"Authorization": "Bearer NEW"}

    with MyClient(config=_config(), transport=httpx.MockTransport(token_server)) as client:
        result = client.get("/me")
    assert result.is_success


def test_client_retry_failed() -> None:
    with _client(lambda request: httpx.Response(401), refresh_token=_new_token) as client:
        result = client.get("/me")
    assert result.kind == FailureKind.RETRY_FAILED
    assert result.status_code == 401
    assert result.message == "Request failed after token refresh: Unauthorized"


def test_client_http_error_with_server_message() -> None:
    handler = lambda request: httpx.Response(404, json={"message": "User not found"})  # noqa: E731
    with _client(handler) as client:
        result = client.get("/users/9")
    assert result.kind == FailureKind.HTTP
    assert result.status_code == 404
    assert result.message == "User not found"


def test_client_http_error_global_message() -> None:
    handler = lambda request: httpx.Response(500, json={"message": "boom"})  # noqa: E731
    with _client(handler, global_error_message="Something went wrong") as client:
        result = client.get("/me")
    assert result.message == "Something went wrong"


def test_client_decode_failure() -> None:
    with _client(lambda request: httpx.Response(200, json={"id": 1})) as client:
        result = client.get("/me", decoder=lambda body: body["name"])
    assert result.kind == FailureKind.DECODE
    assert result.message == "Failed to decode response: 'name'"
    assert result.status_code == 200


def test_client_timeout() -> None:
    def handler(request: httpx.Request) -> NoReturn:
        msg = "read timed out"
        raise httpx.ReadTimeout(msg, request=request)

    with _client(handler) as client:
        result = client.get("/me")
    assert result.kind == FailureKind.TIMEOUT
    assert result.message == ErrorMessages.TIMEOUT


def test_client_no_connection() -> None:
    def handler(request: httpx.Request) -> NoReturn:
        msg = "connection refused"
        raise httpx.ConnectError(msg, request=request)

    with _client(handler) as client:
        result = client.get("/me")
    assert result.kind == FailureKind.NO_CONNECTION
    assert result.message == ErrorMessages.GLOBAL_NETWORK_ERROR


def test_client_no_connection_custom_message() -> None:
    def handler(request: httpx.Request) -> NoReturn:
        msg = "connection refused"
        raise httpx.ConnectError(msg, request=request)

    with _client(handler, global_network_error_message="You are offline") as client:
        result = client.get("/me")
    assert result.message == "You are offline"


def test_client_send_form_data(tmp_path: Path) -> None:
    avatar = tmp_path / "avatar.png"
    avatar.write_bytes(b"\x89PNG")
    recorder = RequestRecorder(lambda request: httpx.Response(201, json={"id": 7}))
    with _client(recorder) as client:
        result = client.send_form_data(
            "/upload",
            single_files=[avatar, None],
            body={"title": "Gallery", "public": True},
        )
    assert result.is_success
    assert result.data == {"id": 7}
    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="image"; filename="avatar.png"' in request.content
    assert b"Gallery" in request.content
    assert b"true" in request.content


def test_client_send_form_data_put_retried(tmp_path: Path, token_server) -> None:
    document = tmp_path / "report.pdf"
    document.write_bytes(b"%PDF-1.7")
    recorder = RequestRecorder(token_server)
    with _client(recorder, refresh_token=_new_token) as client:
        result = client.send_form_data(
            "/documents", files={"docs": [document]}, method=FormDataMethod.PUT
        )
    assert result.is_success
    first, retry = recorder.requests
    assert retry.method == "PUT"
    assert retry.content == first.content
    assert b'name="docs"; filename="report.pdf"' in retry.content
    assert b"application/pdf" in retry.content


def test_client_send_form_data_missing_file(tmp_path: Path) -> None:
    recorder = RequestRecorder(lambda request: httpx.Response(201, json={"id": 7}))
    missing = tmp_path / "missing.png"
    with _client(recorder) as client:
        result = client.send_form_data("/upload", single_files=[missing])
    assert result.is_failure
    assert result.kind == FailureKind.FILE
    assert isinstance(result.error, FileNotFoundError)
    assert "missing.png" in result.message
    assert recorder.requests == []


def test_client_send_form_data_missing_file_global_message(tmp_path: Path) -> None:
    recorder = RequestRecorder(lambda request: httpx.Response(201, json={"id": 7}))
    with _client(recorder, global_error_message="Something went wrong") as client:
        result = client.send_form_data("/upload", files={"docs": [tmp_path / "nope.pdf"]})
    assert result.kind == FailureKind.FILE
    assert result.message == "Something went wrong"
    assert recorder.requests == []


def test_client_request_raises_errors() -> None:
    with (
        _client(expiring_handler()) as client,
        pytest.raises(RefreshFailedError, match=r"token refresh failed"),
    ):
        client.request("GET", "/me")
