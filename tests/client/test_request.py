"""
Tests for the authenticated request state machine.
"""

import anyio
import httpx
import pytest

from smappeekit.client.errors import (
    CredentialProviderMissingError,
    InvalidCredentialsError,
    InvalidPayloadError,
    LoginCancelledError,
    MalformedTokenResponseError,
    NotLoggedInError,
    RequestFailedError,
    RetriesExhaustedError,
    TokenTransportError,
    UnexpectedHTTPStatusError,
)
from smappeekit.client.login_state import AccessTokenExpired, LoggedIn, LoggedOut
from smappeekit.client.request import Credentials
from smappeekit.client.token_store import TokenStore
from smappeekit.client.transport import CANCELLED_AUTHENTICATION_CODE
from smappeekit.shared.auth import StoredTokens

pytestmark = pytest.mark.anyio


def unauthorized(request: httpx.Request) -> httpx.Response:
    return httpx.Response(401)


def accept_only(token: str):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers["Authorization"] == f"Bearer {token}":
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(401)

    return handler


async def test_retries_exhausted_when_server_always_rejects_token(make_request, logged_in_store, server):
    """A server that answers 401 even to freshly refreshed tokens must not keep the request cycling."""
    server.api_handler = unauthorized
    request = make_request(logged_in_store)

    with pytest.raises(RetriesExhaustedError) as exc_info:
        await request.run()

    assert exc_info.value.attempts == 10
    assert request.attempts == 11
    # exactly ten dispatch cycles: send, refresh, send, refresh, ...
    assert len(server.api_requests) == 5
    assert server.grant_types == ["refresh_token"] * 5
    assert len(server.api_requests) + len(server.token_requests) == 10


async def test_retry_budget_is_configurable(make_request, logged_in_store, server):
    server.api_handler = unauthorized

    with pytest.raises(RetriesExhaustedError):
        await make_request(logged_in_store, max_attempts=3).run()

    assert len(server.api_requests) == 2
    assert len(server.token_requests) == 1


async def test_reuses_access_token_across_requests(make_request, logged_in_store, server):
    first = await make_request(logged_in_store).run()
    second = await make_request(logged_in_store).run()

    assert first == second
    assert server.token_requests == []
    assert server.bearer_tokens == ["valid-access", "valid-access"]


async def test_single_refresh_after_expired_access_token(make_request, logged_in_store, server, persistence):
    server.api_handler = accept_only("access-1")

    payload = await make_request(logged_in_store).run()

    assert payload == {"ok": True}
    assert server.grant_types == ["refresh_token"]
    assert server.token_requests[0]["refresh_token"] == "valid-refresh"
    assert server.bearer_tokens == ["valid-access", "access-1"]
    assert logged_in_store.get() == LoggedIn(access_token="access-1", refresh_token="refresh-1")
    assert persistence.tokens == StoredTokens(access_token="access-1", refresh_token="refresh-1")


async def test_invalid_credentials_is_terminal(make_request, server, credential_provider):
    server.token_handler = lambda request, form: httpx.Response(
        400, json={"error": "invalid_request", "error_description": "Missing parameters: username"}
    )
    store = TokenStore(state=LoggedOut())

    with pytest.raises(InvalidCredentialsError):
        await make_request(store, credential_provider).run()

    assert len(credential_provider.calls) == 1
    assert server.grant_types == ["password"]
    assert server.api_requests == []
    assert store.get() == LoggedOut()


async def test_empty_body_completes_request(make_request, logged_in_store, server):
    server.api_handler = lambda request: httpx.Response(200, content=b"")

    assert await make_request(logged_in_store).run() == {}


async def test_cancelled_authentication_triggers_refresh(make_request, logged_in_store, server):
    def api_handler(request):
        if request.headers["Authorization"] == "Bearer valid-access":
            cause = OSError(CANCELLED_AUTHENTICATION_CODE, "The user canceled authentication")
            raise httpx.ReadError("cancelled", request=request) from cause
        return httpx.Response(200, json={"ok": True})

    server.api_handler = api_handler

    assert await make_request(logged_in_store).run() == {"ok": True}
    assert server.grant_types == ["refresh_token"]


async def test_logged_out_logs_in_and_completes(make_request, server, credential_provider):
    store = TokenStore(state=LoggedOut())
    transitions = []
    store.add_observer(lambda old, new: transitions.append(new))

    payload = await make_request(store, credential_provider).run()

    assert payload == {"serviceLocations": [{"serviceLocationId": 1, "name": "Home"}]}
    assert len(credential_provider.calls) == 1
    assert server.token_requests[0]["username"] == "u"
    assert server.token_requests[0]["password"] == "p"
    assert server.bearer_tokens == ["access-1"]
    assert transitions == [LoggedIn(access_token="access-1", refresh_token="refresh-1")]


async def test_failed_refresh_logs_in_again(make_request, server, credential_provider):
    def token_handler(request, form):
        if form["grant_type"] == "refresh_token":
            return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Refresh token expired"})
        return server.issue_tokens(request, form)

    server.token_handler = token_handler
    store = TokenStore(state=AccessTokenExpired(refresh_token="oldRefresh"))
    transitions = []
    store.add_observer(lambda old, new: transitions.append(new))

    await make_request(store, credential_provider).run()

    assert server.grant_types == ["refresh_token", "password"]
    assert server.token_requests[0]["refresh_token"] == "oldRefresh"
    assert len(credential_provider.calls) == 1
    assert transitions == [LoggedOut(), LoggedIn(access_token="access-2", refresh_token="refresh-2")]


async def test_unexpected_status_is_terminal(make_request, logged_in_store, server):
    server.api_handler = lambda request: httpx.Response(500)
    transitions = []
    logged_in_store.add_observer(lambda old, new: transitions.append(new))

    with pytest.raises(UnexpectedHTTPStatusError) as exc_info:
        await make_request(logged_in_store).run()

    assert exc_info.value.status_code == 500
    assert len(server.api_requests) == 1
    assert server.token_requests == []
    assert transitions == []


async def test_invalid_payload_is_terminal(make_request, logged_in_store, server):
    server.api_handler = lambda request: httpx.Response(200, content=b"invalidjson")

    with pytest.raises(InvalidPayloadError):
        await make_request(logged_in_store).run()

    assert len(server.api_requests) == 1


async def test_network_error_is_not_retried(make_request, logged_in_store, server):
    def api_handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    server.api_handler = api_handler

    with pytest.raises(RequestFailedError):
        await make_request(logged_in_store).run()

    assert len(server.api_requests) == 1
    assert logged_in_store.get() == LoggedIn(access_token="valid-access", refresh_token="valid-refresh")


async def test_missing_credential_provider(make_request, server):
    with pytest.raises(CredentialProviderMissingError):
        await make_request(TokenStore(state=LoggedOut())).run()

    assert server.token_requests == []


async def test_credential_provider_failure_cancels_login(make_request, server):
    async def cancelled() -> Credentials:
        raise RuntimeError("login form dismissed")

    with pytest.raises(LoginCancelledError) as exc_info:
        await make_request(TokenStore(state=LoggedOut()), cancelled).run()

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert server.token_requests == []


async def test_credential_provider_returning_none_cancels_login(make_request, server):
    async def dismissed() -> None:
        return None

    with pytest.raises(LoginCancelledError):
        await make_request(TokenStore(state=LoggedOut()), dismissed).run()


async def test_malformed_login_response_is_terminal(make_request, server, credential_provider):
    server.token_handler = lambda request, form: httpx.Response(200, json={"wrong_key": "testToken"})
    store = TokenStore(state=LoggedOut())

    with pytest.raises(MalformedTokenResponseError):
        await make_request(store, credential_provider).run()

    assert store.get() == LoggedOut()


async def test_unreachable_token_endpoint_keeps_refresh_token(make_request, server, credential_provider):
    def token_handler(request, form):
        raise httpx.ConnectError("connection refused", request=request)

    server.token_handler = token_handler
    store = TokenStore(state=AccessTokenExpired(refresh_token="r"))

    with pytest.raises(TokenTransportError):
        await make_request(store, credential_provider).run()

    assert store.get() == AccessTokenExpired(refresh_token="r")
    assert credential_provider.calls == []


async def test_log_out_while_prompting_stops_request(make_request, server):
    store = TokenStore(state=LoggedOut())
    prompted = anyio.Event()
    answer = anyio.Event()

    async def slow_user() -> Credentials:
        prompted.set()
        await answer.wait()
        return Credentials(username="u", password="p")

    result: dict[str, BaseException] = {}

    async def run_request():
        try:
            await make_request(store, slow_user).run()
        except NotLoggedInError as e:
            result["error"] = e

    async with anyio.create_task_group() as tg:
        tg.start_soon(run_request)
        await prompted.wait()
        await store.log_out()
        answer.set()

    assert isinstance(result["error"], NotLoggedInError)
    assert store.get() == LoggedOut()
    assert server.token_requests == []
