from collections.abc import Callable
from urllib.parse import parse_qsl

import httpx
import pytest

from smappeekit.client.login_state import LoggedIn
from smappeekit.client.request import AuthenticatedRequest, CredentialProvider, Credentials
from smappeekit.client.settings import SmappeeSettings
from smappeekit.client.token_exchange import TokenExchangeClient
from smappeekit.client.token_storage import InMemoryTokenPersistence
from smappeekit.client.token_store import TokenStore
from smappeekit.client.transport import HttpTransport, RequestDescriptor

TOKEN_URL = "https://smappee.test/dev/v1/oauth2/token"
SERVICE_LOCATION_URL = "https://smappee.test/dev/v1/servicelocation"


class FakeSmappeeServer:
    """Mock transport handler standing in for the token endpoint and the API."""

    def __init__(self):
        self.token_requests: list[dict[str, str]] = []
        self.api_requests: list[httpx.Request] = []
        self.token_handler: Callable[[httpx.Request, dict[str, str]], httpx.Response] = self.issue_tokens
        self.api_handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"serviceLocations": [{"serviceLocationId": 1, "name": "Home"}]}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            form = dict(parse_qsl(request.content.decode()))
            self.token_requests.append(form)
            return self.token_handler(request, form)
        self.api_requests.append(request)
        return self.api_handler(request)

    def issue_tokens(self, request: httpx.Request, form: dict[str, str]) -> httpx.Response:
        n = len(self.token_requests)
        return httpx.Response(200, json={"access_token": f"access-{n}", "refresh_token": f"refresh-{n}"})

    @property
    def grant_types(self) -> list[str]:
        return [form["grant_type"] for form in self.token_requests]

    @property
    def bearer_tokens(self) -> list[str]:
        return [request.headers["Authorization"].removeprefix("Bearer ") for request in self.api_requests]


@pytest.fixture
def server():
    return FakeSmappeeServer()


@pytest.fixture
def http_client(server):
    return httpx.AsyncClient(transport=httpx.MockTransport(server))


@pytest.fixture
def settings():
    return SmappeeSettings(
        client_id="test-client",
        client_secret="test-secret",
        token_endpoint=TOKEN_URL,
        api_base_url="https://smappee.test/dev/v1",
        save_tokens=False,
    )


@pytest.fixture
def exchange(http_client, settings):
    return TokenExchangeClient(
        http_client,
        token_endpoint=settings.token_endpoint,
        client_id=settings.client_id,
        client_secret=settings.client_secret,
    )


@pytest.fixture
def transport(http_client):
    return HttpTransport(http_client)


@pytest.fixture
def persistence():
    return InMemoryTokenPersistence()


@pytest.fixture
def logged_in_store(persistence):
    return TokenStore(persistence=persistence, state=LoggedIn(access_token="valid-access", refresh_token="valid-refresh"))


@pytest.fixture
def credential_provider():
    calls: list[Credentials] = []

    async def provide() -> Credentials:
        credentials = Credentials(username="u", password="p")
        calls.append(credentials)
        return credentials

    provide.calls = calls  # type: ignore[attr-defined]
    return provide


@pytest.fixture
def make_request(exchange, transport):
    def make(
        store: TokenStore,
        credential_provider: CredentialProvider | None = None,
        descriptor: RequestDescriptor | None = None,
        max_attempts: int = 10,
    ) -> AuthenticatedRequest:
        return AuthenticatedRequest(
            descriptor or RequestDescriptor.get(SERVICE_LOCATION_URL),
            store=store,
            exchange=exchange,
            transport=transport,
            credential_provider=credential_provider,
            max_attempts=max_attempts,
        )

    return make
