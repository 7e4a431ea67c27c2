"""
Entry point for talking to the Smappee API.

The controller owns the shared login state of a session. Every API call runs
through its own AuthenticatedRequest, so callers never deal with tokens:

    async with SmappeeController(settings, credential_provider=ask_user) as controller:
        locations = await controller.get(f"{settings.api_base_url}/servicelocation")
"""

import logging
from types import TracebackType
from typing import Any

import httpx

from smappeekit.client.login_state import LoggedIn, LoggedOut, LoginState
from smappeekit.client.request import AuthenticatedRequest, CredentialProvider
from smappeekit.client.settings import SmappeeSettings
from smappeekit.client.token_exchange import TokenExchangeClient
from smappeekit.client.token_storage import FileTokenPersistence, TokenPersistence
from smappeekit.client.token_store import LoginStateObserver, TokenStore
from smappeekit.client.transport import HttpTransport, RequestDescriptor
from smappeekit.shared._httpx_utils import create_smappee_http_client

logger = logging.getLogger(__name__)


class SmappeeController:
    """Client for the Smappee API with transparent login and token refresh."""

    def __init__(
        self,
        settings: SmappeeSettings | None = None,
        credential_provider: CredentialProvider | None = None,
        persistence: TokenPersistence | None = None,
        login_state: LoginState | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Args:
            settings: Client configuration; read from the environment when omitted.
            credential_provider: Called whenever a login is needed. May take as
                long as it likes, e.g. while the user fills in a login form.
            persistence: Where tokens survive restarts. Defaults to the token
                file from the settings when save_tokens is enabled.
            login_state: Start from this state instead of the persisted one.
            http_client: Shared client for API and token requests. A client
                created here is closed by aclose().
        """
        self.settings = settings if settings is not None else SmappeeSettings()
        self.credential_provider = credential_provider

        if persistence is None and self.settings.save_tokens:
            persistence = FileTokenPersistence(self.settings.token_file)
        self.store = TokenStore(persistence=persistence, state=login_state)

        self._owns_http_client = http_client is None
        self.http_client = http_client or create_smappee_http_client(timeout=httpx.Timeout(self.settings.timeout))
        self.exchange = TokenExchangeClient(
            self.http_client,
            token_endpoint=self.settings.token_endpoint,
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
        )
        self.transport = HttpTransport(self.http_client)

    async def __aenter__(self) -> "SmappeeController":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def initialize(self) -> None:
        """Restore persisted tokens."""
        await self.store.initialize()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    @property
    def login_state(self) -> LoginState:
        return self.store.get()

    def is_logged_in(self) -> bool:
        """
        True if the state is LoggedIn or AccessTokenExpired. In both cases we
        assume that we have, or can get, a valid access token.
        """
        return self.store.is_authenticated()

    async def log_out(self) -> None:
        """Log out and forget the stored tokens."""
        await self.store.log_out()

    async def login(self, username: str, password: str) -> None:
        """
        Log in with the given credentials right away, without a pending request.

        Raises InvalidCredentialsError for a bad username or password.
        """
        await self.initialize()
        tokens = await self.exchange.password_grant(username, password)
        if not isinstance(self.store.get(), LoggedOut):
            await self.store.set(LoggedOut())
        await self.store.set(LoggedIn.from_tokens(tokens))

    def add_login_state_observer(self, observer: LoginStateObserver) -> None:
        """Call observer(old_state, new_state) on every login state change."""
        self.store.add_observer(observer)

    def remove_login_state_observer(self, observer: LoginStateObserver) -> None:
        self.store.remove_observer(observer)

    async def send(self, descriptor: RequestDescriptor) -> Any:
        """Run an API request and return its JSON payload."""
        await self.initialize()
        request = AuthenticatedRequest(
            descriptor,
            store=self.store,
            exchange=self.exchange,
            transport=self.transport,
            credential_provider=self.credential_provider,
            max_attempts=self.settings.max_attempts,
        )
        return await request.run()

    async def get(self, url: str) -> Any:
        return await self.send(RequestDescriptor.get(url))

    async def post_json(self, url: str, payload: Any = None) -> Any:
        return await self.send(RequestDescriptor.post_json(url, payload))
