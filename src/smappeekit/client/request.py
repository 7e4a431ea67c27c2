"""
Authenticated request state machine.

Runs one API request to completion beneath the OAuth2 token lifecycle: sends
it while logged in, refreshes the access token when it is rejected, and asks
the credential provider to log in again when the refresh token is no good
either. The loop is bounded so that a server that keeps rejecting fresh
tokens cannot keep a request cycling forever.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from smappeekit.client.errors import (
    AccessTokenExpiredError,
    CredentialError,
    CredentialProviderMissingError,
    LoginCancelledError,
    NotLoggedInError,
    RetriesExhaustedError,
    TokenError,
    TokenTransportError,
)
from smappeekit.client.login_state import AccessTokenExpired, LoggedIn, LoggedOut, LoginState
from smappeekit.client.settings import MAX_ATTEMPTS
from smappeekit.client.token_exchange import TokenExchangeClient
from smappeekit.client.token_store import TokenStore
from smappeekit.client.transport import HttpTransport, RequestDescriptor

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    """Username and password, valid for a single login attempt."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str = Field(repr=False)


CredentialProvider = Callable[[], Awaitable[Credentials | None]]


class AuthenticatedRequest:
    """
    State machine driving a single request.

    Every dispatch cycle reads the shared login state from the store and
    either completes the request, fails it, or performs exactly one state
    transition. Token exchanges leaving a given state are single-flight: when
    several requests hit the same expired token, one refreshes and the rest
    wait for it and then reuse the new token.
    """

    def __init__(
        self,
        descriptor: RequestDescriptor,
        store: TokenStore,
        exchange: TokenExchangeClient,
        transport: HttpTransport,
        credential_provider: CredentialProvider | None = None,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self.descriptor = descriptor
        self.store = store
        self.exchange = exchange
        self.transport = transport
        self.credential_provider = credential_provider
        self.max_attempts = max_attempts
        self.attempts = 0
        self._logout_generation = store.logout_generation

    async def run(self) -> Any:
        """Run the request to completion and return its JSON payload."""
        while True:
            self.attempts += 1
            if self.attempts > self.max_attempts:
                logger.error(f"{self.descriptor.method} {self.descriptor.url}: state machine is running in circles")
                raise RetriesExhaustedError(self.max_attempts)

            self._check_not_logged_out()
            state = self.store.get()
            logger.debug(f"Attempt {self.attempts}: {state}")

            match state:
                case LoggedIn():
                    try:
                        return await self.transport.send(self.descriptor, state.access_token)
                    except AccessTokenExpiredError:
                        await self._transition(state, AccessTokenExpired(refresh_token=state.refresh_token))
                case LoggedOut():
                    await self._single_flight(state, self._log_in)
                case AccessTokenExpired():
                    await self._single_flight(state, self._refresh)

    async def _log_in(self, state: LoggedOut) -> None:
        if self.credential_provider is None:
            raise CredentialProviderMissingError()

        try:
            credentials = await self.credential_provider()
        except CredentialError:
            raise
        except Exception as e:
            raise LoginCancelledError(f"Could not obtain credentials: {e}") from e

        if credentials is None:
            raise LoginCancelledError()
        self._check_not_logged_out()

        # InvalidCredentialsError and the other token errors end the request
        tokens = await self.exchange.password_grant(credentials.username, credentials.password)
        await self._transition(state, LoggedIn.from_tokens(tokens))

    async def _refresh(self, state: AccessTokenExpired) -> None:
        try:
            tokens = await self.exchange.refresh_grant(state.refresh_token)
        except TokenTransportError:
            # no answer from the token endpoint says nothing about the refresh token
            raise
        except TokenError as e:
            logger.warning(f"Refreshing the access token failed, a new login is required: {e}")
            await self._transition(state, LoggedOut())
            return

        await self._transition(state, LoggedIn.from_tokens(tokens))

    async def _single_flight(self, state: LoginState, exchange: Callable[[Any], Awaitable[None]]) -> None:
        if (event := self.store.claim(state)) is not None:
            logger.debug(f"Waiting for the token exchange of a concurrent request ({state})")
            await event.wait()
            return

        try:
            await exchange(state)
        finally:
            self.store.release(state)

    async def _transition(self, expected: LoginState, new_state: LoginState) -> None:
        self._check_not_logged_out()
        await self.store.compare_and_set(expected, new_state)

    def _check_not_logged_out(self) -> None:
        if self.store.logout_generation != self._logout_generation:
            raise NotLoggedInError()
