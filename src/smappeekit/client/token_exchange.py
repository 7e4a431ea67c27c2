"""
OAuth2 token exchanges against the Smappee token endpoint.

Implements the resource owner password grant and the refresh token grant.
"""

import logging

import httpx
from pydantic import ValidationError

from smappeekit.client.errors import (
    InvalidCredentialsError,
    MalformedTokenResponseError,
    TokenExchangeFailedError,
    TokenTransportError,
)
from smappeekit.shared.auth import TokenErrorResponse, TokenPair

logger = logging.getLogger(__name__)

# The Smappee token endpoint has no dedicated error code for a bad username or
# password. These two responses are the ones known to mean exactly that; the
# substring match on the description is fragile and breaks if Smappee rewords it.
INVALID_REQUEST_ERROR = "invalid_request"
MISSING_PARAMETERS_MARKER = "Missing parameters:"
INVALID_USERNAME_OR_PASSWORD_ERROR = "invalid username or password"


def parse_token_response(content: bytes) -> TokenPair:
    """
    Classify a token endpoint response body.

    Raises InvalidCredentialsError, TokenExchangeFailedError or
    MalformedTokenResponseError when the body does not carry a token pair.
    """
    try:
        return TokenPair.model_validate_json(content)
    except ValidationError:
        pass

    try:
        error_response = TokenErrorResponse.model_validate_json(content)
    except ValidationError:
        raise MalformedTokenResponseError() from None

    error = error_response.error
    description = error_response.error_description

    if error == INVALID_REQUEST_ERROR and MISSING_PARAMETERS_MARKER in description:
        raise InvalidCredentialsError(description)
    if error == INVALID_USERNAME_OR_PASSWORD_ERROR:
        raise InvalidCredentialsError()

    raise TokenExchangeFailedError(error_response.message)


class TokenExchangeClient:
    """Performs the password and refresh token grants."""

    def __init__(self, http_client: httpx.AsyncClient, token_endpoint: str, client_id: str, client_secret: str):
        self.http_client = http_client
        self.token_endpoint = token_endpoint
        self.client_id = client_id
        self.client_secret = client_secret

    async def password_grant(self, username: str, password: str) -> TokenPair:
        """Exchange a username and password for a token pair."""
        # field order matters to the Smappee endpoint
        data = {
            "grant_type": "password",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "username": username,
            "password": password,
        }
        logger.debug("Requesting tokens with password grant")
        return await self._exchange(data)

    async def refresh_grant(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new token pair."""
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        logger.debug("Requesting tokens with refresh token grant")
        return await self._exchange(data)

    def build_request(self, data: dict[str, str]) -> httpx.Request:
        return httpx.Request(
            "POST",
            self.token_endpoint,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded", "Accept": "application/json"},
        )

    async def _exchange(self, data: dict[str, str]) -> TokenPair:
        request = self.build_request(data)
        try:
            response = await self.http_client.send(request)
        except httpx.RequestError as e:
            logger.warning(f"Token request failed without a response: {e!r}")
            raise TokenTransportError(f"Token request failed: {e}", cause=e) from e

        content = await response.aread()
        logger.debug(f"Token endpoint answered HTTP {response.status_code}")
        return parse_token_response(content)
