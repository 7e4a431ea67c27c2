"""
Bearer-authenticated HTTP transport for Smappee API requests.
"""

import json
import logging
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from smappeekit.client.errors import (
    AccessTokenExpiredError,
    InvalidPayloadError,
    RequestFailedError,
    UnexpectedHTTPStatusError,
)

logger = logging.getLogger(__name__)

# NSURLErrorUserCancelledAuthentication. Clients built on Apple's URL loading
# system report it when the server drops the session, which in practice means
# the access token expired.
CANCELLED_AUTHENTICATION_CODE = -1012

HTTPMethod = Literal["GET", "POST", "PUT", "DELETE"]


class RequestDescriptor(BaseModel):
    """An API request, independent of authentication."""

    model_config = ConfigDict(frozen=True)

    url: str
    method: HTTPMethod = "GET"
    body: bytes = b""
    headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def get(cls, url: str) -> "RequestDescriptor":
        return cls(url=url)

    @classmethod
    def post_json(cls, url: str, payload: Any = None) -> "RequestDescriptor":
        """POST a JSON body. Smappee expects "{}" rather than an empty body."""
        body = json.dumps({} if payload is None else payload, separators=(",", ":")).encode()
        return cls(url=url, method="POST", body=body, headers={"Content-Type": "application/json"})

    def to_request(self, access_token: str) -> httpx.Request:
        headers = {**self.headers, "Authorization": f"Bearer {access_token}"}
        return httpx.Request(self.method, self.url, content=self.body or None, headers=headers)


def is_cancelled_authentication(error: BaseException) -> bool:
    """Check the error and its causes for the cancelled-authentication code."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("errno", "code"):
            if getattr(current, attr, None) == CANCELLED_AUTHENTICATION_CODE:
                return True
        current = current.__cause__ or current.__context__
    return False


def parse_payload(content: bytes) -> Any:
    """
    Parse a 200 response body.

    Some Smappee endpoints answer with 0 bytes instead of an empty JSON
    object; that is a valid, empty payload.
    """
    if len(content) == 0:
        return {}
    try:
        return json.loads(content)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidPayloadError(f"Invalid JSON: {e}") from e


class HttpTransport:
    """Sends one request with a bearer token and classifies the outcome."""

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    async def send(self, descriptor: RequestDescriptor, access_token: str) -> Any:
        """
        Send the request and return the parsed JSON payload.

        Raises AccessTokenExpiredError when the token was rejected, and a
        RequestError subclass for every other failure.
        """
        request = descriptor.to_request(access_token)
        try:
            response = await self.http_client.send(request)
        except httpx.RequestError as e:
            if is_cancelled_authentication(e):
                logger.debug(f"Treating cancelled authentication as expired access token: {e!r}")
                raise AccessTokenExpiredError() from e
            logger.debug(f"{descriptor.method} {descriptor.url} failed: {e!r}")
            raise RequestFailedError(f"Request failed: {e}", cause=e) from e

        content = await response.aread()
        logger.debug(f"{descriptor.method} {descriptor.url} -> HTTP {response.status_code}")

        match response.status_code:
            case 200:
                return parse_payload(content)
            case 401:
                raise AccessTokenExpiredError()
            case status_code:
                raise UnexpectedHTTPStatusError(status_code, content)
