from typing import Any

from pydantic import BaseModel, ConfigDict, StrictStr, field_validator


class TokenPair(BaseModel):
    """
    Access and refresh token returned by a successful token exchange.
    See https://datatracker.ietf.org/doc/html/rfc6749#section-5.1
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: StrictStr
    refresh_token: StrictStr

    def __repr__(self) -> str:
        return "TokenPair(access_token=..., refresh_token=...)"


class TokenErrorResponse(BaseModel):
    """
    See https://datatracker.ietf.org/doc/html/rfc6749#section-5.2
    """

    model_config = ConfigDict(extra="ignore")

    error: StrictStr
    error_description: str = ""

    @field_validator("error_description", mode="before")
    @classmethod
    def _stringify_description(cls, value: Any) -> str:
        # numbers and booleans are rendered, anything else counts as missing
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int | float):
            return str(value)
        return ""

    @property
    def message(self) -> str:
        if self.error_description:
            return f"{self.error}: {self.error_description}"
        return self.error


class StoredTokens(BaseModel):
    """Tokens as written to durable storage."""

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.access_token is None and self.refresh_token is None
