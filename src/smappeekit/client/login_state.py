"""
Login state of a Smappee session.

- LoggedIn: the client holds an access token and a refresh token. The access
  token may have expired without us knowing yet.
- AccessTokenExpired: the access token is known to be rejected, but the refresh
  token may still be valid.
- LoggedOut: no usable tokens; the user has to supply credentials again.
"""

from enum import Enum, auto
from typing import Literal

from pydantic import BaseModel, ConfigDict

from smappeekit.client.errors import LoginStateTransitionError
from smappeekit.shared.auth import StoredTokens, TokenPair


class LoginStateType(Enum):
    """Login states."""

    LOGGED_OUT = auto()
    LOGGED_IN = auto()
    ACCESS_TOKEN_EXPIRED = auto()


class LoggedOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    state_type: Literal[LoginStateType.LOGGED_OUT] = LoginStateType.LOGGED_OUT

    def __str__(self) -> str:
        return "Logged out"


class LoggedIn(BaseModel):
    model_config = ConfigDict(frozen=True)

    state_type: Literal[LoginStateType.LOGGED_IN] = LoginStateType.LOGGED_IN
    access_token: str
    refresh_token: str

    @classmethod
    def from_tokens(cls, tokens: TokenPair) -> "LoggedIn":
        return cls(access_token=tokens.access_token, refresh_token=tokens.refresh_token)

    def __str__(self) -> str:
        return "Logged in"

    def __repr__(self) -> str:
        return "LoggedIn(access_token=..., refresh_token=...)"


class AccessTokenExpired(BaseModel):
    model_config = ConfigDict(frozen=True)

    state_type: Literal[LoginStateType.ACCESS_TOKEN_EXPIRED] = LoginStateType.ACCESS_TOKEN_EXPIRED
    refresh_token: str

    def __str__(self) -> str:
        return "Access token expired"

    def __repr__(self) -> str:
        return "AccessTokenExpired(refresh_token=...)"


LoginState = LoggedOut | LoggedIn | AccessTokenExpired


VALID_TRANSITIONS: dict[LoginStateType, set[LoginStateType]] = {
    LoginStateType.LOGGED_OUT: {LoginStateType.LOGGED_IN},
    LoginStateType.LOGGED_IN: {LoginStateType.ACCESS_TOKEN_EXPIRED, LoginStateType.LOGGED_OUT},
    LoginStateType.ACCESS_TOKEN_EXPIRED: {LoginStateType.LOGGED_IN, LoginStateType.LOGGED_OUT},
}


def validate_transition(old: LoginState, new: LoginState) -> None:
    """Raise LoginStateTransitionError unless old -> new is a valid transition."""
    if new.state_type not in VALID_TRANSITIONS[old.state_type]:
        raise LoginStateTransitionError(f"Invalid transition from {old.state_type} to {new.state_type}")


def is_authenticated(state: LoginState) -> bool:
    """True when we have, or can plausibly get, an access token without user interaction."""
    return not isinstance(state, LoggedOut)


def login_state_from_tokens(tokens: StoredTokens) -> LoginState:
    """Reconstruct a login state from persisted tokens."""
    if tokens.access_token is not None and tokens.refresh_token is not None:
        return LoggedIn(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    if tokens.refresh_token is not None:
        return AccessTokenExpired(refresh_token=tokens.refresh_token)
    return LoggedOut()


def tokens_from_login_state(state: LoginState) -> StoredTokens:
    """The tokens to persist for a login state."""
    match state:
        case LoggedIn():
            return StoredTokens(access_token=state.access_token, refresh_token=state.refresh_token)
        case AccessTokenExpired():
            return StoredTokens(refresh_token=state.refresh_token)
        case _:
            return StoredTokens()
