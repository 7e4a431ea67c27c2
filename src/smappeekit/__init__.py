from smappeekit.client import (
    AccessTokenExpired,
    AuthenticatedRequest,
    CredentialProvider,
    Credentials,
    FileTokenPersistence,
    InMemoryTokenPersistence,
    LoggedIn,
    LoggedOut,
    LoginState,
    LoginStateType,
    RequestDescriptor,
    SmappeeController,
    SmappeeSettings,
    TokenPersistence,
    TokenStore,
)
from smappeekit.client.errors import (
    CredentialError,
    CredentialProviderMissingError,
    InvalidCredentialsError,
    InvalidPayloadError,
    LoginCancelledError,
    LoginStateTransitionError,
    MalformedTokenResponseError,
    NotLoggedInError,
    RequestError,
    RequestFailedError,
    RetriesExhaustedError,
    SmappeeError,
    TokenError,
    TokenExchangeFailedError,
    TokenTransportError,
    UnexpectedHTTPStatusError,
)

__all__ = [
    "AccessTokenExpired",
    "AuthenticatedRequest",
    "CredentialError",
    "CredentialProvider",
    "CredentialProviderMissingError",
    "Credentials",
    "FileTokenPersistence",
    "InMemoryTokenPersistence",
    "InvalidCredentialsError",
    "InvalidPayloadError",
    "LoggedIn",
    "LoggedOut",
    "LoginCancelledError",
    "LoginState",
    "LoginStateTransitionError",
    "LoginStateType",
    "MalformedTokenResponseError",
    "NotLoggedInError",
    "RequestDescriptor",
    "RequestError",
    "RequestFailedError",
    "RetriesExhaustedError",
    "SmappeeController",
    "SmappeeError",
    "SmappeeSettings",
    "TokenError",
    "TokenExchangeFailedError",
    "TokenPersistence",
    "TokenStore",
    "TokenTransportError",
    "UnexpectedHTTPStatusError",
]
