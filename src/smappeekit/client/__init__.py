from smappeekit.client.controller import SmappeeController
from smappeekit.client.login_state import AccessTokenExpired, LoggedIn, LoggedOut, LoginState, LoginStateType
from smappeekit.client.request import AuthenticatedRequest, CredentialProvider, Credentials
from smappeekit.client.settings import SmappeeSettings
from smappeekit.client.token_storage import FileTokenPersistence, InMemoryTokenPersistence, TokenPersistence
from smappeekit.client.token_store import TokenStore
from smappeekit.client.transport import RequestDescriptor

__all__ = [
    "AccessTokenExpired",
    "AuthenticatedRequest",
    "CredentialProvider",
    "Credentials",
    "FileTokenPersistence",
    "InMemoryTokenPersistence",
    "LoggedIn",
    "LoggedOut",
    "LoginState",
    "LoginStateType",
    "RequestDescriptor",
    "SmappeeController",
    "SmappeeSettings",
    "TokenPersistence",
    "TokenStore",
]
