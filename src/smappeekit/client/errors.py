"""
Exceptions raised by the Smappee client.

Everything a caller can receive derives from SmappeeError. AccessTokenExpiredError
is the one exception that never leaves the request state machine: it only ever
drives a refresh.
"""


class SmappeeError(Exception):
    """Base exception for Smappee client errors."""

    pass


class RequestError(SmappeeError):
    """Base exception for failures of an authenticated API request."""

    pass


class RequestFailedError(RequestError):
    """Raised when the request never produced a usable HTTP response."""

    def __init__(self, detail: str, cause: BaseException | None = None):
        super().__init__(detail)
        self.detail = detail
        self.cause = cause


class UnexpectedHTTPStatusError(RequestError):
    """Raised for any HTTP status other than 200 and 401."""

    def __init__(self, status_code: int, body: bytes = b""):
        super().__init__(f"Unexpected HTTP status response {status_code}")
        self.status_code = status_code
        self.body = body


class InvalidPayloadError(RequestError):
    """Raised when a 200 response carries a body that is not valid JSON."""

    pass


class AccessTokenExpiredError(SmappeeError):
    """Raised by the transport when the access token was rejected."""

    def __init__(self, detail: str = "Access token expired"):
        super().__init__(detail)


class TokenError(SmappeeError):
    """Base exception for token exchange failures."""

    pass


class InvalidCredentialsError(TokenError):
    """Raised when the token endpoint rejected the username/password combination."""

    def __init__(self, detail: str = "Invalid username or password"):
        super().__init__(detail)


class TokenExchangeFailedError(TokenError):
    """Raised when the token endpoint reported an error other than bad credentials."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedTokenResponseError(TokenError):
    """Raised when the token response has neither tokens nor an error."""

    def __init__(self, detail: str = "Could not parse token response"):
        super().__init__(detail)


class TokenTransportError(TokenError):
    """Raised when the token request never produced a usable HTTP response."""

    def __init__(self, detail: str, cause: BaseException | None = None):
        super().__init__(detail)
        self.cause = cause


class CredentialError(SmappeeError):
    """Base exception for failures to obtain login credentials."""

    pass


class CredentialProviderMissingError(CredentialError):
    """Raised when a login is required but no credential provider is registered."""

    def __init__(self, detail: str = "No credential provider registered"):
        super().__init__(detail)


class LoginCancelledError(CredentialError):
    """Raised when the credential provider did not deliver credentials."""

    def __init__(self, detail: str = "User cancelled login"):
        super().__init__(detail)


class LoginStateTransitionError(SmappeeError):
    """Raised when an invalid login state transition is attempted."""

    pass


class RetriesExhaustedError(SmappeeError):
    """Raised when a request cycles through login states more often than allowed."""

    def __init__(self, attempts: int):
        super().__init__(f"State machine is running in circles (gave up after {attempts} attempts)")
        self.attempts = attempts


class NotLoggedInError(SmappeeError):
    """Raised when the session was logged out while a request was in flight."""

    def __init__(self, detail: str = "Logged out while the request was in flight"):
        super().__init__(detail)
