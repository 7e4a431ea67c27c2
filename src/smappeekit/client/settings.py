from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://app1pub.smappee.net/dev/v1"
DEFAULT_TOKEN_ENDPOINT = f"{DEFAULT_API_BASE_URL}/oauth2/token"

MAX_ATTEMPTS = 10


class SmappeeSettings(BaseSettings):
    """Settings for the Smappee client, read from SMAPPEE_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="SMAPPEE_")

    # OAuth client registration
    client_id: str = ""
    client_secret: str = ""

    # Endpoints
    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT
    api_base_url: str = DEFAULT_API_BASE_URL

    # Token persistence
    save_tokens: bool = True
    token_file: Path = Field(
        default_factory=lambda: Path.home() / ".smappeekit" / "tokens.json",
        description="JSON file holding the access and refresh token between runs",
    )

    # Request behaviour
    max_attempts: int = Field(MAX_ATTEMPTS, ge=1, description="State machine dispatch cycles per request")
    timeout: float = Field(30.0, gt=0, description="HTTP timeout in seconds for API and token requests")
