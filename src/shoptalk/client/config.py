"""Client-side settings for screens talking to the messaging API.

Kept apart from the server settings so that client code never needs the
server's signing secret or database URL.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Client settings loaded from environment variables."""

    api_base_url: str = Field(default="http://localhost:8000", alias="API_BASE_URL")
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    client_timeout_seconds: float = Field(default=10.0, alias="CLIENT_TIMEOUT_SECONDS")
    badge_poll_interval_seconds: float = Field(
        default=30.0,
        alias="BADGE_POLL_INTERVAL_SECONDS",
    )
    badge_display_cap: int = Field(default=99, alias="BADGE_DISPLAY_CAP")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


client_settings = ClientSettings()
