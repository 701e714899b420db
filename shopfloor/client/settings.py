from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Session client configuration, read from SHOPFLOOR_* variables"""

    api_url: str = "http://localhost:8000"
    socket_url: str = "ws://localhost:8000/ws"
    preferences_path: str = "~/.shopfloor/preferences.json"

    # Real-time channel
    reconnect_attempts: int = 5
    reconnect_delay: float = 1.0  # seconds, fixed between attempts
    ack_timeout: float = 10.0

    # De-duplication of inbound chat messages
    dedup_capacity: int = 5000

    model_config = SettingsConfigDict(
        env_prefix="SHOPFLOOR_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
