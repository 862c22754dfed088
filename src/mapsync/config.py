"""Configuration management using Pydantic settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from ``MAPSYNC_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MAPSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Broker
    broker_host: str = "localhost"
    broker_port: int = 1883
    broker_transport: Literal["tcp", "websockets"] = "tcp"
    broker_ws_path: str = "/ws"
    broker_username: str = ""
    broker_password: str = ""
    keepalive: int = 60
    client_id_prefix: str = "mapsync"

    # Broadcast channel: clients publish to one address and listen on another
    subscribe_topic: str = "mapsync/topic/mapUpdate"
    publish_topic: str = "mapsync/app/mapUpdate"

    # Fixed delay between reconnect attempts, seconds.  No backoff.
    reconnect_delay: float = 5.0

    # Initial bulk load
    bulk_load_url: str = "http://localhost:8080/api/getMaps"
    bulk_load_timeout: float = 10.0

    log_level: str = "INFO"


settings = Settings()
