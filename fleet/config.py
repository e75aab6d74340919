"""Fleet orchestrator configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Orchestrator settings loaded from environment variables."""

    # Container control API (hub fronting every node agent)
    hub_url: str = "http://localhost:8080/api"
    api_token: str = ""  # Bearer credential sent to the control API

    # Inbound auth for the orchestrator HTTP API (empty disables)
    operator_secret: str = ""

    # HTTP API bind address
    host: str = "0.0.0.0"
    port: int = 8090

    # Control API transport (seconds)
    http_timeout: float = 30.0
    max_retries: int = 2
    retry_backoff_base: float = 0.5
    retry_backoff_max: float = 5.0

    # Migration naming
    migration_suffix: str = "-migrated-"

    # Result presentation
    container_id_short_len: int = 12

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # text or json

    class Config:
        env_prefix = "FLEET_"


settings = Settings()
