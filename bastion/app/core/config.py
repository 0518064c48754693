from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RATE_LIMIT_MESSAGE = "Too many attempts, please try again in 3 minutes."


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Settings are read once at startup and passed explicitly to the
    application factory.
    """

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 3000

    # Declared for deployments that export it; nothing connects to it.
    database_url: str = ""

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"
    logger_name: str = "bastion"

    # Rate limiting (fixed window per client address)
    rate_limit_window_seconds: float = 180.0
    rate_limit_max_requests: int = 100
    rate_limit_message: str = DEFAULT_RATE_LIMIT_MESSAGE
    rate_limit_max_entries: int = 10000

    # JSON body parsing
    max_body_size: int = 100 * 1024

    # Use the first X-Forwarded-For hop as the client address
    trust_proxy: bool = False

    @field_validator("rate_limit_max_requests", "rate_limit_max_entries")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit counts are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("rate_limit_window_seconds")
    @classmethod
    def validate_window_positive(cls, v: float) -> float:
        """Validate the rate limit window is positive."""
        if v <= 0:
            raise ValueError("rate_limit_window_seconds must be positive")
        return v

    @field_validator("max_body_size")
    @classmethod
    def validate_body_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_body_size must be at least 1 byte")
        return v

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("server_port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level and reject unknown names."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v!r}")
        return level

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
