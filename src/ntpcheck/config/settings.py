from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Query defaults
    NTP_SERVER: str = "pool.ntp.org"
    NTP_PORT: int = 123
    NTP_TIMEOUT: float = 5.0  # seconds, applied to send and receive
    NTP_NO_DNS: bool = False  # skip reverse DNS of reference identifiers

    # Offset policy
    NTP_MAX_OFFSET_MS: Optional[float] = None
    NTP_OFFSET_ACTION: Literal["report", "fail", "silent"] = "report"

    # Fan-out
    MAX_WORKERS: int = 8

    LOG_LEVEL: str = "INFO"

    # API Settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
