# /guided_flows/config/settings.py

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Deployment
    environment: str = "production"
    api_version: str = "v1"
    log_level: str = "INFO"

    # Redis (flow session persistence)
    redis_url: str = "redis://localhost:6379"
    persistence_enabled: bool = True
    session_ttl_seconds: int = Field(default=60 * 60 * 24, gt=0)

    # Execution steps
    action_timeout_seconds: float = Field(default=30.0, gt=0)
    max_chained_executions: int = Field(default=10, ge=1)

    # ---------------- Validators ---------------- #

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL '{v}'")
        return level

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
