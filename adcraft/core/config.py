"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from adcraft.constants import HOUR_MS


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3020, ge=1024, le=65535)
    debug: bool = Field(default=False)
    workers: int = Field(default=1, ge=1, le=8)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Key/value store
    store_backend: Literal["sqlite", "memory"] = Field(default="sqlite")
    store_name: str = Field(default="adcraft", min_length=1)
    database_url: str = Field(default="sqlite+aiosqlite:///./data/adcraft.db")
    database_echo: bool = Field(default=False)

    # Result cache
    cache_ttl_hours: float = Field(default=24.0, gt=0)

    # Performance accounting
    api_cost_per_call: float = Field(default=0.003, ge=0)  # USD per external AI call
    metrics_retention_days: int = Field(default=30, ge=1)

    # Background maintenance
    maintenance_enabled: bool = Field(default=True)
    cache_sweep_interval: int = Field(default=3600, ge=1)      # seconds
    metrics_sweep_interval: int = Field(default=86400, ge=1)   # seconds

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite") and ":///" in v:
            db_path = v.split("///")[1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def cache_ttl_ms(self) -> int:
        """Default cache TTL in epoch-millisecond units."""
        return int(self.cache_ttl_hours * HOUR_MS)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
