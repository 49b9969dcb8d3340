"""Environment-driven configuration with Pydantic v2."""

from typing import Dict, List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import CacheCategory


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1", env="HOST")
    port: int = Field(default=3001, env="PORT", ge=1024, le=65535)
    debug: bool = Field(default=False, env="DEBUG")
    workers: int = Field(default=1, env="WORKERS", ge=1, le=8)
    environment: str = Field(default="development", env="ENVIRONMENT")
    server_name: str = Field(default="MCP Nextcloud Calendar", env="SERVER_NAME")
    server_version: str = Field(default="1.0.0", env="SERVER_VERSION")

    # Security
    cors_origins: List[str] = Field(default=["*"], env="CORS_ORIGINS")

    # Transport
    keep_alive_interval: float = Field(default=30.0, env="KEEP_ALIVE_INTERVAL", gt=0)

    # Session Store
    session_ttl: int = Field(default=3600, env="SESSION_TTL", ge=60)
    session_sweep_interval: int = Field(default=300, env="SESSION_SWEEP_INTERVAL", ge=0)
    actor_idle_ttl: int = Field(default=300, env="ACTOR_IDLE_TTL", ge=0)

    # Resource Cache
    cache_default_ttl: int = Field(default=300, env="CACHE_DEFAULT_TTL", ge=1)
    cache_preferences_ttl: int = Field(default=86400, env="CACHE_PREFERENCES_TTL", ge=1)

    # Persistence substrate
    storage_backend: Literal["sqlite", "redis", "memory"] = Field(default="sqlite", env="STORAGE_BACKEND")
    database_url: str = Field(default="sqlite+aiosqlite:///./data/mcp_sessions.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")

    # Calendar backend (external collaborator)
    nextcloud_base_url: Optional[str] = Field(default=None, env="NEXTCLOUD_BASE_URL")
    nextcloud_username: Optional[str] = Field(default=None, env="NEXTCLOUD_USERNAME")
    nextcloud_app_token: Optional[str] = Field(default=None, env="NEXTCLOUD_APP_TOKEN")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def session_ttl_ms(self) -> int:
        return self.session_ttl * 1000

    @property
    def actor_idle_ttl_ms(self) -> int:
        return self.actor_idle_ttl * 1000

    def cache_ttls_ms(self) -> Dict[str, int]:
        """TTL per cache category, in milliseconds."""
        return {
            CacheCategory.CALENDARS.value: self.cache_default_ttl * 1000,
            CacheCategory.EVENTS.value: self.cache_default_ttl * 1000,
            CacheCategory.PREFERENCES.value: self.cache_preferences_ttl * 1000,
        }

    def backend_config_status(self) -> Dict[str, object]:
        """Report which calendar backend credentials are missing.

        The server always runs; calendar operations need all three values.
        """
        required = {
            "NEXTCLOUD_BASE_URL": self.nextcloud_base_url,
            "NEXTCLOUD_USERNAME": self.nextcloud_username,
            "NEXTCLOUD_APP_TOKEN": self.nextcloud_app_token,
        }
        missing = [name for name, value in required.items() if not value]
        return {
            "serverReady": True,
            "calendarReady": not missing,
            "missing": missing,
        }

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
