"""Application configuration handling."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError


class Settings(BaseSettings):
    """Process-wide settings read from the environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./gator.db"
    config_path: Path = Path.home() / ".gatorconfig.json"

    user_agent: str = "gator"
    fetch_timeout_seconds: float = 10.0
    browse_limit: int = 2


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


class UserConfig(BaseModel):
    """Per-user state persisted in the JSON config file."""

    db_url: Optional[str] = None
    current_user_name: Optional[str] = None

    @classmethod
    def read(cls, path: Path) -> "UserConfig":
        """Load the config file, returning an empty config if it does not exist."""

        path = Path(path).expanduser()
        if not path.exists():
            return cls()
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValidationError) as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc

    def write(self, path: Path) -> None:
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    def set_user(self, name: str, path: Path) -> None:
        self.current_user_name = name
        self.write(path)


def resolve_database_url(settings: Settings, user_config: Optional[UserConfig] = None) -> str:
    """The config file's ``db_url`` wins over the environment."""

    if user_config is None:
        user_config = UserConfig.read(settings.config_path)
    return user_config.db_url or settings.database_url
