# config.py: settings loaded from env / .env (REPORTLY_ prefix, "__" for nested sections)

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    url: str = "sqlite:///reportly.db"
    echo: bool = False


class StorageSettings(BaseModel):
    blob_dir: Path = Field(default=Path("storage_data/blobs"))


class UserSettings(BaseModel):
    # auth is out of scope; the app runs as this user
    email: str = "demo@user"
    name: str = "Demo User"
    plan_tier: Literal["free", "professional", "enterprise"] = "free"


class LimitSettings(BaseModel):
    free_monthly_reports: int = Field(default=10, ge=0)
    free_scripts: int = Field(default=5, ge=0)


class ReportSettings(BaseModel):
    default_theme: str = "TableStyleMedium2"


class Settings(BaseSettings):
    """Top-level settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="REPORTLY_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: str = "Reportly"
    log_level: str = "INFO"
    dark_mode: bool = False

    database: DatabaseSettings = DatabaseSettings()
    storage: StorageSettings = StorageSettings()
    user: UserSettings = UserSettings()
    limits: LimitSettings = LimitSettings()
    report: ReportSettings = ReportSettings()


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
