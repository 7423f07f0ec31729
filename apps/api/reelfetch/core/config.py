"""Application configuration."""

from functools import lru_cache
from pathlib import Path
import sys

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    output_dir: Path = Path("downloads")
    ytdlp_command: list[str] = Field(default_factory=lambda: ["yt-dlp"])
    ytdlp_timeout_seconds: float = 45.0
    ytdlp_format: str = "best[ext=mp4]"
    user_agent: str = _DEFAULT_USER_AGENT
    referer: str = "https://www.instagram.com/"
    instaloader_command: list[str] = Field(default_factory=lambda: [sys.executable])
    instaloader_timeout_seconds: float = 30.0
    retention_seconds: float = 3600.0
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 3000

    model_config = SettingsConfigDict(env_prefix="REELFETCH_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
