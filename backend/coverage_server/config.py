"""Server defaults via pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

from pydantic_settings import BaseSettings, SettingsConfigDict

# Repository root (this file lives at backend/coverage_server/config.py)
_REPO_DIR = Path(__file__).resolve().parent.parent.parent

# Directory containing the HTML shell and the built bundle
FRONTEND_DIR = _REPO_DIR / "frontend"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COVERAGE_SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Network
    address: str = "127.0.0.1"
    port: int = 0

    # Static files – a JSON array in the environment gives several prefixes
    prefix: Union[str, List[str]] = "/"
    root: str = "public"

    # Logging – unset means the server runs silently
    log_level: Optional[str] = None

    # Routing
    trust_proxy: bool = False
    ignore_trailing_slash: bool = True

    def defaults(self) -> dict:
        """Return the option mapping the server factory starts from."""
        return {
            "address": self.address,
            "logger": {"level": self.log_level} if self.log_level else False,
            "port": self.port,
            "prefix": self.prefix,
            "root": self.root,
            "trust_proxy": self.trust_proxy,
            "ignore_trailing_slash": self.ignore_trailing_slash,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
