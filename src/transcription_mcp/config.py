"""Server configuration loaded from the environment."""

import logging
import sys

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import APIConfiguration


class ServerConfig(BaseSettings):
    """Settings read from ``TRANSCRIPTION_*`` variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSCRIPTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    supabase_url: str
    supabase_key: SecretStr
    timeout: float = Field(default=30.0, gt=0)
    rate_limit: float = Field(default=10.0, gt=0, description="Initial requests per second")
    rate_limit_min: float = Field(default=1.0, gt=0)
    rate_limit_max: float = Field(default=50.0, gt=0)
    log_level: str = "INFO"

    def get_api_config(self) -> APIConfiguration:
        """Build the store client configuration."""
        return APIConfiguration(
            base_url=self.supabase_url,
            api_key=self.supabase_key,
            timeout=self.timeout,
        )


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging on stderr (stdout belongs to the stdio transport)."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)
