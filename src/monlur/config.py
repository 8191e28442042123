"""Configuration management for Mønlur."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MONLUR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"

    # Service boundary
    api_key: str | None = None
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    max_body_bytes: int = 50 * 1024 * 1024

    # Workspaces
    temp_dir: Path = Path("./temp")
    retention_seconds: float = 600
    sweep_interval_seconds: float = 300

    # Pipeline
    max_concurrent_jobs: int = 4
    engine: str = "builtin"

    # External engine
    engine_command: list[str] = Field(default_factory=lambda: ["lua", "cli.lua"])
    engine_workdir: Path | None = None
    engine_wrapper: str | None = None
    engine_timeout_seconds: float = 300
    engine_env: dict[str, str] = Field(default_factory=dict)
    engine_presets: list[str] = Field(
        default_factory=lambda: ["Weak", "Medium", "Strong", "Minify"]
    )

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
