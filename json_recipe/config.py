"""Application configuration."""

import logging
import tempfile

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``JSON_RECIPE_*`` environment variables or ``.env``.

    Only the UI layer reads these; the engine modules take explicit arguments.
    """

    model_config = SettingsConfigDict(
        env_prefix="JSON_RECIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "JSON Recipe Transformer"
    debug: bool = False
    log_level: str = Field(default="INFO", description="Root log level when debug is off")

    preview_limit: int = Field(default=3, ge=1, description="Rows shown in previews")
    key_sample_size: int = Field(default=50, ge=1, description="Records sampled for key discovery")
    export_dir: str = Field(default_factory=tempfile.gettempdir)
    default_root_type: str = Field(default="object", pattern="^(object|array)$")


def configure_logging(config: "Settings") -> None:
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


settings = Settings()
