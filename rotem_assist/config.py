"""
Application settings.

Values come from the environment (prefix ``ROTEM_``) or a ``.env`` file in the
working directory, e.g.::

    ROTEM_PROTOCOL=WERFEN_A5_2018
    ROTEM_LOG_LEVEL=DEBUG
"""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROTEM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "ROTEM Assist API"
    app_version: str = "1.0.0"

    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Threshold table the API engine is built with
    rotem_protocol: str = Field(default="PRO_T3_V3", validation_alias="ROTEM_PROTOCOL")
    default_weight_kg: float = Field(default=70.0, gt=0)

    cors_origins: List[str] = ["*"]


settings = Settings()
