"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file).

Absent upstream credentials are not an error: without the YandexGPT key/folder the translator runs
in offline stub mode, and without `DATABASE_URL` the data adapter answers with an explicit
"not configured" result.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from finance_ai.translator.llm_client import DEFAULT_API_BASE, LLMConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    db_timezone: str = Field(default="UTC", alias="DB_TIMEZONE")
    data_source: Literal["db", "spreadsheet"] = Field(default="db", alias="DATA_SOURCE")
    spreadsheet_dir: str = Field(default="data-files", alias="SPREADSHEET_DIR")

    yandex_gpt_api_key: str | None = Field(default=None, alias="YANDEX_GPT_API_KEY")
    yandex_gpt_folder_id: str | None = Field(default=None, alias="YANDEX_GPT_FOLDER_ID")
    yandex_gpt_model_uri: str | None = Field(default=None, alias="YANDEX_GPT_MODEL_URI")
    llm_api_base: str = Field(default=DEFAULT_API_BASE, alias="LLM_API_BASE")
    llm_timeout_s: float = Field(default=30.0, alias="LLM_TIMEOUT_S")

    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    @field_validator("db_timezone")
    @classmethod
    def validate_db_timezone_is_utc(cls, value: str) -> str:
        """Validate that the DB timezone is locked to UTC.

        Date filters are pushed down as calendar days; any other session timezone would shift
        the boundaries of `gte`/`lte` comparisons on timestamp columns.
        """

        if value.upper() != "UTC":
            raise ValueError("DB_TIMEZONE must be UTC")
        return "UTC"

    @field_validator("llm_timeout_s")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("LLM_TIMEOUT_S must be positive")
        return value

    def llm_config(self) -> LLMConfig | None:
        """Build the completion-service config, or `None` when credentials are absent.

        `None` switches the translator into its offline stub mode.
        """

        if not self.yandex_gpt_api_key or not self.yandex_gpt_folder_id:
            return None

        model_uri = self.yandex_gpt_model_uri or f"gpt://{self.yandex_gpt_folder_id}/yandexgpt/latest"
        return LLMConfig(
            api_key=self.yandex_gpt_api_key,
            folder_id=self.yandex_gpt_folder_id,
            model_uri=model_uri,
            api_base=self.llm_api_base,
            timeout_s=self.llm_timeout_s,
        )


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
