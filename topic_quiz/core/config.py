# topic_quiz/core/config.py

from functools import lru_cache
from typing import Tuple

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_FALLBACK_MODELS = "gpt-4o-mini,gpt-4.1-mini,gpt-3.5-turbo"


def split_csv(value: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str = ""
    openai_base_url: str | None = None  # unset means the official endpoint
    model: str = Field(DEFAULT_MODEL, validation_alias=AliasChoices("model", "QUIZ_MODEL"))
    fallback_models: str = Field(
        DEFAULT_FALLBACK_MODELS,
        validation_alias=AliasChoices("fallback_models", "QUIZ_FALLBACK_MODELS"),
    )

    # Rate limiting, per client address
    rate_limit: int = 12
    rate_window_seconds: int = 60

    # HTTP
    cors_origins: str = "*"
    host: str = "127.0.0.1"
    port: int = 3002
    port_attempts: int = Field(5, validation_alias=AliasChoices("port_attempts", "QUIZ_PORT_ATTEMPTS"))

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    @field_validator("openai_api_key", "model", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("openai_base_url", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        return v or None

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @property
    def cors_origin_list(self) -> Tuple[str, ...]:
        return split_csv(self.cors_origins) or ("*",)

    @property
    def candidate_models(self) -> Tuple[str, ...]:
        """Configured model first, then fallbacks, without repeats."""
        seen: list[str] = []
        for name in (self.model, *split_csv(self.fallback_models)):
            if name and name not in seen:
                seen.append(name)
        return tuple(seen)


@lru_cache
def get_settings() -> Settings:
    return Settings()
