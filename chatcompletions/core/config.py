"""Configuration management for the chat completions client."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"

_REPO_ROOT = Path(__file__).resolve().parents[2]
_PACKAGE_DIR = Path(__file__).resolve().parents[1]
# The repository .env wins; the package directory and the CWD are fallbacks.
_ENV_FILE_CANDIDATES: tuple[str, ...] = (
    str(_REPO_ROOT / ".env"),
    str(_PACKAGE_DIR / ".env"),
    ".env",
)


class ChatSettings(BaseSettings):
    """Centralised configuration derived from environment variables."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: str | None = Field(
        None,
        description="Log file path; unset or empty keeps output on stdout only",
    )

    openai_api_key: SecretStr | None = Field(
        None,
        description="API key used when a conversation does not pass one",
        validation_alias=AliasChoices("OPENAI_API_KEY", "CHATCOMPLETIONS_API_KEY"),
    )
    openai_api_url: AnyHttpUrl = Field(
        DEFAULT_API_URL,
        description="Chat completions endpoint",
        validation_alias=AliasChoices("OPENAI_API_URL", "CHATCOMPLETIONS_API_URL"),
    )

    retry_max_retries: int = Field(3, ge=0, description="Re-attempts after the first try")
    retry_delay_seconds: float = Field(1.0, ge=0, description="Fixed delay between attempts")

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_CANDIDATES,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> ChatSettings:
    """Return a cached ChatSettings instance."""

    return ChatSettings()


def resolved_env_file() -> str | None:
    """Return the first readable .env file from the candidate list."""

    for candidate in _ENV_FILE_CANDIDATES:
        path = Path(candidate).expanduser()
        if path.is_file():
            return str(path)
    return None


def env_file_candidates() -> tuple[str, ...]:
    """Expose configured env file search order for diagnostics."""

    return _ENV_FILE_CANDIDATES
