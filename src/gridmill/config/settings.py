"""Pydantic settings for Gridmill configuration.

Values come from ``GRIDMILL_*`` environment variables first, then from the
YAML file at ``~/.gridmill/config.yaml``, then from the defaults below.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(".gridmill") / "config.yaml"


def config_file_path() -> Path:
    return Path.home() / CONFIG_FILE


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    """Mapping from the YAML config file.

    A missing, unreadable or malformed file, or one whose top level is not a
    mapping, contributes nothing.
    """
    path = path or config_file_path()
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except (yaml.YAMLError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


class CacheSettings(BaseModel):
    """Settings for the extraction result cache."""

    directory: Path = Field(default_factory=lambda: Path.home() / ".cache" / "gridmill")
    enabled: bool = True


class ServiceSettings(BaseModel):
    """Settings for the remote extraction service."""

    backend: Literal["llm", "http"] = "llm"
    url: str = "http://localhost:3000/api/extractor"
    timeout: float = 300.0


class LLMSettings(BaseModel):
    """Settings for in-process LLM extraction."""

    default_model: str = "gpt-4o-mini"
    temperature: float = 0.0
    max_tokens: int = 4096
    reasoning_effort: Literal["minimal", "low", "medium", "high"] = "minimal"
    verbosity: Literal["low", "medium", "high"] = "low"

    def model_config_params(self) -> dict[str, Any]:
        """Model tuning block sent alongside extraction requests."""
        return {
            "reasoning": {"effort": self.reasoning_effort},
            "text": {"verbosity": self.verbosity},
        }


class Settings(BaseSettings):
    """Main settings model for Gridmill."""

    model_config = SettingsConfigDict(
        env_prefix="GRIDMILL_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    cache: CacheSettings = Field(default_factory=CacheSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    # API keys (can be set via environment variables or config file)
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; environment variables win over them
        return env_settings, init_settings, file_secret_settings


@lru_cache
def get_settings() -> Settings:
    """Settings for this process, read once."""
    return Settings(**read_config_file())
