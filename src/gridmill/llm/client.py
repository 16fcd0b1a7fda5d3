"""Structured-output completions through litellm."""

import logging
import os
import types
from dataclasses import dataclass
from typing import Any

from gridmill.config.settings import get_settings
from gridmill.exceptions import LLMError, LLMNotAvailableError

logger = logging.getLogger(__name__)

# Checked in order before the config file
API_KEY_ENV_VARS = ("GRIDMILL_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY")
MODEL_ENV_VAR = "GRIDMILL_MODEL"


@dataclass
class StructuredCompletion:
    """Raw JSON text of a schema-constrained completion, plus token usage."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


def _load_litellm() -> types.ModuleType:
    try:
        import litellm
    except ImportError as e:
        raise LLMNotAvailableError(
            "In-process extraction requires litellm",
            hint="pip install litellm, or set GRIDMILL_SERVICE__BACKEND=http",
        ) from e
    return litellm


def resolve_api_key() -> str | None:
    """API key from the environment, then from ~/.gridmill/config.yaml."""
    for var in API_KEY_ENV_VARS:
        if os.environ.get(var):
            return os.environ[var]
    settings = get_settings()
    return settings.openai_api_key or settings.anthropic_api_key


class LLMClient:
    """Sends schema-constrained completion requests to any litellm provider.

    The model name picks the provider (``gpt-4o-mini``,
    ``claude-sonnet-4-20250514``, ...); the API key is passed per call rather
    than through the process environment.
    """

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key or resolve_api_key()
        self.model = model or os.environ.get(MODEL_ENV_VAR) or get_settings().llm.default_model
        self._litellm: types.ModuleType | None = None

    def _backend(self) -> types.ModuleType:
        if self._litellm is None:
            litellm = _load_litellm()
            if not self.api_key:
                raise LLMNotAvailableError(f"No API key configured for model {self.model}")
            self._litellm = litellm
        return self._litellm

    def is_available(self) -> bool:
        """Whether litellm is installed and an API key is configured."""
        try:
            self._backend()
        except LLMNotAvailableError:
            return False
        return True

    def _request_kwargs(
        self,
        prompt: str,
        json_schema: dict[str, Any],
        system: str | None,
        schema_name: str,
        max_tokens: int | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        settings = get_settings().llm
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens or settings.max_tokens,
            "temperature": settings.temperature if temperature is None else temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "strict": True, "schema": json_schema},
            },
            # Providers without reasoning/verbosity knobs ignore them
            "drop_params": True,
            "api_key": self.api_key,
        }

    async def complete_json(
        self,
        prompt: str,
        json_schema: dict[str, Any],
        system: str | None = None,
        schema_name: str = "extraction_result",
        max_tokens: int | None = None,
        temperature: float | None = None,
        **params: Any,
    ) -> StructuredCompletion:
        """Request a completion constrained to a strict JSON schema.

        Extra keyword arguments (``reasoning_effort``, ``verbosity``) are
        forwarded to the provider.

        Raises:
            LLMNotAvailableError: If litellm or the API key is missing.
            LLMError: If the provider call fails.
        """
        litellm = self._backend()
        kwargs = self._request_kwargs(prompt, json_schema, system, schema_name, max_tokens, temperature)

        try:
            response = await litellm.acompletion(**kwargs, **params)
        except Exception as e:
            raise LLMError(f"Completion request to {self.model} failed", str(e)) from e

        usage = getattr(response, "usage", None)
        completion = StructuredCompletion(
            content=response.choices[0].message.content or "",
            model=response.model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        logger.debug(
            f"{completion.model}: {completion.input_tokens} prompt / "
            f"{completion.output_tokens} completion tokens"
        )
        return completion


_client: LLMClient | None = None


def get_client(api_key: str | None = None, model: str | None = None) -> LLMClient:
    """Shared client; passing an override replaces it."""
    global _client
    if _client is None or api_key or model:
        _client = LLMClient(api_key=api_key, model=model)
    return _client
