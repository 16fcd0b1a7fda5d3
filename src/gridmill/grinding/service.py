"""Extraction service backends.

The orchestrator sends one ``ExtractionRequest`` per batch and expects rows
of ``{documentId, data: {columnId: value}}`` back. A backend either posts
the request to a remote HTTP endpoint or runs the extraction in-process
through the LLM client.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import certifi
import httpx
from pydantic import BaseModel, Field, ValidationError

from gridmill.config.settings import get_settings
from gridmill.exceptions import ConfigError, LLMError, RemoteCallError
from gridmill.grinding.schema import CompiledSchema
from gridmill.grinding.types import Column, CustomType, Document
from gridmill.llm.client import LLMClient, get_client

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM = (
    "You are an advanced information extraction engine. You precisely extract "
    "data and output only valid JSON that matches the provided JSON schema."
)

EXTRACTION_PROMPT = """{instruction}

--- Document Start ---
{text}
--- Document End ---"""


@dataclass
class ExtractionRequest:
    """One batched extraction call."""

    documents: list[Document]
    columns: list[Column]
    custom_types: list[CustomType]
    schema: CompiledSchema
    model_config: dict[str, Any] | None = field(default=None)

    def to_payload(self) -> dict[str, Any]:
        """Wire form of the request."""
        payload: dict[str, Any] = {
            "documents": [d.to_dict() for d in self.documents],
            "columns": [c.to_dict() for c in self.columns],
            "customTypes": [t.to_dict() for t in self.custom_types],
        }
        if self.model_config:
            payload["modelConfig"] = self.model_config
        return payload


class ResultRow(BaseModel):
    """Extracted values for one document."""

    document_id: str = Field(alias="documentId")
    data: dict[str, Any] = Field(default_factory=dict)


class ExtractionResponse(BaseModel):
    """Response body of the extraction service."""

    results: list[ResultRow]

    @classmethod
    def parse(cls, body: str | bytes) -> ExtractionResponse:
        """Parse and validate a response body.

        Raises:
            RemoteCallError: If the body is not valid JSON or has the wrong shape.
        """
        try:
            return cls.model_validate_json(body)
        except ValidationError as e:
            raise RemoteCallError(
                "Malformed response from extraction service",
                details=str(e),
            ) from e


class ExtractionService(Protocol):
    """Anything that can run a batched extraction request."""

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse: ...


class HttpExtractionService:
    """Posts extraction requests to a remote HTTP endpoint."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the service.

        Args:
            url: Endpoint URL (defaults to settings).
            timeout: Request timeout in seconds (defaults to settings).
            client: Optional httpx client to reuse.
        """
        settings = get_settings().service
        self.url = url or settings.url
        self.timeout = timeout if timeout is not None else settings.timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, verify=certifi.where())

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        """Send the request and validate the response.

        Raises:
            RemoteCallError: On transport errors, non-2xx status, or malformed body.
        """
        should_close = self._client is None
        client = self._client or self._get_client()

        try:
            response = await client.post(self.url, json=request.to_payload())
            if response.is_error:
                raise RemoteCallError(
                    f"Extraction service returned HTTP {response.status_code}",
                    details=response.text[:500] or None,
                )
            return ExtractionResponse.parse(response.content)

        except httpx.RequestError as e:
            raise RemoteCallError(
                f"Request to extraction service failed: {e}",
                details=f"URL: {self.url}",
            ) from e
        finally:
            if should_close:
                await client.aclose()


class LLMExtractionService:
    """Runs extraction in-process, one structured completion per document."""

    def __init__(self, llm_client: LLMClient | None = None):
        """Initialize the service.

        Args:
            llm_client: LLM client to use.
        """
        self.llm_client = llm_client

    def _get_client(self) -> LLMClient:
        """Get or create LLM client."""
        if self.llm_client is None:
            self.llm_client = get_client()
        return self.llm_client

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        """Extract every requested column from every document.

        Raises:
            LLMError: If any completion fails; the batch fails as a whole.
        """
        client = self._get_client()
        params = _model_params(request.model_config)

        async def extract_document(doc: Document) -> ResultRow:
            response = await client.complete_json(
                prompt=EXTRACTION_PROMPT.format(instruction=request.schema.instruction, text=doc.text),
                json_schema=request.schema.json_schema,
                system=EXTRACTION_SYSTEM,
                **params,
            )
            try:
                data = json.loads(response.content or "{}")
            except json.JSONDecodeError:
                logger.warning(f"Non-JSON completion for document {doc.id}; returning an empty row")
                data = {}
            if not isinstance(data, dict):
                data = {}
            return ResultRow(documentId=doc.id, data=data)

        try:
            rows = await asyncio.gather(*(extract_document(doc) for doc in request.documents))
        except LLMError:
            raise
        except Exception as e:
            raise LLMError(f"Extraction failed: {e}", str(e)) from e

        return ExtractionResponse(results=list(rows))


def _model_params(model_config: dict[str, Any] | None) -> dict[str, Any]:
    """Translate a modelConfig block into completion parameters."""
    if not model_config:
        return {}
    params: dict[str, Any] = {}
    if effort := model_config.get("reasoning", {}).get("effort"):
        params["reasoning_effort"] = effort
    if verbosity := model_config.get("text", {}).get("verbosity"):
        params["verbosity"] = verbosity
    return params


def get_service(backend: str | None = None) -> ExtractionService:
    """Build the configured extraction service.

    Args:
        backend: ``"llm"`` or ``"http"`` (defaults to settings).
    """
    backend = backend or get_settings().service.backend
    if backend == "http":
        return HttpExtractionService()
    if backend == "llm":
        return LLMExtractionService()
    raise ConfigError(f"Unknown extraction backend: {backend}", hint="Use \"llm\" or \"http\"")
