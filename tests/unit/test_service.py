"""Tests for the extraction service backends."""

import json
from types import SimpleNamespace

import httpx
import pytest

from conftest import text_column
from gridmill.exceptions import ConfigError, LLMError, RemoteCallError
from gridmill.grinding.schema import compile_schema
from gridmill.grinding.service import (
    ExtractionRequest,
    ExtractionResponse,
    HttpExtractionService,
    LLMExtractionService,
    get_service,
)
from gridmill.llm.client import LLMClient, StructuredCompletion

URL = "http://extractor.test/api/extractor"


def make_request(documents, model_config=None) -> ExtractionRequest:
    columns = [text_column("name")]
    return ExtractionRequest(
        documents=list(documents),
        columns=columns,
        custom_types=[],
        schema=compile_schema(columns, []),
        model_config=model_config,
    )


def http_service(handler) -> HttpExtractionService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpExtractionService(url=URL, client=client)


class TestExtractionResponse:
    def test_parse_valid(self):
        response = ExtractionResponse.parse('{"results": [{"documentId": "D1", "data": {"a": 1}}]}')
        assert response.results[0].document_id == "D1"
        assert response.results[0].data == {"a": 1}

    def test_missing_data_defaults_to_empty(self):
        response = ExtractionResponse.parse('{"results": [{"documentId": "D1"}]}')
        assert response.results[0].data == {}

    @pytest.mark.parametrize("body", ["not json", '{"rows": []}', '{"results": [{"data": {}}]}'])
    def test_parse_malformed(self, body):
        with pytest.raises(RemoteCallError):
            ExtractionResponse.parse(body)


class TestHttpExtractionService:
    """Test the HTTP backend against a mock transport."""

    @pytest.mark.asyncio
    async def test_posts_payload_and_parses_results(self, documents):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["payload"] = json.loads(request.content)
            return httpx.Response(
                200, json={"results": [{"documentId": "D1", "data": {"name": "Alice"}}]}
            )

        config = {"reasoning": {"effort": "minimal"}, "text": {"verbosity": "low"}}
        response = await http_service(handler).extract(make_request(documents, config))

        assert seen["url"] == URL
        assert [d["id"] for d in seen["payload"]["documents"]] == ["D1", "D2"]
        assert seen["payload"]["columns"][0]["type"] == {"kind": "base", "baseType": "text"}
        assert seen["payload"]["customTypes"] == []
        assert seen["payload"]["modelConfig"] == config
        assert response.results[0].data == {"name": "Alice"}

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, documents):
        service = http_service(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(RemoteCallError) as exc_info:
            await service.extract(make_request(documents))

        assert "HTTP 500" in exc_info.value.message
        assert exc_info.value.details == "boom"

    @pytest.mark.asyncio
    async def test_malformed_body_raises(self, documents):
        service = http_service(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(RemoteCallError) as exc_info:
            await service.extract(make_request(documents))

        assert "Malformed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, documents):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteCallError) as exc_info:
            await http_service(handler).extract(make_request(documents))

        assert URL in exc_info.value.details


class FakeLLMClient:
    def __init__(self, contents=None, error=None):
        self.contents = contents or {}
        self.error = error
        self.calls = []

    async def complete_json(self, prompt, json_schema, system=None, **params):
        self.calls.append({"prompt": prompt, "schema": json_schema, "system": system, **params})
        if self.error is not None:
            raise self.error
        for marker, content in self.contents.items():
            if marker in prompt:
                return StructuredCompletion(content=content, model="fake", input_tokens=1, output_tokens=1)
        return StructuredCompletion(content="{}", model="fake", input_tokens=1, output_tokens=1)


class TestLLMExtractionService:
    """Test in-process extraction with a fake LLM client."""

    @pytest.mark.asyncio
    async def test_one_completion_per_document(self, documents):
        client = FakeLLMClient({"Alice": '{"name": "Alice"}', "Bob": '{"name": "Bob"}'})
        service = LLMExtractionService(client)
        request = make_request(documents, {"reasoning": {"effort": "low"}, "text": {"verbosity": "high"}})

        response = await service.extract(request)

        assert [(r.document_id, r.data) for r in response.results] == [
            ("D1", {"name": "Alice"}),
            ("D2", {"name": "Bob"}),
        ]
        assert len(client.calls) == 2
        call = client.calls[0]
        assert request.schema.instruction in call["prompt"]
        assert "--- Document Start ---" in call["prompt"]
        assert call["schema"] == request.schema.json_schema
        assert call["reasoning_effort"] == "low"
        assert call["verbosity"] == "high"

    @pytest.mark.asyncio
    async def test_non_json_completion_is_empty_row(self, documents):
        service = LLMExtractionService(FakeLLMClient({"Alice": "Sorry, I cannot help"}))

        response = await service.extract(make_request(documents[:1]))

        assert response.results[0].data == {}

    @pytest.mark.asyncio
    async def test_llm_error_fails_batch(self, documents):
        service = LLMExtractionService(FakeLLMClient(error=LLMError("rate limited")))
        with pytest.raises(LLMError):
            await service.extract(make_request(documents))

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self, documents):
        service = LLMExtractionService(FakeLLMClient(error=RuntimeError("socket closed")))
        with pytest.raises(RemoteCallError) as exc_info:
            await service.extract(make_request(documents))
        assert isinstance(exc_info.value, LLMError)


class TestLLMClient:
    """Test the litellm wrapper without network access."""

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        assert LLMClient().api_key == "sk-openai"

        monkeypatch.setenv("GRIDMILL_API_KEY", "sk-gridmill")
        assert LLMClient().api_key == "sk-gridmill"

    def test_model_from_environment(self, monkeypatch):
        assert LLMClient().model == "gpt-4o-mini"
        monkeypatch.setenv("GRIDMILL_MODEL", "claude-sonnet-4-20250514")
        assert LLMClient().model == "claude-sonnet-4-20250514"

    def test_unavailable_without_key(self):
        assert not LLMClient().is_available()

    @pytest.mark.asyncio
    async def test_complete_json_uses_strict_schema(self):
        captured = {}

        async def acompletion(**kwargs):
            captured.update(kwargs)
            return SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content='{"name": null}'))],
                model="gpt-4o-mini",
                usage=SimpleNamespace(prompt_tokens=10, completion_tokens=3),
            )

        client = LLMClient(api_key="sk-test")
        client._litellm = SimpleNamespace(acompletion=acompletion)

        response = await client.complete_json("prompt", {"type": "object"}, system="sys")

        assert response.content == '{"name": null}'
        assert response.input_tokens == 10
        assert captured["response_format"]["json_schema"]["strict"] is True
        assert captured["messages"][0] == {"role": "system", "content": "sys"}
        assert captured["api_key"] == "sk-test"

    @pytest.mark.asyncio
    async def test_complete_json_wraps_errors(self):
        async def acompletion(**kwargs):
            raise TimeoutError("timed out")

        client = LLMClient(api_key="sk-test")
        client._litellm = SimpleNamespace(acompletion=acompletion)

        with pytest.raises(LLMError):
            await client.complete_json("prompt", {"type": "object"})


class TestGetService:
    def test_backends(self):
        assert isinstance(get_service("http"), HttpExtractionService)
        assert isinstance(get_service("llm"), LLMExtractionService)

    def test_unknown_backend(self):
        with pytest.raises(ConfigError):
            get_service("grpc")

    def test_backend_from_settings(self, monkeypatch):
        from gridmill.config.settings import get_settings

        monkeypatch.setenv("GRIDMILL_SERVICE__BACKEND", "http")
        monkeypatch.setenv("GRIDMILL_SERVICE__URL", URL)
        get_settings.cache_clear()

        service = get_service()
        assert isinstance(service, HttpExtractionService)
        assert service.url == URL
