"""Pytest fixtures for Gridmill tests."""

from collections.abc import Callable
from typing import Any

import pytest
from typer.testing import CliRunner

from gridmill.cache.store import MemoryCache, get_cache
from gridmill.config.settings import get_settings
from gridmill.grinding.orchestrator import Orchestrator
from gridmill.grinding.service import ExtractionRequest, ExtractionResponse, ResultRow
from gridmill.grinding.store import WorkspaceStore
from gridmill.grinding.types import (
    Attribute,
    BaseColumnType,
    BaseType,
    Cardinality,
    Column,
    CustomColumnType,
    CustomType,
    Document,
)


class FakeService:
    """Extraction service double that records every request.

    ``responder`` maps (document, requested columns) to the ``data`` dict
    returned for that document. ``on_call`` runs while the request is in
    flight, before the response is produced.
    """

    def __init__(
        self,
        responder: Callable[[Document, list[Column]], dict[str, Any]] | None = None,
        error: Exception | None = None,
    ):
        self.responder = responder or (lambda doc, columns: {c.id: f"{c.id}:{doc.id}" for c in columns})
        self.error = error
        self.requests: list[ExtractionRequest] = []
        self.on_call: Callable[[ExtractionRequest], None] | None = None

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        self.requests.append(request)
        if self.on_call is not None:
            self.on_call(request)
        if self.error is not None:
            raise self.error
        return ExtractionResponse(
            results=[
                ResultRow(documentId=doc.id, data=self.responder(doc, request.columns))
                for doc in request.documents
            ]
        )


def text_column(column_id: str, description: str = "A field", many: bool = False) -> Column:
    return Column(
        id=column_id,
        name=column_id.title(),
        description=description,
        type=BaseColumnType(BaseType.TEXT),
        cardinality=Cardinality.MANY if many else Cardinality.ONE,
    )


def person_type(*extra: Attribute) -> CustomType:
    return CustomType(
        name="Person",
        description="A person mentioned in the document",
        attributes=(Attribute("full_name", "Full name of the person"), *extra),
    )


def owner_column(type_name: str = "Person") -> Column:
    return Column(
        id="owner",
        name="Owner",
        description="Owner of the asset",
        type=CustomColumnType(type_name),
    )


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config, cache and API keys away from the real home directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GRIDMILL_CACHE__DIRECTORY", str(tmp_path / "cache"))
    for var in ["GRIDMILL_API_KEY", "GRIDMILL_MODEL", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"]:
        monkeypatch.delenv(var, raising=False)

    get_settings.cache_clear()
    get_cache.cache_clear()
    yield
    get_settings.cache_clear()
    get_cache.cache_clear()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def documents() -> list[Document]:
    return [
        Document("D1", "lease.txt", "Lease between Alice and the landlord."),
        Document("D2", "memo.txt", "Memo written by Bob."),
    ]


@pytest.fixture
def store(documents) -> WorkspaceStore:
    workspace = WorkspaceStore()
    workspace.add_documents(documents)
    return workspace


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def orchestrator(store, cache, service) -> Orchestrator:
    return Orchestrator(store, cache, service)
