"""Extraction engine for Gridmill.

This module turns documents and typed columns into an extraction matrix:
1. Type definitions and schema compilation
2. Cache-aware batched extraction
3. Invalidation when definitions change
"""

from gridmill.grinding.decode import decode_row, decode_value
from gridmill.grinding.invalidation import InvalidationController
from gridmill.grinding.matrix import ExtractionMatrix, LoadingSet
from gridmill.grinding.orchestrator import ExtractionOutcome, Orchestrator
from gridmill.grinding.schema import CompiledSchema, compile_schema
from gridmill.grinding.service import (
    ExtractionRequest,
    ExtractionResponse,
    ExtractionService,
    HttpExtractionService,
    LLMExtractionService,
    ResultRow,
    get_service,
)
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

__all__ = [
    # Types
    "Attribute",
    "BaseColumnType",
    "BaseType",
    "Cardinality",
    "Column",
    "CustomColumnType",
    "CustomType",
    "Document",
    # Schema
    "CompiledSchema",
    "compile_schema",
    "decode_row",
    "decode_value",
    # State
    "ExtractionMatrix",
    "LoadingSet",
    "WorkspaceStore",
    # Service
    "ExtractionRequest",
    "ExtractionResponse",
    "ExtractionService",
    "HttpExtractionService",
    "LLMExtractionService",
    "ResultRow",
    "get_service",
    # Orchestration
    "ExtractionOutcome",
    "Orchestrator",
    "InvalidationController",
]
