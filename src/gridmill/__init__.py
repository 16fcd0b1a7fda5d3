"""Gridmill: incremental, schema-driven field extraction.

This module provides a Python API for:
- Declaring typed columns, including user-defined composite types
- Extracting a document x column matrix through an LLM or a remote service
- Caching every cell by content fingerprint so only missing cells are requested
- Invalidating dependent cells when type definitions change

Simple API (recommended for most users):
    >>> from gridmill import ExtractionSession, Column, Document
    >>>
    >>> session = ExtractionSession.from_settings()
    >>> await session.add_documents([Document("d1", "lease.txt", text)])
    >>> await session.add_column(Column("tenant", "Tenant", "Name of the tenant"))
"""

__version__ = "0.1.0"

from gridmill.api import ExtractionSession
from gridmill.cache import MISSING, MemoryCache, ResultCache, fingerprint, get_cache
from gridmill.config.settings import Settings, get_settings
from gridmill.exceptions import (
    CacheReadError,
    ConfigError,
    DefinitionError,
    GridmillError,
    LLMError,
    LLMNotAvailableError,
    RemoteCallError,
    TypeInUseError,
    UnknownColumnError,
    UnknownDocumentError,
    UnknownTypeError,
    WorkspaceError,
)
from gridmill.grinding import (
    Attribute,
    BaseColumnType,
    BaseType,
    Cardinality,
    Column,
    CompiledSchema,
    CustomColumnType,
    CustomType,
    Document,
    ExtractionMatrix,
    ExtractionOutcome,
    HttpExtractionService,
    InvalidationController,
    LLMExtractionService,
    LoadingSet,
    Orchestrator,
    WorkspaceStore,
    compile_schema,
)
from gridmill.project import WorkspaceManager

__all__ = [
    # Version
    "__version__",
    # Session
    "ExtractionSession",
    # Types
    "Attribute",
    "BaseColumnType",
    "BaseType",
    "Cardinality",
    "Column",
    "CustomColumnType",
    "CustomType",
    "Document",
    # Engine
    "CompiledSchema",
    "compile_schema",
    "ExtractionMatrix",
    "LoadingSet",
    "WorkspaceStore",
    "Orchestrator",
    "ExtractionOutcome",
    "InvalidationController",
    "HttpExtractionService",
    "LLMExtractionService",
    # Cache
    "MISSING",
    "MemoryCache",
    "ResultCache",
    "fingerprint",
    "get_cache",
    # Workspace
    "WorkspaceManager",
    # Configuration
    "Settings",
    "get_settings",
    # Exceptions
    "GridmillError",
    "UnknownTypeError",
    "TypeInUseError",
    "DefinitionError",
    "UnknownColumnError",
    "UnknownDocumentError",
    "RemoteCallError",
    "LLMError",
    "LLMNotAvailableError",
    "CacheReadError",
    "ConfigError",
    "WorkspaceError",
]
