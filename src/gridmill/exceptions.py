"""Custom exceptions for Gridmill."""


class GridmillError(Exception):
    """Base exception for all Gridmill errors."""

    exit_code: int = 1
    default_hint: str | None = None

    def __init__(
        self,
        message: str,
        details: str | None = None,
        hint: str | None = None,
    ):
        self.message = message
        self.details = details
        self.hint = hint or self.default_hint
        super().__init__(message)


# Type system errors (20-29)
class TypeSystemError(GridmillError):
    """Error in column or custom type definitions."""

    exit_code = 20


class UnknownTypeError(TypeSystemError):
    """A column references a custom type that does not exist."""

    exit_code = 20
    default_hint = "Define the custom type first: gridmill define-type <file.yaml>"

    def __init__(self, type_name: str, column_id: str | None = None):
        self.type_name = type_name
        self.column_id = column_id
        details = f"Referenced by column '{column_id}'" if column_id else None
        super().__init__(f"Unknown custom type: {type_name}", details)


class TypeInUseError(TypeSystemError):
    """Attempted removal of a custom type that columns still reference."""

    exit_code = 21
    default_hint = "Remove the dependent columns first: gridmill remove-column <id>"

    def __init__(self, type_name: str, column_names: list[str]):
        self.type_name = type_name
        self.column_names = column_names
        super().__init__(
            f'Cannot remove type "{type_name}" because it is used by: '
            + ", ".join(column_names),
        )


class DefinitionError(TypeSystemError):
    """Invalid column or custom type definition."""

    exit_code = 22


class UnknownColumnError(GridmillError):
    """Column id not present in the workspace."""

    exit_code = 23
    default_hint = "List columns with: gridmill show"


class UnknownDocumentError(GridmillError):
    """Document id not present in the workspace."""

    exit_code = 24
    default_hint = "List documents with: gridmill show"


# Configuration errors (30-39)
class ConfigError(GridmillError):
    """Configuration error."""

    exit_code = 30


class WorkspaceError(GridmillError):
    """Workspace state is missing, unreadable or from another version."""

    exit_code = 31
    default_hint = "Run 'gridmill init' to create a workspace"


# Remote extraction errors (40-49)
class RemoteCallError(GridmillError):
    """The extraction service failed, returned non-2xx, or sent a malformed body."""

    exit_code = 40
    default_hint = "Re-run the extraction; cached cells are skipped"


class LLMError(RemoteCallError):
    """LLM processing error."""

    exit_code = 41


class LLMNotAvailableError(LLMError):
    """LLM not available or not configured."""

    exit_code = 42
    default_hint = "Set GRIDMILL_OPENAI_API_KEY or configure in ~/.gridmill/config.yaml"


# Cache errors (50-59)
class CacheReadError(GridmillError):
    """Failure reading the result cache. Downgraded to a cache miss."""

    exit_code = 50
