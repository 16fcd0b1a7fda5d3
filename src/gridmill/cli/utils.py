"""Console, error reporting and session helpers shared by CLI commands."""

import asyncio
import functools
import io
from collections.abc import Callable, Coroutine, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console

from gridmill.api import ExtractionSession
from gridmill.exceptions import GridmillError
from gridmill.grinding.orchestrator import ExtractionOutcome
from gridmill.project.manager import WorkspaceManager

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


@dataclass
class OutputMode:
    """Global output flags set by the app callback.

    ``quiet`` is 0 (normal), 1 (``-q``: no status output) or 2
    (``--silent``: no output at all, exit code only).
    """

    verbose: bool = False
    quiet: int = 0


_mode = OutputMode()


def set_context(verbose: bool = False, quiet: int = 0) -> None:
    """Record the global output flags for this invocation."""
    _mode.verbose = verbose
    _mode.quiet = quiet


def get_console() -> Console:
    """Status console on stderr; discards output under ``-q``/``--silent``."""
    if _mode.quiet >= 1:
        return Console(file=io.StringIO(), stderr=True)
    return Console(stderr=True)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async action to completion from a synchronous command."""
    return asyncio.run(coro)


@contextmanager
def open_session(directory: Path) -> Iterator[ExtractionSession]:
    """Load the workspace in ``directory`` and save it back afterwards.

    The state is saved even when the body raises, so definitions added
    before a failed extraction are kept.
    """
    manager = WorkspaceManager(directory)
    session = ExtractionSession.from_settings(store=manager.load())
    try:
        yield session
    finally:
        manager.save(session.store)


def report_outcome(console: Console, outcome: ExtractionOutcome) -> None:
    """Print what an extraction run did."""
    if outcome.skipped_documents:
        console.print(
            f"[yellow]Skipped {len(outcome.skipped_documents)} document(s) without text[/yellow]"
        )
    if outcome.cache_hits:
        console.print(f"  Cache hits: {outcome.cache_hits}")
    if outcome.requested:
        console.print(
            f"  Requested {len(outcome.requested_columns)} column(s) for "
            f"{len(outcome.requested_documents)} document(s); "
            f"[green]{outcome.cells_written} cells written[/green]"
        )
    elif not outcome.cache_hits:
        console.print("  Nothing to extract")


def _describe(exc: BaseException) -> tuple[list[str], int]:
    """Error lines to print and the exit code for an exception."""
    if isinstance(exc, GridmillError):
        lines = [f"[red]Error:[/red] {exc.message}"]
        if exc.details:
            lines.append(f"[dim]{exc.details}[/dim]")
        if exc.hint:
            lines.append(f"[dim]Hint: {exc.hint}[/dim]")
        return lines, exc.exit_code
    if isinstance(exc, KeyboardInterrupt):
        return ["\n[yellow]Interrupted[/yellow]"], EXIT_INTERRUPTED
    if isinstance(exc, FileNotFoundError):
        return [f"[red]File not found:[/red] {exc.filename or exc}"], EXIT_FAILURE
    if isinstance(exc, PermissionError):
        return [f"[red]Permission denied:[/red] {exc.filename or exc}"], EXIT_FAILURE
    return [f"[red]Unexpected error:[/red] {type(exc).__name__}: {exc}"], EXIT_FAILURE


def handle_errors(func: F) -> F:
    """Turn exceptions from a command into a message and an exit code.

    Gridmill errors exit with their class ``exit_code``. ``--verbose``
    prints the full traceback instead of the message; ``--silent`` prints
    nothing. Typer's own exits and parameter errors pass through.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (typer.Exit, typer.BadParameter):
            raise
        except (Exception, KeyboardInterrupt) as e:
            lines, exit_code = _describe(e)
            if _mode.quiet < 2:
                err_console = Console(stderr=True)
                if _mode.verbose and not isinstance(e, KeyboardInterrupt):
                    err_console.print_exception()
                else:
                    for line in lines:
                        err_console.print(line)
            raise typer.Exit(exit_code) from e

    return wrapper  # type: ignore[return-value]
