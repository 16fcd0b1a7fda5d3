"""Typer entry point for the ``gridmill`` command."""

import logging
import os

import certifi
import typer
from rich.console import Console
from rich.logging import RichHandler

from gridmill import __version__
from gridmill.cli import cache_cmd, schema_cmd, workspace_cmd
from gridmill.cli.utils import handle_errors, set_context

# litellm builds its own HTTP clients; point them at certifi's bundle too
os.environ.setdefault("SSL_CERT_FILE", certifi.where())

console = Console(stderr=True)

app = typer.Typer(
    name="gridmill",
    help="""Gridmill: fill a document x column matrix with typed, extracted values.

    [bold]Workspace:[/bold] init, add-doc, remove-doc, extract, show, export

    [bold]Schema:[/bold] add-column, edit-column, remove-column, define-type,
    redefine-type, remove-type, types

    [bold]Cache:[/bold] cache-info, clear-cache
    """,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

COMMANDS = {
    "init": workspace_cmd.init,
    "add-doc": workspace_cmd.add_doc,
    "remove-doc": workspace_cmd.remove_doc,
    "extract": workspace_cmd.extract,
    "show": workspace_cmd.show,
    "export": workspace_cmd.export,
    "add-column": schema_cmd.add_column,
    "edit-column": schema_cmd.edit_column,
    "remove-column": schema_cmd.remove_column,
    "define-type": schema_cmd.define_type,
    "redefine-type": schema_cmd.redefine_type,
    "remove-type": schema_cmd.remove_type,
    "types": schema_cmd.types,
    "clear-cache": cache_cmd.clear_cache,
    "cache-info": cache_cmd.cache_info,
}

for _name, _command in COMMANDS.items():
    app.command(_name)(handle_errors(_command))


def _show_version(value: bool):
    if value:
        console.print(f"gridmill {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool, quiet: int) -> None:
    """Route library logging through rich on stderr.

    Warnings are shown by default, debug output with ``--verbose`` and only
    errors under ``-q``/``--silent``.
    """
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    for noisy in ("LiteLLM", "httpx"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logs and full tracebacks."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors."),
    silent: bool = typer.Option(False, "--silent", help="Print nothing; exit code only."),
):
    """Gridmill: fill a document x column matrix with typed, extracted values."""
    quiet_level = 2 if silent else int(quiet)
    set_context(verbose=verbose, quiet=quiet_level)
    configure_logging(verbose, quiet_level)


if __name__ == "__main__":
    app()
