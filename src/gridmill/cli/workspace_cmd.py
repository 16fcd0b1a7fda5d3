"""Workspace commands: init, documents, extraction, display and export."""

import json
import uuid
from pathlib import Path

import typer
from rich.table import Table

from gridmill.cli.utils import get_console, open_session, report_outcome, run
from gridmill.grinding.types import Document
from gridmill.project.manager import WorkspaceManager

DIR_OPTION = typer.Option(Path("."), "--dir", "-d", help="Workspace directory.")

PREVIEW_CHARS = 60


def init(
    directory: Path = DIR_OPTION,
    force: bool = typer.Option(False, "--force", help="Reinitialize an existing workspace."),
):
    """Initialize a new workspace.

    Example:

        gridmill init
    """
    console = get_console()
    manager = WorkspaceManager(directory)
    manager.init(force=force)
    console.print(f"[green]Initialized workspace at {manager.workspace_dir}[/green]")
    console.print("Next: add documents with [bold]gridmill add-doc <file>[/bold]")


def add_doc(
    files: list[Path] = typer.Argument(..., help="Text or Markdown files to add."),
    directory: Path = DIR_OPTION,
):
    """Add documents and extract every existing column for them.

    Examples:

        gridmill add-doc contract.md

        gridmill add-doc invoices/*.txt
    """
    console = get_console()
    documents = [
        Document(id=f"doc_{uuid.uuid4().hex[:8]}", name=path.name, text=path.read_text(encoding="utf-8"))
        for path in files
    ]

    with open_session(directory) as session:
        outcome = run(session.add_documents(documents))

    for doc in documents:
        console.print(f"Added [bold]{doc.name}[/bold] as {doc.id}")
    report_outcome(console, outcome)


def remove_doc(
    document_id: str = typer.Argument(..., help="Document id."),
    directory: Path = DIR_OPTION,
):
    """Remove a document and its extracted values."""
    console = get_console()
    with open_session(directory) as session:
        session.remove_document(document_id)
    console.print(f"Removed document {document_id}")


def extract(directory: Path = DIR_OPTION):
    """Extract every cell that has no value yet.

    Cells already in the matrix are not re-requested. Missing cells whose
    inputs are unchanged are answered from the cache, so re-running after a
    failure only requests what is still missing.
    """
    console = get_console()
    with open_session(directory) as session:
        outcome = run(session.refresh())
    report_outcome(console, outcome)


def _preview(value: object) -> str:
    if isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False)
    else:
        text = str(value)
    if len(text) > PREVIEW_CHARS:
        text = text[: PREVIEW_CHARS - 1] + "…"
    return text


def show(directory: Path = DIR_OPTION):
    """Show the extraction matrix.

    Unextracted cells are shown as "-", empty results as "(none)".
    """
    console = get_console()
    store = WorkspaceManager(directory).load()

    if not store.documents or not store.columns:
        console.print(
            f"{len(store.documents)} document(s), {len(store.columns)} column(s), "
            f"{len(store.custom_types)} custom type(s)"
        )
        return

    table = Table(title="Extraction matrix")
    table.add_column("Document", style="bold")
    for column in store.columns:
        table.add_column(f"{column.name}\n[dim]{column.id}[/dim]")

    for doc in store.documents:
        cells = []
        for column in store.columns:
            if not store.matrix.has(doc.id, column.id):
                cells.append("[dim]-[/dim]")
                continue
            value = store.matrix.get(doc.id, column.id)
            cells.append("[dim](none)[/dim]" if value in (None, []) else _preview(value))
        table.add_row(f"{doc.name}\n[dim]{doc.id}[/dim]", *cells)

    console.print(table)

    summary = store.matrix.summary([d.id for d in store.documents], [c.id for c in store.columns])
    console.print("[bold]Completeness:[/bold]")
    for column in store.columns:
        console.print(f"  {column.name}: {summary[column.id]}")


def export(
    output: Path = typer.Argument(..., help="Output file (.csv or .json)."),
    directory: Path = DIR_OPTION,
):
    """Export the extraction matrix to CSV or JSON.

    Examples:

        gridmill export matrix.csv

        gridmill export matrix.json
    """
    console = get_console()
    with open_session(directory) as session:
        if output.suffix.lower() == ".csv":
            session.export_csv(output)
        else:
            session.export_json(output)
    console.print(f"Matrix saved to: {output}")
