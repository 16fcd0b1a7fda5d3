"""Column and custom type commands."""

import re
from pathlib import Path

import typer
import yaml
from rich.table import Table

from gridmill.cli.utils import get_console, open_session, report_outcome, run
from gridmill.cli.workspace_cmd import DIR_OPTION
from gridmill.exceptions import DefinitionError
from gridmill.grinding.types import (
    BaseColumnType,
    BaseType,
    Cardinality,
    Column,
    ColumnType,
    CustomColumnType,
    CustomType,
)
from gridmill.project.manager import WorkspaceManager

BASE_TYPE_NAMES = {t.value for t in BaseType}


def _slugify(text: str) -> str:
    """Create a column id from a display name."""
    slug = re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")
    return slug or "column"


def _parse_column_type(type_name: str) -> ColumnType:
    if type_name in BASE_TYPE_NAMES:
        return BaseColumnType(BaseType(type_name))
    return CustomColumnType(type_name)


def load_type_file(path: Path) -> CustomType:
    """Load a custom type definition from a YAML file.

    Expected format:

        name: Person
        description: A person mentioned in the document
        attributes:
          - name: full_name
            description: Full name
            type: text
          - name: email
            description: Email address
            type: text
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise DefinitionError(f"Invalid YAML in {path}", str(e)) from e

    if not isinstance(data, dict) or "name" not in data:
        raise DefinitionError(f"{path} does not contain a custom type definition")
    try:
        return CustomType.from_dict(data)
    except (KeyError, ValueError) as e:
        raise DefinitionError(f"Invalid custom type definition in {path}", str(e)) from e


def add_column(
    name: str = typer.Argument(..., help="Display name of the column."),
    description: str = typer.Option(..., "--description", "-m", help="What to extract."),
    type_name: str = typer.Option(
        "text",
        "--type",
        "-t",
        help="Base type (text, number, date, boolean) or a custom type name.",
    ),
    many: bool = typer.Option(False, "--many", help="Extract a list of values."),
    column_id: str | None = typer.Option(None, "--id", help="Column id (default: from name)."),
    directory: Path = DIR_OPTION,
):
    """Add a column and extract it for every document.

    Examples:

        gridmill add-column "Tenant" -m "Name of the tenant"

        gridmill add-column "Parties" -m "Contract parties" -t Person --many
    """
    console = get_console()
    column = Column(
        id=column_id or _slugify(name),
        name=name,
        description=description,
        type=_parse_column_type(type_name),
        cardinality=Cardinality.MANY if many else Cardinality.ONE,
    )

    with open_session(directory) as session:
        outcome = run(session.add_column(column))

    console.print(f"Added column [bold]{column.name}[/bold] ({column.id})")
    report_outcome(console, outcome)


def edit_column(
    column_id: str = typer.Argument(..., help="Column id."),
    name: str | None = typer.Option(None, "--name", "-n", help="New display name."),
    description: str | None = typer.Option(
        None, "--description", "-m", help="New extraction instruction."
    ),
    many: bool | None = typer.Option(
        None, "--many/--one", help="Extract a list of values, or a single value."
    ),
    directory: Path = DIR_OPTION,
):
    """Edit a column and re-extract it for every document.

    Example:

        gridmill edit-column tenant -m "Full legal name of the tenant"
    """
    console = get_console()
    cardinality = None if many is None else (Cardinality.MANY if many else Cardinality.ONE)
    with open_session(directory) as session:
        outcome = run(
            session.edit_column(
                column_id, name=name, description=description, cardinality=cardinality
            )
        )
    console.print(f"Edited column {column_id}")
    report_outcome(console, outcome)


def remove_column(
    column_id: str = typer.Argument(..., help="Column id."),
    directory: Path = DIR_OPTION,
):
    """Remove a column and its extracted values."""
    console = get_console()
    with open_session(directory) as session:
        session.remove_column(column_id)
    console.print(f"Removed column {column_id}")


def define_type(
    type_file: Path = typer.Argument(..., help="YAML file with the type definition."),
    directory: Path = DIR_OPTION,
):
    """Define a new custom type from a YAML file."""
    console = get_console()
    custom_type = load_type_file(type_file)
    with open_session(directory) as session:
        session.define_type(custom_type)
    console.print(
        f"Defined type [bold]{custom_type.name}[/bold] "
        f"with {len(custom_type.attributes)} attribute(s)"
    )


def redefine_type(
    old_name: str = typer.Argument(..., help="Name of the existing type."),
    type_file: Path = typer.Argument(..., help="YAML file with the new definition."),
    directory: Path = DIR_OPTION,
):
    """Redefine (or rename) a custom type and re-extract its columns."""
    console = get_console()
    custom_type = load_type_file(type_file)
    with open_session(directory) as session:
        outcomes = run(session.redefine_type(old_name, custom_type))

    console.print(f"Redefined type [bold]{old_name}[/bold]")
    for column_id, outcome in outcomes.items():
        console.print(f"[bold]{column_id}[/bold]")
        report_outcome(console, outcome)


def remove_type(
    name: str = typer.Argument(..., help="Name of the type."),
    directory: Path = DIR_OPTION,
):
    """Remove a custom type that no column uses."""
    console = get_console()
    with open_session(directory) as session:
        session.remove_type(name)
    console.print(f"Removed type {name}")


def types(directory: Path = DIR_OPTION):
    """List custom types and the columns using them."""
    console = get_console()
    store = WorkspaceManager(directory).load()

    if not store.custom_types:
        console.print("No custom types defined yet.")
        return

    table = Table(title="Custom types")
    table.add_column("Type", style="bold")
    table.add_column("Attributes")
    table.add_column("Used by")
    for custom_type in store.custom_types:
        attributes = "\n".join(f"{a.name} ({a.type.value})" for a in custom_type.attributes)
        used_by = ", ".join(c.id for c in store.columns_using_type(custom_type.name))
        table.add_row(custom_type.name, attributes, used_by or "[dim]-[/dim]")
    console.print(table)
