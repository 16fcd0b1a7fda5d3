"""Workspace manager for Gridmill.

Handles the .gridmill/ workspace folder creation, loading, and saving.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from gridmill.exceptions import WorkspaceError
from gridmill.grinding.store import WorkspaceStore

logger = logging.getLogger(__name__)


class WorkspaceExistsError(WorkspaceError):
    """Workspace already exists."""

    default_hint = "Pass --force to reinitialize"


class WorkspaceManager:
    """Manages the .gridmill/ workspace folder.

    The workspace folder structure:
        .gridmill/
        └── state.json          # Documents, columns, custom types, results

    ``state.json`` wraps the data in a versioned envelope
    ``{"v": <version>, "data": {...}}``; in-flight cells are never saved.
    """

    WORKSPACE_DIR = ".gridmill"
    STATE_FILE = "state.json"
    STATE_VERSION = 1

    def __init__(self, root: Path):
        """Initialize the workspace manager.

        Args:
            root: Root directory of the workspace (contains .gridmill/).
        """
        self.root = Path(root).resolve()
        self.workspace_dir = self.root / self.WORKSPACE_DIR

    @property
    def state_path(self) -> Path:
        """Path to state.json."""
        return self.workspace_dir / self.STATE_FILE

    def exists(self) -> bool:
        """Check if workspace exists."""
        return self.state_path.exists()

    def init(self, force: bool = False) -> WorkspaceStore:
        """Initialize a new, empty workspace.

        Raises:
            WorkspaceExistsError: If a workspace exists and force=False.
        """
        if self.exists() and not force:
            raise WorkspaceExistsError(f"Workspace already exists at {self.workspace_dir}")

        self.workspace_dir.mkdir(parents=True, exist_ok=True)
        store = WorkspaceStore()
        self.save(store)
        return store

    def load(self) -> WorkspaceStore:
        """Load the workspace state.

        Raises:
            WorkspaceError: If the workspace is missing, unreadable, or was
                written by an incompatible version.
        """
        if not self.exists():
            raise WorkspaceError(f"No workspace found at {self.root}")

        try:
            envelope: Any = json.loads(self.state_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise WorkspaceError(f"Unreadable workspace state: {self.state_path}", str(e)) from e

        if not isinstance(envelope, dict) or envelope.get("v") != self.STATE_VERSION:
            raise WorkspaceError(
                f"Unsupported workspace state version in {self.state_path}",
                details=f"Expected v={self.STATE_VERSION}",
                hint="Run 'gridmill init --force' to start over",
            )

        try:
            return WorkspaceStore.from_dict(envelope.get("data") or {})
        except (KeyError, TypeError, ValueError) as e:
            raise WorkspaceError(f"Corrupt workspace state: {self.state_path}", str(e)) from e

    def save(self, store: WorkspaceStore) -> None:
        """Save the workspace state atomically (temp file + rename)."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)
        envelope = {"v": self.STATE_VERSION, "data": store.to_dict()}

        tmp_path = self.state_path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(envelope, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.state_path)
        logger.debug(f"Saved workspace state to {self.state_path}")
