"""Workspace persistence for Gridmill."""

from gridmill.project.manager import WorkspaceExistsError, WorkspaceManager

__all__ = ["WorkspaceExistsError", "WorkspaceManager"]
