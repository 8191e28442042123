"""Per-job workspace storage."""

from monlur.workspace.manager import WorkspaceHandle, WorkspaceManager

__all__ = ["WorkspaceHandle", "WorkspaceManager"]
