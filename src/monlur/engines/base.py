"""Transform engine interface.

The pipeline only ever talks to an engine through this protocol, so the
in-process engine and the external tool adapter are interchangeable.
"""

from typing import Protocol

from monlur.models.preset import Preset
from monlur.workspace.manager import WorkspaceHandle


class TransformEngine(Protocol):
    """Text-to-text obfuscation engine."""

    @property
    def name(self) -> str:
        """Engine identifier."""
        ...

    async def execute(self, workspace: WorkspaceHandle, source: str, preset: Preset) -> str:
        """Obfuscate ``source``.

        Args:
            workspace: The job's workspace; its input artifact already
                holds ``source``.
            source: Source text.
            preset: Normalized preset.

        Returns:
            Obfuscated text.

        Raises:
            ObfuscationError: On any engine failure.
        """
        ...
