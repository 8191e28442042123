"""Transform engines."""

from __future__ import annotations

from monlur.config import Settings
from monlur.engines.base import TransformEngine
from monlur.engines.builtin import BuiltinEngine, transform
from monlur.engines.external import ExternalEngine
from monlur.workspace.manager import WorkspaceManager

ENGINE_NAMES = ("builtin", "external")


def create_engine(settings: Settings, workspaces: WorkspaceManager) -> TransformEngine:
    """Build the engine selected by ``settings.engine``."""
    name = settings.engine.strip().lower()
    if name == "builtin":
        return BuiltinEngine()
    if name == "external":
        return ExternalEngine(
            workspaces,
            command=settings.engine_command,
            timeout=settings.engine_timeout_seconds,
            workdir=settings.engine_workdir,
            wrapper=settings.engine_wrapper,
            presets=settings.engine_presets,
            env=settings.engine_env,
        )
    raise ValueError(f"Unknown engine '{settings.engine}' (expected one of {', '.join(ENGINE_NAMES)})")


__all__ = [
    "BuiltinEngine",
    "ENGINE_NAMES",
    "ExternalEngine",
    "TransformEngine",
    "create_engine",
    "transform",
]
