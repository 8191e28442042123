"""FastAPI dependencies."""

from __future__ import annotations

from monlur.config import Settings
from monlur.engines import create_engine
from monlur.pipeline import ObfuscationPipeline
from monlur.workspace import WorkspaceManager

_pipeline: ObfuscationPipeline | None = None


def init_pipeline(settings: Settings) -> ObfuscationPipeline:
    """Build the workspace manager, engine and pipeline (called at app startup)."""
    global _pipeline
    workspaces = WorkspaceManager(
        settings.temp_dir,
        retention_seconds=settings.retention_seconds,
        sweep_interval_seconds=settings.sweep_interval_seconds,
    )
    engine = create_engine(settings, workspaces)
    _pipeline = ObfuscationPipeline(
        workspaces, engine, max_concurrent=settings.max_concurrent_jobs
    )
    return _pipeline


def get_pipeline() -> ObfuscationPipeline:
    """Dependency that provides the ObfuscationPipeline instance."""
    if _pipeline is None:
        raise RuntimeError("Pipeline not initialized; call init_pipeline() first")
    return _pipeline


def reset_pipeline() -> None:
    global _pipeline
    _pipeline = None
