"""Obfuscation job pipeline.

Runs one job end to end: validate, normalize the preset, stage the input
in a fresh workspace, run the engine, stamp the provenance header and
measure. The workspace is released on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import time

from monlur.engines.base import TransformEngine
from monlur.errors import EmptyInput, ObfuscationError, error_from_kind
from monlur.models.job import Job, JobStatus, TransformResult
from monlur.models.preset import Preset
from monlur.provenance import stamp_header
from monlur.workspace.manager import WorkspaceHandle, WorkspaceManager

logger = logging.getLogger(__name__)

INTERNAL_ERROR_KIND = "Internal"


class ObfuscationPipeline:
    """Coordinates the workspace manager and a transform engine per job.

    Jobs share nothing but the manager's storage root, so ``run`` may be
    awaited concurrently. The semaphore only bounds how many engine runs
    happen at once.
    """

    def __init__(
        self,
        workspaces: WorkspaceManager,
        engine: TransformEngine,
        max_concurrent: int = 4,
    ) -> None:
        self.workspaces = workspaces
        self.engine = engine
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def run(self, source: str, preset: Preset | str | None = None) -> Job:
        """Run one obfuscation job to a terminal state.

        Args:
            source: Source text.
            preset: Requested preset; unrecognized values become Medium.

        Returns:
            The job, either succeeded with ``result`` or failed with
            ``error`` (kind and message).
        """
        normalized = Preset.normalize(preset)
        if preset is not None and not Preset.is_known(preset):
            logger.info("Unrecognized preset %r, using %s", preset, normalized.value)

        job = Job(source=source, preset=normalized)

        if not source.strip():
            job.fail(EmptyInput.kind, "Code cannot be empty")
            return job

        started = time.perf_counter()
        job.start()
        workspace: WorkspaceHandle | None = None
        try:
            workspace = self.workspaces.allocate()
            self.workspaces.write(workspace.input_path, source)
            async with self._semaphore:
                output = await self.engine.execute(workspace, source, normalized)
            job.succeed(self._assemble(source, output, started))
            logger.info(
                "Job %s succeeded (engine=%s, preset=%s, %d -> %d bytes, %dms)",
                job.id,
                self.engine.name,
                normalized.value,
                job.result.original_size,
                job.result.obfuscated_size,
                job.result.processing_time_ms,
            )
        except ObfuscationError as exc:
            logger.warning("Job %s failed: %s: %s", job.id, exc.kind, exc.message)
            job.fail(exc.kind, exc.message)
        except Exception as exc:
            logger.exception("Job %s crashed", job.id)
            if job.status == JobStatus.RUNNING:
                job.fail(INTERNAL_ERROR_KIND, str(exc) or type(exc).__name__)
            raise
        finally:
            if workspace is not None:
                self.workspaces.release(workspace)
        return job

    async def obfuscate(self, source: str, preset: Preset | str | None = None) -> TransformResult:
        """Like :meth:`run`, but raise the job's failure instead of returning it.

        Raises:
            ObfuscationError: The failure kind of the job.
        """
        job = await self.run(source, preset)
        if job.error is not None:
            raise error_from_kind(job.error.kind, job.error.message)
        return job.result

    @staticmethod
    def _assemble(source: str, output: str, started: float) -> TransformResult:
        code = stamp_header(output)
        return TransformResult(
            code=code,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            original_size=len(source.encode("utf-8")),
            obfuscated_size=len(code.encode("utf-8")),
        )
