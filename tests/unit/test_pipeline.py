"""Tests for ObfuscationPipeline."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from monlur.engines import BuiltinEngine, ExternalEngine
from monlur.errors import EmptyInput, EngineExecutionFailed, ObfuscationError
from monlur.models.job import JobStatus
from monlur.models.preset import Preset
from monlur.pipeline import ObfuscationPipeline
from monlur.provenance import HEADER_LINE, PROVENANCE_HEADER
from monlur.workspace import WorkspaceHandle, WorkspaceManager
from tests.helpers import artifacts

SOURCE = 'local greeting = "hello there"\nprint(greeting)\n'


class RecordingEngine:
    """Engine double that records what it was given and returns or raises on demand."""

    def __init__(self, output: str = "obfuscated", error: Exception | None = None) -> None:
        self.output = output
        self.error = error
        self.calls: list[tuple[WorkspaceHandle, str, Preset]] = []
        self.staged: list[str] = []

    @property
    def name(self) -> str:
        return "recording"

    async def execute(self, workspace: WorkspaceHandle, source: str, preset: Preset) -> str:
        self.calls.append((workspace, source, preset))
        self.staged.append(workspace.input_path.read_text(encoding="utf-8"))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.output


class TestRun:
    @pytest.mark.asyncio
    async def test_builtin_success(self, workspaces: WorkspaceManager) -> None:
        pipeline = ObfuscationPipeline(workspaces, BuiltinEngine())

        job = await pipeline.run(SOURCE, "Strong")

        assert job.status == JobStatus.SUCCEEDED
        assert job.preset == Preset.STRONG
        assert job.error is None
        result = job.result
        assert result.code.startswith(PROVENANCE_HEADER)
        assert result.code.count(HEADER_LINE) == 1
        assert result.original_size == len(SOURCE.encode("utf-8"))
        assert result.obfuscated_size == len(result.code.encode("utf-8"))
        assert result.processing_time_ms >= 0
        assert job.completed_at is not None
        assert artifacts(workspaces.root) == []

    @pytest.mark.asyncio
    async def test_sizes_count_utf8_bytes(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine(output="ø")
        pipeline = ObfuscationPipeline(workspaces, engine)

        result = await pipeline.obfuscate("print('ø')", "Weak")

        assert result.original_size == 11
        assert result.code == PROVENANCE_HEADER + "ø"
        assert result.obfuscated_size == len(PROVENANCE_HEADER.encode("utf-8")) + 2

    @pytest.mark.asyncio
    async def test_input_staged_before_engine_runs(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine()
        pipeline = ObfuscationPipeline(workspaces, engine)

        await pipeline.run(SOURCE, Preset.WEAK)

        assert engine.staged == [SOURCE]
        assert engine.calls[0][1] == SOURCE
        assert engine.calls[0][2] == Preset.WEAK

    @pytest.mark.asyncio
    async def test_header_not_stamped_twice(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine(output=PROVENANCE_HEADER + "print(1)")
        pipeline = ObfuscationPipeline(workspaces, engine)

        result = await pipeline.obfuscate(SOURCE)

        assert result.code == PROVENANCE_HEADER + "print(1)"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("preset", [None, "bogus", "", 7, {"name": "Strong"}])
    async def test_unrecognized_preset_runs_as_medium(self, workspaces: WorkspaceManager, preset: object) -> None:
        engine = RecordingEngine()
        pipeline = ObfuscationPipeline(workspaces, engine)

        job = await pipeline.run(SOURCE, preset)

        assert job.status == JobStatus.SUCCEEDED
        assert job.preset == Preset.MEDIUM
        assert engine.calls[0][2] == Preset.MEDIUM

    @pytest.mark.asyncio
    async def test_preset_names_are_case_insensitive(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine()
        job = await ObfuscationPipeline(workspaces, engine).run(SOURCE, "minify")
        assert job.preset == Preset.MINIFY


class TestEmptyInput:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", ["", "   ", "\n\t \r\n"])
    async def test_rejected_without_allocating(self, workspaces: WorkspaceManager, source: str) -> None:
        engine = RecordingEngine()
        pipeline = ObfuscationPipeline(workspaces, engine)

        with patch.object(workspaces, "allocate", wraps=workspaces.allocate) as allocate:
            job = await pipeline.run(source, "Strong")

        assert job.status == JobStatus.FAILED
        assert job.error.kind == EmptyInput.kind
        assert job.error.message == "Code cannot be empty"
        allocate.assert_not_called()
        assert engine.calls == []
        assert not workspaces.root.exists()

    @pytest.mark.asyncio
    async def test_obfuscate_raises(self, workspaces: WorkspaceManager) -> None:
        pipeline = ObfuscationPipeline(workspaces, RecordingEngine())

        with pytest.raises(EmptyInput):
            await pipeline.obfuscate("  ")


class TestFailures:
    @pytest.mark.asyncio
    async def test_engine_failure_releases_workspace(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine(error=EngineExecutionFailed("lua: syntax error"))
        pipeline = ObfuscationPipeline(workspaces, engine)

        job = await pipeline.run(SOURCE)

        assert job.status == JobStatus.FAILED
        assert job.error.kind == "EngineExecutionFailed"
        assert job.error.message == "lua: syntax error"
        assert job.result is None
        assert artifacts(workspaces.root) == []

    @pytest.mark.asyncio
    async def test_obfuscate_raises_the_recorded_kind(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine(error=EngineExecutionFailed("boom"))
        pipeline = ObfuscationPipeline(workspaces, engine)

        with pytest.raises(EngineExecutionFailed, match="boom"):
            await pipeline.obfuscate(SOURCE)

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates_after_release(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine(error=RuntimeError("engine bug"))
        pipeline = ObfuscationPipeline(workspaces, engine)

        with pytest.raises(RuntimeError, match="engine bug"):
            await pipeline.run(SOURCE)

        assert len(engine.calls) == 1
        assert artifacts(workspaces.root) == []

    @pytest.mark.asyncio
    async def test_storage_failure_is_a_job_failure(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        pipeline = ObfuscationPipeline(WorkspaceManager(blocker / "root"), RecordingEngine())

        job = await pipeline.run(SOURCE)

        assert job.status == JobStatus.FAILED
        assert job.error.kind == "StorageUnavailable"

    @pytest.mark.asyncio
    async def test_every_failure_is_an_obfuscation_error(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine(error=EngineExecutionFailed("x"))
        with pytest.raises(ObfuscationError):
            await ObfuscationPipeline(workspaces, engine).obfuscate(SOURCE)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_jobs_use_distinct_workspaces(self, workspaces: WorkspaceManager) -> None:
        engine = RecordingEngine()
        pipeline = ObfuscationPipeline(workspaces, engine, max_concurrent=3)
        sources = [f"local v = {i}\nprint(v)\n" for i in range(20)]

        jobs = await asyncio.gather(*(pipeline.run(s) for s in sources))

        assert all(job.status == JobStatus.SUCCEEDED for job in jobs)
        assert len({call[0].id for call in engine.calls}) == 20
        assert sorted(engine.staged) == sorted(sources)
        assert artifacts(workspaces.root) == []

    @pytest.mark.asyncio
    async def test_concurrent_builtin_jobs_are_independent(self, workspaces: WorkspaceManager) -> None:
        pipeline = ObfuscationPipeline(workspaces, BuiltinEngine())
        sources = [f'local n{i} = "value number {i}"\nprint(n{i})\n' for i in range(10)]

        jobs = await asyncio.gather(*(pipeline.run(s, "Weak") for s in sources))

        for i, job in enumerate(jobs):
            assert f"n{i}" in job.result.code


class TestExternalIntegration:
    @pytest.mark.asyncio
    async def test_external_engine_through_pipeline(
        self, workspaces: WorkspaceManager, fake_engine_command: list[str]
    ) -> None:
        pipeline = ObfuscationPipeline(workspaces, ExternalEngine(workspaces, fake_engine_command))

        result = await pipeline.obfuscate("print('hi')", "Strong")

        assert result.code == PROVENANCE_HEADER + "-- preset=Strong\nPRINT('HI')"
        assert artifacts(workspaces.root) == []

    @pytest.mark.asyncio
    async def test_external_failure_through_pipeline(
        self, workspaces: WorkspaceManager, fake_engine_command: list[str]
    ) -> None:
        engine = ExternalEngine(workspaces, fake_engine_command, env={"FAKE_ENGINE_MODE": "fail"})
        job = await ObfuscationPipeline(workspaces, engine).run(SOURCE)

        assert job.error.kind == "EngineExecutionFailed"
        assert artifacts(workspaces.root) == []
