"""Adapter for an out-of-process transform tool.

The tool is a black box honouring one contract::

    <command> --preset <Preset> <input path> --out <output path>

It writes the obfuscated text to the output path and exits 0. Anything
else is normalized into the pipeline's error kinds. No retries are made.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import subprocess
import time
from collections.abc import Iterable, Mapping
from pathlib import Path
from string import Template

from monlur.errors import (
    ArtifactMissing,
    EngineExecutionFailed,
    EngineTimeout,
    EngineUnavailable,
)
from monlur.models.preset import Preset
from monlur.workspace.manager import WorkspaceHandle, WorkspaceManager

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300
_DIAGNOSTIC_CHARS = 500


def _tail(text: str | bytes | None, limit: int = _DIAGNOSTIC_CHARS) -> str:
    if not text:
        return ""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return text.strip()[-limit:]


class ExternalEngine:
    """Runs an external obfuscator CLI against a job's workspace.

    Args:
        workspaces: Manager owning the workspaces this engine reads and
            writes.
        command: Executable and leading arguments, e.g. ``["lua", "cli.lua"]``.
        timeout: Default deadline in seconds.
        workdir: Working directory for the tool.
        wrapper: Optional glue-script template. When set it is rendered with
            ``$preset``, ``$input`` and ``$output`` into the workspace's
            script artifact, and ``<command> <script>`` runs instead of the
            plain CLI contract.
        presets: Preset names the tool accepts; defaults to all of them.
        env: Extra environment variables for the tool.
    """

    def __init__(
        self,
        workspaces: WorkspaceManager,
        command: list[str],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        workdir: Path | None = None,
        wrapper: str | None = None,
        presets: Iterable[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        if not command:
            raise ValueError("External engine command must not be empty")
        self._workspaces = workspaces
        self.command = list(command)
        self.timeout = timeout
        self.workdir = Path(workdir) if workdir else None
        self.wrapper = wrapper
        self.presets = (
            {p.value for p in Preset} if presets is None else {Preset.normalize(p).value for p in presets}
        )
        self.env = dict(env or {})

        if not self.is_available:
            logger.warning("ExternalEngine: '%s' not found, jobs will fail until it is installed", self.command[0])

    @property
    def name(self) -> str:
        return "external"

    @property
    def is_available(self) -> bool:
        """Whether the engine executable can be found."""
        executable = self.command[0]
        if shutil.which(executable):
            return True
        if self.workdir is not None:
            candidate = self.workdir / executable
            return candidate.is_file() and os.access(candidate, os.X_OK)
        return False

    def build_command(self, workspace: WorkspaceHandle, preset: Preset) -> list[str]:
        """Command line for one run; renders the wrapper script if configured."""
        input_path = str(workspace.input_path.resolve())
        output_path = str(workspace.output_path.resolve())

        if self.wrapper is None:
            return [*self.command, "--preset", preset.value, input_path, "--out", output_path]

        try:
            script = Template(self.wrapper).substitute(
                preset=preset.value, input=input_path, output=output_path
            )
        except (KeyError, ValueError) as exc:
            raise EngineUnavailable(f"Invalid engine wrapper template: {exc}") from exc
        self._workspaces.write(workspace.script_path, script)
        return [*self.command, str(workspace.script_path.resolve())]

    async def invoke(
        self,
        workspace: WorkspaceHandle,
        preset: Preset,
        deadline: float | None = None,
    ) -> None:
        """Run the tool on the workspace's staged input.

        Args:
            workspace: Workspace whose input artifact holds the source.
            preset: Strength preset passed to the tool.
            deadline: Seconds to wait before killing the tool; defaults to
                the engine timeout.

        Raises:
            EngineExecutionFailed: Unsupported preset or non-zero exit.
            EngineTimeout: The deadline elapsed; the tool has been killed.
            EngineUnavailable: The tool could not be launched.
            ArtifactMissing: The tool exited 0 without writing its output.
        """
        preset = Preset.normalize(preset)
        if preset.value not in self.presets:
            raise EngineExecutionFailed(
                f"Preset {preset.value} is not supported by the external engine "
                f"(supported: {', '.join(sorted(self.presets))})"
            )

        timeout = self.timeout if deadline is None else deadline
        cmd = self.build_command(workspace, preset)
        env = {**os.environ, **self.env} if self.env else None

        logger.info(
            "Running external engine for workspace %s (preset=%s, deadline=%ss)",
            workspace.id,
            preset.value,
            timeout,
        )
        started = time.monotonic()
        try:
            # subprocess.run kills the child when the timeout fires
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
                cwd=self.workdir,
                env=env,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning(
                "External engine timed out after %ss for workspace %s; stderr: %s",
                timeout,
                workspace.id,
                _tail(exc.stderr),
            )
            raise EngineTimeout(f"External engine timed out after {timeout}s") from exc
        except OSError as exc:
            raise EngineUnavailable(f"Cannot launch external engine '{cmd[0]}': {exc}") from exc

        elapsed = time.monotonic() - started
        logger.debug("External engine stdout: %s", _tail(result.stdout))
        logger.debug("External engine stderr: %s", _tail(result.stderr))

        if result.returncode != 0:
            diagnostics = _tail(result.stderr) or _tail(result.stdout)
            raise EngineExecutionFailed(
                f"External engine exited with code {result.returncode}: {diagnostics}"
            )

        if not workspace.output_path.exists():
            raise ArtifactMissing(
                f"External engine exited 0 without writing {workspace.output_path.name}"
            )

        logger.info("External engine finished workspace %s in %.2fs", workspace.id, elapsed)

    async def execute(self, workspace: WorkspaceHandle, source: str, preset: Preset) -> str:
        await self.invoke(workspace, preset)
        return self._workspaces.read(workspace.output_path)
