"""Per-job workspace storage with periodic reclamation."""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from monlur.errors import ArtifactMissing, IOFault, StorageUnavailable

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 10 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60

ARTIFACT_SUFFIX = ".lua"

# errno values that mean the medium itself is out of service
_STORAGE_ERRNOS = {errno.ENOSPC, errno.EDQUOT, errno.EROFS}


@dataclass(frozen=True)
class WorkspaceHandle:
    """Artifact paths of one job's workspace.

    None of the paths exist when the handle is allocated.
    """

    id: str
    root: Path

    def artifact(self, role: str) -> Path:
        return self.root / f"{self.id}.{role}{ARTIFACT_SUFFIX}"

    @property
    def input_path(self) -> Path:
        return self.artifact("input")

    @property
    def output_path(self) -> Path:
        return self.artifact("output")

    @property
    def script_path(self) -> Path:
        return self.artifact("script")


def _storage_error(exc: OSError, action: str, path: Path) -> Exception:
    if exc.errno in _STORAGE_ERRNOS:
        return StorageUnavailable(f"Cannot {action} {path}: {exc}")
    return IOFault(f"Cannot {action} {path}: {exc}")


class WorkspaceManager:
    """Allocates and reclaims isolated per-job storage under a shared root.

    Each job gets a handle keyed by a 128-bit random identifier, so
    concurrent jobs never touch the same files. ``release`` removes a job's
    artifacts on the normal path; a background sweep removes anything older
    than the retention window that a crash or missed cleanup left behind.
    """

    def __init__(
        self,
        root: Path,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self.root = Path(root).resolve()
        self.retention_seconds = retention_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._sweep_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Per-job operations
    # ------------------------------------------------------------------

    def allocate(self) -> WorkspaceHandle:
        """Create a handle for a fresh, uniquely named workspace.

        Raises:
            StorageUnavailable: If the shared root cannot be created.
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot create workspace root {self.root}: {exc}") from exc

        handle = WorkspaceHandle(id=secrets.token_hex(16), root=self.root)
        logger.debug("Allocated workspace %s", handle.id)
        return handle

    def write(self, path: Path, content: str) -> None:
        """Persist ``content`` to an artifact path atomically.

        The content lands in a sibling temp file first and is moved into
        place with ``os.replace``, so readers never see a partial artifact.

        Raises:
            StorageUnavailable: If the medium is full or read-only.
            IOFault: For any other write failure.
        """
        path = Path(path)
        tmp_path = path.with_name(f"{path.name}.{secrets.token_hex(4)}.tmp")
        try:
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise _storage_error(exc, "write", path) from exc

    def read(self, path: Path) -> str:
        """Read an artifact.

        Raises:
            ArtifactMissing: If the artifact was never produced.
            IOFault: For any other read failure.
        """
        path = Path(path)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ArtifactMissing(f"Expected artifact was not produced: {path.name}") from exc
        except UnicodeDecodeError as exc:
            raise IOFault(f"Artifact {path.name} is not valid UTF-8: {exc}") from exc
        except OSError as exc:
            raise _storage_error(exc, "read", path) from exc

    def release(self, handle: WorkspaceHandle) -> None:
        """Remove every artifact of ``handle``. Never raises."""
        try:
            paths = list(self.root.glob(f"{handle.id}.*"))
        except OSError as exc:
            logger.warning("Could not list workspace %s for release: %s", handle.id, exc)
            return

        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove %s, leaving it to the sweep: %s", path, exc)
        logger.debug("Released workspace %s", handle.id)

    # ------------------------------------------------------------------
    # Reclamation
    # ------------------------------------------------------------------

    def sweep(self, retention_seconds: float | None = None) -> int:
        """Remove artifacts older than the retention window.

        Args:
            retention_seconds: Maximum artifact age; defaults to the
                manager's retention window.

        Returns:
            Number of artifacts removed.
        """
        retention = self.retention_seconds if retention_seconds is None else retention_seconds
        cutoff = time.time() - retention
        removed = 0

        try:
            entries = list(os.scandir(self.root))
        except FileNotFoundError:
            return 0
        except OSError as exc:
            logger.error("Error scanning workspace root %s: %s", self.root, exc)
            return 0

        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if entry.stat(follow_symlinks=False).st_mtime > cutoff:
                    continue
                os.unlink(entry.path)
                removed += 1
            except FileNotFoundError:
                # released by its job while we were scanning
                continue
            except OSError as exc:
                logger.error("Error removing stale artifact %s: %s", entry.path, exc)

        if removed:
            logger.info("Sweep removed %d stale artifact(s) from %s", removed, self.root)
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception:
                logger.exception("Workspace sweep failed")

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self.root.mkdir(parents=True, exist_ok=True)
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.info(
            "Workspace sweep started (root=%s, every %ss, retention %ss)",
            self.root,
            self.sweep_interval_seconds,
            self.retention_seconds,
        )

    async def stop(self) -> None:
        """Cancel the periodic sweep."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Workspace sweep stopped")

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()
