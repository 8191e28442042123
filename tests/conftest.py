"""Shared fixtures."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from monlur.workspace import WorkspaceManager

FAKE_ENGINE = '''\
import argparse
import os
import logging
import sys
from collections.abc import Iterator
import time

parser = argparse.ArgumentParser()
parser.add_argument("--preset", required=True)
parser.add_argument("input")
parser.add_argument("--out", required=True)
args = parser.parse_args()

mode = os.environ.get("FAKE_ENGINE_MODE", "ok")
if mode == "fail":
    print("lua: input:3: unexpected symbol near 'end'", file=sys.stderr)
    sys.exit(3)
if mode == "hang":
    with open(os.environ["FAKE_ENGINE_PIDFILE"], "w") as f:
        f.write(str(os.getpid()))
    time.sleep(60)
if mode == "silent":
    sys.exit(0)

with open(args.input, encoding="utf-8") as f:
    source = f.read()
with open(args.out, "w", encoding="utf-8") as f:
    f.write("-- preset=" + args.preset + "\\n" + source.upper())
'''


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    return tmp_path / "workspaces"


@pytest.fixture
def workspaces(workspace_root: Path) -> WorkspaceManager:
    return WorkspaceManager(workspace_root)


@pytest.fixture
def fake_engine_command(tmp_path: Path) -> list[str]:
    script = tmp_path / "fake_engine.py"
    script.write_text(FAKE_ENGINE, encoding="utf-8")
    return [sys.executable, str(script)]


@pytest.fixture
def root_logger() -> Iterator[logging.Logger]:
    """The root logger, with its handlers and level restored afterwards."""
    logger = logging.getLogger()
    handlers, level = logger.handlers[:], logger.level
    yield logger
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
