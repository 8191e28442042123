"""Test helpers."""

from __future__ import annotations

import re
from pathlib import Path

from lupa import LuaRuntime

_ENCODED = re.compile(r"local t=\{([\d,]*)\}")


def decode_encoded_literals(code: str) -> list[bytes]:
    """Byte values rebuilt by every encoded literal in ``code``, in order."""
    return [
        bytes(int(b) for b in m.group(1).split(",") if b)
        for m in _ENCODED.finditer(code)
    ]


_CAPTURE_PRINT = """
__printed = {}
print = function(...)
  local parts = {}
  for i = 1, select("#", ...) do
    parts[#parts + 1] = tostring((select(i, ...)))
  end
  __printed[#__printed + 1] = table.concat(parts, "\\t")
end
"""


def run_lua(code: str) -> list[str]:
    """Execute ``code`` in a fresh Lua state and return the lines it printed."""
    lua = LuaRuntime(unpack_returned_tuples=True)
    lua.execute(_CAPTURE_PRINT)
    lua.execute(code)
    printed = lua.globals().__printed
    return [printed[i] for i in range(1, len(printed) + 1)]


def artifacts(root: Path) -> list[Path]:
    """Files left under a workspace root."""
    if not root.exists():
        return []
    return sorted(root.iterdir())
