"""Lua source scanning for the built-in engine.

Splits source text into code, quoted strings, long-bracket strings and
comments so that later stages rewrite only what they are meant to. The
scanner is deliberately forgiving: an unterminated literal is treated as
plain code instead of an error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class SegmentKind(str, Enum):
    CODE = "code"
    STRING = "string"
    LONG_STRING = "long_string"
    COMMENT = "comment"


@dataclass(frozen=True)
class Segment:
    """A contiguous slice of the source."""

    kind: SegmentKind
    text: str

    @property
    def content(self) -> str:
        """Raw content of a quoted string, without the quotes."""
        if self.kind != SegmentKind.STRING:
            raise ValueError("content is only defined for quoted strings")
        return self.text[1:-1]


LUA_KEYWORDS = frozenset(
    {
        "and", "break", "do", "else", "elseif", "end", "false", "for",
        "function", "goto", "if", "in", "local", "nil", "not", "or",
        "repeat", "return", "then", "true", "until", "while",
    }
)

# Standard globals, commonly cached in locals (``local pairs = pairs``)
LUA_GLOBALS = frozenset(
    {
        "_G", "_ENV", "_VERSION", "assert", "collectgarbage", "coroutine",
        "debug", "dofile", "error", "getmetatable", "io", "ipairs", "load",
        "loadfile", "loadstring", "math", "module", "next", "os", "package",
        "pairs", "pcall", "print", "rawequal", "rawget", "rawlen", "rawset",
        "require", "select", "setmetatable", "string", "table", "tonumber",
        "tostring", "type", "unpack", "utf8", "xpcall",
    }
)

_INTERESTING = re.compile(r"--|[\"'\[]")
_LONG_OPEN = re.compile(r"\[(=*)\[")


def _long_bracket_end(source: str, start: int) -> int | None:
    """End index (exclusive) of a long bracket opening at ``start``."""
    m = _LONG_OPEN.match(source, start)
    if m is None:
        return None
    close = "]" + m.group(1) + "]"
    end = source.find(close, m.end())
    if end == -1:
        return None
    return end + len(close)


def _quoted_end(source: str, start: int) -> int | None:
    """End index (exclusive) of the quoted literal opening at ``start``."""
    quote = source[start]
    i = start + 1
    n = len(source)
    while i < n:
        c = source[i]
        if c == "\\":
            if source.startswith("z", i + 1):
                i += 2
                while i < n and source[i].isspace():
                    i += 1
                continue
            i += 3 if source.startswith("\r\n", i + 1) else 2
            continue
        if c == quote:
            return i + 1
        if c == "\n":
            return None
        i += 1
    return None


def scan(source: str) -> list[Segment]:
    """Split ``source`` into segments. Concatenating their texts gives ``source`` back."""
    segments: list[Segment] = []
    code_start = 0
    pos = 0

    def flush(until: int) -> None:
        if until > code_start:
            segments.append(Segment(SegmentKind.CODE, source[code_start:until]))

    while True:
        m = _INTERESTING.search(source, pos)
        if m is None:
            break
        start = m.start()
        token = m.group(0)

        if token == "--":
            end = _long_bracket_end(source, start + 2)
            if end is None:
                newline = source.find("\n", start)
                end = len(source) if newline == -1 else newline
            kind = SegmentKind.COMMENT
        elif token == "[":
            end = _long_bracket_end(source, start)
            kind = SegmentKind.LONG_STRING
        else:
            end = _quoted_end(source, start)
            kind = SegmentKind.STRING

        if end is None:
            pos = start + 1
            continue

        flush(start)
        segments.append(Segment(kind, source[start:end]))
        code_start = pos = end

    flush(len(source))
    return segments


_SIMPLE_ESCAPES = {
    "a": 7, "b": 8, "f": 12, "n": 10, "r": 13, "t": 9, "v": 11,
    "\\": 92, '"': 34, "'": 39, "\n": 10,
}
_HEX_ESCAPE = re.compile(r"[0-9A-Fa-f]{2}")
_DEC_ESCAPE = re.compile(r"[0-9]{1,3}")
_UTF8_ESCAPE = re.compile(r"\{([0-9A-Fa-f]+)\}")


def decode_string(content: str) -> bytes:
    """Interpret Lua escape sequences and return the literal's byte value.

    Raises:
        ValueError: If an escape cannot be represented (out-of-range
            decimal or code point escapes).
    """
    out = bytearray()
    i = 0
    n = len(content)
    while i < n:
        c = content[i]
        if c != "\\":
            out += c.encode("utf-8")
            i += 1
            continue
        i += 1
        if i >= n:
            raise ValueError("dangling escape")
        e = content[i]
        if e in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[e])
            i += 1
            # \<CR><LF> is a single line break
            if e == "\n" and content.startswith("\r", i):
                i += 1
        elif e == "\r":
            out.append(10)
            i += 2 if content.startswith("\n", i + 1) else 1
        elif e == "z":
            i += 1
            while i < n and content[i].isspace():
                i += 1
        elif e == "x":
            m = _HEX_ESCAPE.match(content, i + 1)
            if m is None:
                raise ValueError("malformed \\x escape")
            out.append(int(m.group(0), 16))
            i = m.end()
        elif e == "u":
            m = _UTF8_ESCAPE.match(content, i + 1)
            if m is None:
                raise ValueError("malformed \\u escape")
            try:
                out += chr(int(m.group(1), 16)).encode("utf-8", "surrogatepass")
            except (OverflowError, ValueError) as exc:
                raise ValueError("code point escape out of range") from exc
            i = m.end()
        elif e in "0123456789":
            m = _DEC_ESCAPE.match(content, i)
            value = int(m.group(0))
            if value > 255:
                raise ValueError("decimal escape too large")
            out.append(value)
            i = m.end()
        else:
            # Lua 5.1 keeps the character of an unknown escape
            out += e.encode("utf-8")
            i += 1
    return bytes(out)
