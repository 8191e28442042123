"""Built-in in-process transform engine.

Three stages run over the scanned source, in order:

1. quoted string literals of 3+ characters are rebuilt at runtime from
   their byte values,
2. (Medium, Strong) ``local`` names are replaced by short names drawn
   from the confusable alphabet ``l1I``,
3. (Strong) an inert function declaration is prepended.

The transform is deterministic: the same source and preset always give
byte-identical output.
"""

from __future__ import annotations

import asyncio
import logging
import re

from monlur.engines.lua_source import (
    LUA_GLOBALS,
    LUA_KEYWORDS,
    Segment,
    SegmentKind,
    decode_string,
    scan,
)
from monlur.models.preset import Preset
from monlur.provenance import PROVENANCE_HEADER
from monlur.workspace.manager import WorkspaceHandle

logger = logging.getLogger(__name__)

NAME_ALPHABET = "l1I"
MIN_ENCODED_LENGTH = 3
JUNK_INDEX = 999
RESERVED_NAMES = LUA_KEYWORDS | LUA_GLOBALS

RENAMING_PRESETS = frozenset({Preset.MEDIUM, Preset.STRONG})

_DECLARATION = re.compile(
    r"\blocal\s+(?:function\s+([A-Za-z_]\w*)|([A-Za-z_]\w*(?:\s*,\s*[A-Za-z_]\w*)*))"
)
_TOKEN = re.compile(
    r"(?P<num>\.?\d[\w.]*)"
    r"|(?P<name>[A-Za-z_]\w*)"
    r"|(?P<space>\s+)"
    r"|(?P<op>\.\.\.?|::|[=~<>]=|.)",
    re.DOTALL,
)
_NAME = re.compile(r"[A-Za-z_]\w*")

# string.char is reached through the string metatable, so a local named
# ``string`` in the source cannot shadow it
_DECODER = (
    "(function()local t={{{codes}}}local c,s=('').char,''"
    "for i=1,#t do s=s..c(t[i])end return s end)()"
)


def synthetic_name(index: int) -> str:
    """Name for the ``index``-th renamed identifier.

    ``index`` is written in base 3 over :data:`NAME_ALPHABET`, most
    significant symbol first, behind an underscore: 0 -> ``_l``,
    1 -> ``_1``, 3 -> ``_1l``.
    """
    if index < 0:
        raise ValueError("index must be non-negative")
    base = len(NAME_ALPHABET)
    symbols: list[str] = []
    n = index
    while True:
        n, digit = divmod(n, base)
        symbols.append(NAME_ALPHABET[digit])
        if n == 0:
            break
    return "_" + "".join(reversed(symbols))


def encode_string_literal(literal: str, parenthesize: bool = False) -> str:
    """Replace a quoted literal by an expression that rebuilds it.

    Literals whose raw content is shorter than :data:`MIN_ENCODED_LENGTH`
    come back unchanged, as do literals with escapes that cannot be
    decoded.
    """
    content = literal[1:-1]
    if len(content) < MIN_ENCODED_LENGTH:
        return literal
    try:
        value = decode_string(content)
    except ValueError:
        logger.debug("Leaving undecodable literal as-is: %.40s", literal)
        return literal

    expression = _DECODER.format(codes=",".join(str(b) for b in value))
    # print"abc" must stay a call with one argument
    return f"({expression})" if parenthesize else expression


def free_references(text: str) -> set[str]:
    """Names in ``text`` that are not field, method or label names."""
    refs: set[str] = set()
    prev: str | None = None
    for m in _TOKEN.finditer(text):
        kind, tok = m.lastgroup, m.group()
        if kind == "space":
            continue
        if kind == "name" and prev not in (".", ":", "::", "goto"):
            refs.add(tok)
        prev = tok
    return refs


def collect_local_names(segments: list[Segment]) -> list[str]:
    """``local`` declarations in first-seen order.

    Reserved words and standard globals are excluded. So is any name that
    is used before its first declaration or inside that declaration's own
    statement (``local helper = helper or fallback``): those uses refer to
    a global, and renaming them would change what they resolve to.
    """
    names: list[str] = []
    seen: set[str] = set()
    referenced: set[str] = set()
    for segment in segments:
        if segment.kind != SegmentKind.CODE:
            continue
        text = segment.text
        pos = 0
        for m in _DECLARATION.finditer(text):
            referenced |= free_references(text[pos:m.start()])
            pos = m.end()
            statement = re.split(r"[\n;]", text[m.end():], maxsplit=1)[0]
            own = free_references(statement) if m.group(2) else set()

            declared = [m.group(1)] if m.group(1) else m.group(2).split(",")
            for name in (n.strip() for n in declared):
                if not name or name in RESERVED_NAMES or name in seen:
                    continue
                seen.add(name)
                if name in referenced or name in own:
                    logger.debug("Not renaming %r: it also refers to a global", name)
                    continue
                names.append(name)
        referenced |= free_references(text[pos:])
    return names


def existing_names(segments: list[Segment]) -> set[str]:
    """Every identifier-shaped word in the code segments."""
    taken: set[str] = set()
    for segment in segments:
        if segment.kind == SegmentKind.CODE:
            taken.update(_NAME.findall(segment.text))
    return taken


def build_rename_map(names: list[str], taken: set[str]) -> dict[str, str]:
    """Assign synthetic names by index, skipping any already in ``taken``."""
    mapping: dict[str, str] = {}
    index = 0
    for name in names:
        candidate = synthetic_name(index)
        while candidate in taken:
            index += 1
            candidate = synthetic_name(index)
        mapping[name] = candidate
        index += 1
    return mapping


def junk_declaration(taken: set[str]) -> str:
    """An inert, never-called function bound to an unused synthetic name."""
    index = JUNK_INDEX
    while synthetic_name(index) in taken:
        index += 1
    return f"local {synthetic_name(index)}=function()return nil end;"


class _Renamer:
    """Rewrites names in code segments, tracking just enough context.

    Field and method names (``obj.name``, ``obj:name``), labels and table
    constructor keys (``{name = ...}``) are left alone.
    """

    def __init__(self, mapping: dict[str, str]) -> None:
        self.mapping = mapping
        self.renamed = 0
        self._brackets: list[str] = []
        self._prev: str | None = None

    def feed_code(self, text: str) -> str:
        tokens = [(m.lastgroup, m.group()) for m in _TOKEN.finditer(text)]
        out: list[str] = []
        for i, (kind, tok) in enumerate(tokens):
            if kind == "name" and tok in self.mapping and not self._is_member(tokens, i):
                out.append(self.mapping[tok])
                self.renamed += 1
            else:
                out.append(tok)

            if kind == "space":
                continue
            if tok in ("(", "{", "["):
                self._brackets.append(tok)
            elif tok in (")", "}", "]") and self._brackets:
                self._brackets.pop()
            self._prev = tok
        return "".join(out)

    def feed_literal(self) -> None:
        self._prev = '"'

    def _is_member(self, tokens: list[tuple[str | None, str]], i: int) -> bool:
        if self._prev in (".", ":", "::", "goto"):
            return True
        if self._brackets and self._brackets[-1] == "{" and self._prev in ("{", ",", ";"):
            following = next((t for k, t in tokens[i + 1:] if k != "space"), None)
            return following == "="
        return False


def _is_call_position(last: str | None) -> bool:
    return last is not None and (last.isalnum() or last in "_)]\"'")


def transform(source: str, preset: Preset | str | None = Preset.MEDIUM) -> str:
    """Obfuscate Lua ``source`` and return it behind the provenance header.

    ``Minify`` is not implemented here and runs as ``Medium``; any other
    unrecognized preset is normalized the same way. Never fails: source
    that does not scan cleanly is treated as opaque code.
    """
    preset = Preset.normalize(preset)
    if preset == Preset.MINIFY:
        preset = Preset.MEDIUM

    segments = scan(source)
    taken = existing_names(segments)

    mapping: dict[str, str] = {}
    if preset in RENAMING_PRESETS:
        mapping = build_rename_map(collect_local_names(segments), taken)
    renamer = _Renamer(mapping)

    parts: list[str] = []
    encoded = 0
    last: str | None = None
    for segment in segments:
        if segment.kind == SegmentKind.CODE:
            parts.append(renamer.feed_code(segment.text))
            stripped = segment.text.rstrip()
            if stripped:
                last = stripped[-1]
        elif segment.kind == SegmentKind.STRING:
            replacement = encode_string_literal(segment.text, _is_call_position(last))
            encoded += replacement != segment.text
            parts.append(replacement)
            renamer.feed_literal()
            last = '"'
        elif segment.kind == SegmentKind.LONG_STRING:
            parts.append(segment.text)
            renamer.feed_literal()
            last = "]"
        else:
            parts.append(segment.text)

    body = "".join(parts)
    if preset == Preset.STRONG:
        body = junk_declaration(taken | set(mapping.values())) + body

    logger.debug(
        "Built-in transform (%s): %d literal(s) encoded, %d local(s) renamed, %d reference(s) rewritten",
        preset.value,
        encoded,
        len(mapping),
        renamer.renamed,
    )
    return PROVENANCE_HEADER + body


class BuiltinEngine:
    """In-process engine; the workspace is not needed for the transform itself."""

    @property
    def name(self) -> str:
        return "builtin"

    async def execute(self, workspace: WorkspaceHandle, source: str, preset: Preset) -> str:
        return await asyncio.to_thread(transform, source, preset)
