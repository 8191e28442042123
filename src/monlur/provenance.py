"""Provenance header stamped on every obfuscated output."""

TOOL_NAME = "Mønlur Obfuscator"
HEADER_VERSION = "v1.0"

HEADER_LINE = f"-- This file was protected using {TOOL_NAME} [{HEADER_VERSION}]"
PROVENANCE_HEADER = HEADER_LINE + "\n\n"


def has_header(code: str) -> bool:
    """Whether ``code`` already opens with the provenance marker."""
    return code.lstrip("\ufeff \t\r\n").startswith(HEADER_LINE)


def stamp_header(code: str) -> str:
    """Prepend the provenance header unless it is already there."""
    if has_header(code):
        return code
    return PROVENANCE_HEADER + code
