"""Mønlur - Lua obfuscation service."""

__version__ = "1.0.0"
