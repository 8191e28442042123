"""Obfuscation strength presets."""

from __future__ import annotations

from enum import Enum
from typing import Any


class Preset(str, Enum):
    """Named strength configuration controlling which transform stages run."""

    WEAK = "Weak"
    MEDIUM = "Medium"
    STRONG = "Strong"
    MINIFY = "Minify"

    @classmethod
    def default(cls) -> Preset:
        return cls.MEDIUM

    @classmethod
    def normalize(cls, value: Any) -> Preset:
        """Map any caller-supplied value to a preset.

        Names match case-insensitively. Anything unrecognized, including
        ``None``, becomes :meth:`default`.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for preset in cls:
                if preset.value.lower() == wanted:
                    return preset
        return cls.default()

    @classmethod
    def is_known(cls, value: Any) -> bool:
        """Whether ``value`` names a preset without falling back."""
        if isinstance(value, cls):
            return True
        if not isinstance(value, str):
            return False
        return value.strip().lower() in {p.value.lower() for p in cls}
