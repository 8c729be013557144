"""Utility helpers for lightweight text normalization and Swedish numerals."""

from .numerals import parse_decimal, resolve_numerals
from .text import (
    apply_transcription_fixes,
    load_transcription_fixes,
    normalize_query,
    tokenize,
)

__all__ = [
    "apply_transcription_fixes",
    "load_transcription_fixes",
    "normalize_query",
    "parse_decimal",
    "resolve_numerals",
    "tokenize",
]
