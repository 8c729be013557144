"""Normalization primitives shared between the dialogue and catalog pipelines."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import re
from typing import Dict, List, Tuple

import yaml

_RE_WHITESPACE = re.compile(r"\s+")
_RE_NON_ALNUM = re.compile(r"[^0-9a-zåäöéü]+")
_DEFAULT_FIXES_PATH = Path(__file__).resolve().parent / "transcription_fixes.yaml"


def normalize_query(text: str) -> str:
    """Return a deterministic representation of *text* for matching.

    The procedure lowercases, strips characters other than digits and Swedish
    letters (converted to spaces) and collapses duplicate whitespace. Unlike
    the ASCII folding used for product search, å/ä/ö are kept because they
    distinguish words ("tak" vs "täck"). Empty or whitespace-only inputs yield
    an empty string.
    """

    if not text:
        return ""

    normalized = text.strip().lower()
    normalized = _RE_NON_ALNUM.sub(" ", normalized)
    normalized = _RE_WHITESPACE.sub(" ", normalized).strip()
    return normalized


def tokenize(text: str) -> List[str]:
    """Split *text* into normalized words, preserving order and duplicates."""

    normalized = normalize_query(text)
    if not normalized:
        return []
    return [tok for tok in _RE_WHITESPACE.split(normalized) if tok]


def load_transcription_fixes(path: str | Path) -> Dict[str, List[str]]:
    """Load and normalize a transcription-fix mapping from *path*.

    The YAML schema is ``{correct phrase: [misheard variant, ...]}``. Keys and
    variants are normalized via :func:`normalize_query`; empty entries and
    variants identical to their key are ignored.
    """

    content = Path(path).read_text(encoding="utf-8")
    loaded = yaml.safe_load(content) or {}
    if not isinstance(loaded, dict):
        raise ValueError("transcription fixes YAML must define a mapping")

    normalized_map: Dict[str, List[str]] = {}
    for correct_raw, variants in loaded.items():
        correct = normalize_query(str(correct_raw))
        if not correct:
            continue
        if variants is None:
            raw_variants: List[str] = []
        elif isinstance(variants, list):
            raw_variants = [str(item) for item in variants]
        else:
            raw_variants = [str(variants)]
        collected: List[str] = []
        for variant in raw_variants:
            normalized_variant = normalize_query(variant)
            if normalized_variant and normalized_variant != correct:
                collected.append(normalized_variant)
        if collected:
            normalized_map[correct] = collected
    return normalized_map


def apply_transcription_fixes(text: str, fixes: Dict[str, List[str]] | None = None) -> str:
    """Rewrite known speech-to-text mishearings in *text*.

    The text is normalized first. Longer variants are replaced before shorter
    ones so "målarbänkar" is not half-rewritten by "målarbänka". When *fixes*
    is omitted the bundled table is used.
    """

    normalized = normalize_query(text)
    if not normalized:
        return ""
    rules = _compile_fixes(fixes) if fixes is not None else _default_rules()
    for pattern, replacement in rules:
        normalized = pattern.sub(replacement, normalized)
    return normalized


def _compile_fixes(fixes: Dict[str, List[str]]) -> Tuple[Tuple[re.Pattern[str], str], ...]:
    pairs = [(variant, correct) for correct, variants in fixes.items() for variant in variants]
    pairs.sort(key=lambda pair: len(pair[0]), reverse=True)
    return tuple(
        (re.compile(rf"(?<!\w){re.escape(variant)}(?!\w)"), correct)
        for variant, correct in pairs
    )


@lru_cache(maxsize=1)
def _default_rules() -> Tuple[Tuple[re.Pattern[str], str], ...]:
    return _compile_fixes(load_transcription_fixes(_DEFAULT_FIXES_PATH))
