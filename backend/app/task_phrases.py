"""Extraction of normalized painting-task phrases from spoken Swedish.

The parser is table driven: :data:`TASK_PATTERNS` lists ``(matcher,
canonical phrase)`` entries from most to least specific. Every entry that
matches contributes its canonical phrase and blanks the words it consumed, so
a later, more generic entry cannot match the same words again. That is how
"grundmåla taket" yields only ``grundmåla tak`` and not also ``grundmåla``.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import List, Optional, Tuple

from catalog.records import Surface
from shared.normalize.numerals import NUMBER_WORDS
from shared.normalize.text import apply_transcription_fixes, normalize_query

_B = r"(?<!\w)"
_E = r"(?!\w)"
_FILL = r"(?:(?:om|alla|hela|de|det|den)\s+)*"

_WALLS = r"vägg(?:ar|arna|en)?"
_CEILING = r"tak(?:et|en)?"
_FLOOR = r"golv(?:et|en)?"
_DOORS = r"dörr(?:ar|arna|en)?"
_WINDOWS = r"fönst(?:er|ret|ren|erna)"
_TRIM = r"(?:tak|golv)?list(?:er|erna|en)?"
_RADIATORS = r"(?:radiator(?:er|erna|n)?|element(?:en)?)"

_SURFACES = "|".join((_TRIM, _WALLS, _CEILING, _FLOOR, _DOORS, _WINDOWS, _RADIATORS))
_SHARED_VERBS = r"grundmåla|(?:bred)?spackla|måla|lacka"

# "måla väggarna och taket": one verb, several surfaces.
_RE_SHARED_VERB = re.compile(
    rf"{_B}(?P<verb>{_SHARED_VERBS})\s+{_FILL}(?:{_SURFACES}){_E}"
    rf"(?:\s+och\s+{_FILL}(?:{_SURFACES}){_E})+"
)
_RE_JOINED_SURFACE = re.compile(rf"(\s+och\s+)(?={_FILL}(?:{_SURFACES}){_E})")

_LAYER_WORDS = r"lager|strykningar|strykning|skikt|gånger|gång|ggr"
_COUNT_WORDS = "|".join(
    re.escape(word) for word in sorted(NUMBER_WORDS, key=len, reverse=True)
)
_RE_LAYERS = re.compile(
    rf"\(?\s*(?<![\w.,])(?P<count>\d+|{_COUNT_WORDS})\s*(?:{_LAYER_WORDS}){_E}\s*\)?"
)


@dataclass(frozen=True)
class TaskPattern:
    phrase: str
    matcher: re.Pattern[str]


def _verb(verb: str, target: str) -> re.Pattern[str]:
    return re.compile(rf"{_B}{verb}\s+{_FILL}{target}{_E}")


def _word(word: str) -> re.Pattern[str]:
    return re.compile(rf"{_B}{word}{_E}")


TASK_PATTERNS: Tuple[TaskPattern, ...] = (
    TaskPattern("grundmåla tak", _verb("grundmåla", _CEILING)),
    TaskPattern("grundmåla väggar", _verb("grundmåla", _WALLS)),
    TaskPattern("grundmåla", _word("(?:grundmåla|grundera)")),
    TaskPattern("spackla väggar", _verb("(?:bred)?spackla", _WALLS)),
    TaskPattern("spackla tak", _verb("(?:bred)?spackla", _CEILING)),
    TaskPattern("spackla", _word("(?:bred)?spackla")),
    TaskPattern("slipa", _word("slipa")),
    TaskPattern("måla lister", _verb("måla", _TRIM)),
    TaskPattern("måla väggar", _verb("måla", _WALLS)),
    TaskPattern("måla tak", _verb("måla", _CEILING)),
    TaskPattern("måla golv", _verb("måla", _FLOOR)),
    TaskPattern("måla dörrar", _verb("måla", _DOORS)),
    TaskPattern("måla fönster", _verb("måla", _WINDOWS)),
    TaskPattern("måla radiatorer", _verb("måla", _RADIATORS)),
    TaskPattern("lacka dörrar", _verb("lacka", _DOORS)),
    TaskPattern("lacka", _word("lacka")),
    TaskPattern("tapetsera", _word("tapetsera")),
)

# Compound keywords first so "taklist" is trim, not ceiling.
_SURFACE_KEYWORDS: Tuple[Tuple[str, Surface], ...] = (
    ("taklist", Surface.LIST),
    ("golvlist", Surface.LIST),
    ("list", Surface.LIST),
    ("vägg", Surface.VAGG),
    ("tak", Surface.TAK),
    ("golv", Surface.GOLV),
    ("dörr", Surface.DORR),
    ("fönst", Surface.FONSTER),
)


@dataclass(frozen=True)
class TaskPhrase:
    phrase: str
    layers: Optional[int] = None

    @property
    def display(self) -> str:
        if self.layers:
            return f"{self.phrase} ({self.layers} lager)"
        return self.phrase


def expand_shared_verbs(text: str) -> str:
    """Repeat a verb for every surface joined to it ("måla väggar och tak" ->
    "måla väggar och måla tak")."""

    def repeat(match: re.Match[str]) -> str:
        verb = match.group("verb")
        return _RE_JOINED_SURFACE.sub(lambda joint: f"{joint.group(1)}{verb} ", match.group(0))

    return _RE_SHARED_VERB.sub(repeat, text)


def parse_layer_count(text: str) -> Optional[int]:
    """Return the first "N lager/strykningar/gånger" count in *text*."""

    match = _RE_LAYERS.search((text or "").lower())
    if not match:
        return None
    count = match.group("count")
    value = int(count) if count.isdigit() else NUMBER_WORDS[count]
    return value if value > 0 else None


def strip_layer_words(text: str) -> str:
    """Remove layer counts such as "två lager" or "(2 lager)" from *text*."""

    stripped = _RE_LAYERS.sub(" ", (text or "").lower())
    return normalize_query(stripped)


def resolve_surface_type(text: str) -> Optional[Surface]:
    normalized = normalize_query(text)
    for keyword, surface in _SURFACE_KEYWORDS:
        if keyword in normalized:
            return surface
    return None


def parse_task_phrases(text: str) -> List[TaskPhrase]:
    """Return the task phrases named in *text*, in spoken order.

    Transcription fixes run first. A layer count anywhere in the utterance
    applies to every phrase found. An utterance with no known task yields an
    empty list; the caller keeps the raw text instead of dropping it.
    """

    working = apply_transcription_fixes(text)
    if not working:
        return []
    working = expand_shared_verbs(working)
    layers = parse_layer_count(working)

    hits: List[Tuple[int, str]] = []
    for entry in TASK_PATTERNS:
        match = entry.matcher.search(working)
        if not match:
            continue
        start, end = match.span()
        hits.append((start, entry.phrase))
        working = working[:start] + " " * (end - start) + working[end:]

    hits.sort(key=lambda hit: hit[0])
    return [TaskPhrase(phrase, layers) for _, phrase in hits]
