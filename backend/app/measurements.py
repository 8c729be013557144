"""Room dimension extraction from a spoken measurement utterance."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import re
from typing import Any, Dict, List, Optional

from shared.normalize.numerals import parse_decimal, resolve_numerals

DEFAULT_DOORS = 1
DEFAULT_WINDOWS = 1

_NUMBER = r"\d+(?:[.,]\d+)?"
_RE_NUMBER = re.compile(rf"(?<![\d.,]){_NUMBER}")
_RE_MULTIPLY = re.compile(r"(?<![a-zåäö])(?:gånger|ggr|x)(?![a-zåäö])|[×*]")
_METER = r"(?:\s*(?:m|meter)(?!\w))?"

# (field, *patterns tried in order)
_LABELED_FIELDS = (
    (
        "width",
        re.compile(rf"(?<!\w)bredd(?:en)?\s*(?:är|:|=)?\s*(?P<value>{_NUMBER})"),
        re.compile(rf"(?<![\w.,])(?P<value>{_NUMBER}){_METER}\s*bred[dt]?(?!\w)"),
    ),
    (
        "length",
        re.compile(rf"(?<!\w)längd(?:en)?\s*(?:är|:|=)?\s*(?P<value>{_NUMBER})"),
        re.compile(rf"(?<![\w.,])(?P<value>{_NUMBER}){_METER}\s*lång[t]?(?!\w)"),
    ),
    (
        "height",
        re.compile(rf"(?<!\w)(?:tak)?höjd(?:en)?\s*(?:är|:|=)?\s*(?P<value>{_NUMBER})"),
        re.compile(rf"(?<![\w.,])(?P<value>{_NUMBER}){_METER}\s*hög[t]?(?!\w)"),
    ),
)
_LABELED_COUNTS = (
    (
        "doors",
        re.compile(r"(?<![\w.,])(?P<value>\d+)\s*dörr(?:ar)?(?!\w)"),
        re.compile(r"(?<!\w)dörr(?:ar)?\s*[:=]\s*(?P<value>\d+)(?![\d.,])"),
    ),
    (
        "windows",
        re.compile(r"(?<![\w.,])(?P<value>\d+)\s*fönster(?!\w)"),
        re.compile(r"(?<!\w)fönster\s*[:=]\s*(?P<value>\d+)(?![\d.,])"),
    ),
)


@dataclass
class Measurements:
    width: Optional[float] = None
    length: Optional[float] = None
    height: Optional[float] = None
    doors: int = DEFAULT_DOORS
    windows: int = DEFAULT_WINDOWS

    @property
    def is_complete(self) -> bool:
        return self.width is not None and self.length is not None and self.height is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_numbers(text: str) -> List[float]:
    """Return every numeric literal in *text* in reading order."""

    values: List[float] = []
    for match in _RE_NUMBER.finditer(text or ""):
        value = parse_decimal(match.group(0))
        if value is not None:
            values.append(value)
    return values


def has_multiplication_cue(text: str) -> bool:
    return bool(_RE_MULTIPLY.search(text or ""))


def _first_value(text: str, patterns) -> Optional[float]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return parse_decimal(match.group("value"))
    return None


def _labeled_fields(text: str) -> Dict[str, float]:
    found: Dict[str, float] = {}
    for name, *patterns in _LABELED_FIELDS + _LABELED_COUNTS:
        value = _first_value(text, patterns)
        if value is not None:
            found[name] = value
    return found


def parse_measurements(text: str) -> Measurements:
    """Extract width/length/height and door/window counts from *text*.

    Numeral words are resolved first, so "fyra gånger fem gånger två och en
    halv" and "4x5x2,5" give the same result. Strategies in order:

    1. Triple: with a multiplication cue the first three numbers are width,
       length and height. Two numbers reuse the second as height. A fourth and
       fifth number are door and window counts.
    2. Labels: ``bredd``/``längd``/``höjd``/``dörrar``/``fönster`` followed by
       a number, or the value-first forms "4 meter bred", "5 meter lång",
       "2,5 meter hög". Partial results are allowed.
    3. Bare triple: without labels, three or more numbers are read as width,
       length and height.

    Door and window labels win over positional counts. The caller checks
    :attr:`Measurements.is_complete` and re-prompts when it is false.
    """

    resolved = resolve_numerals(text or "")
    result = Measurements()
    if not resolved.strip():
        return result

    numbers = extract_numbers(resolved)
    labeled = _labeled_fields(resolved)

    if has_multiplication_cue(resolved) and len(numbers) >= 2:
        result.width = numbers[0]
        result.length = numbers[1]
        result.height = numbers[2] if len(numbers) >= 3 else numbers[1]
        if len(numbers) >= 4:
            result.doors = int(numbers[3])
        if len(numbers) >= 5:
            result.windows = int(numbers[4])
    elif any(name in labeled for name in ("width", "length", "height")):
        result.width = labeled.get("width")
        result.length = labeled.get("length")
        result.height = labeled.get("height")
    elif len(numbers) >= 3:
        result.width, result.length, result.height = numbers[:3]

    if "doors" in labeled:
        result.doors = int(labeled["doors"])
    if "windows" in labeled:
        result.windows = int(labeled["windows"])
    return result
