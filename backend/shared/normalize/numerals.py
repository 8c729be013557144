"""Swedish spoken-numeral resolution.

Speech-to-text returns dimensions the way they are said: "fyra gånger fem
gånger två och en halv", "tre och fyrtiofem". :func:`resolve_numerals` turns
such fragments into digit literals so that the measurement and task parsers
only ever deal with numbers.

Resolution is driven by :data:`NUMERAL_RULES`, an ordered table of
``(name, pattern, replacement)`` entries. Earlier entries are more specific
and consume their words before later, generic entries see them, so
"fyra och femtio" becomes ``4.5`` instead of ``4 och 50``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import re
from typing import Callable, Dict, Iterable, Optional, Tuple

UNIT_WORDS: Dict[str, int] = {
    "noll": 0,
    "en": 1,
    "ett": 1,
    "två": 2,
    "tre": 3,
    "fyra": 4,
    "fem": 5,
    "sex": 6,
    "sju": 7,
    "åtta": 8,
    "nio": 9,
}
TEEN_WORDS: Dict[str, int] = {
    "tio": 10,
    "elva": 11,
    "tolv": 12,
    "tretton": 13,
    "fjorton": 14,
    "femton": 15,
    "sexton": 16,
    "sjutton": 17,
    "arton": 18,
    "nitton": 19,
}
# Colloquial short forms ("femti") are what Whisper usually writes for fast speech.
TENS_WORDS: Dict[str, int] = {
    "tjugo": 20,
    "trettio": 30,
    "tretti": 30,
    "fyrtio": 40,
    "förti": 40,
    "fyrti": 40,
    "femtio": 50,
    "femti": 50,
    "sextio": 60,
    "sexti": 60,
    "sjuttio": 70,
    "sjutti": 70,
    "åttio": 80,
    "åtti": 80,
    "nittio": 90,
    "nitti": 90,
}
NUMBER_WORDS: Dict[str, int] = {**UNIT_WORDS, **TEEN_WORDS, **TENS_WORDS}

_RE_DECIMAL = re.compile(r"^\s*(\d+(?:[.,]\d+)?)\s*$")


def _alternation(words: Iterable[str]) -> str:
    # Longest first so "sjutton" is tried before "sju".
    return "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True))


_DIGITS_OR_WORD = rf"(?:(?<![\d.,])\d+|(?<!\w)(?:{_alternation(list(UNIT_WORDS) + list(TEEN_WORDS))}))"
_NONZERO_UNITS = _alternation(word for word, value in UNIT_WORDS.items() if value > 0)
_TENS = _alternation(TENS_WORDS)
_TEENS = _alternation(TEEN_WORDS)
_ALL_WORDS = _alternation(NUMBER_WORDS)


def _word_value(token: str) -> Decimal:
    if token.isdigit():
        return Decimal(token)
    return Decimal(NUMBER_WORDS[token])


def _format_decimal(value: Decimal) -> str:
    return format(value.normalize(), "f")


def _meters_and_centimeters(match: re.Match[str]) -> str:
    meters = _word_value(match.group("meters"))
    centimeters = Decimal(TENS_WORDS.get(match.group("tens") or "", 0))
    if match.group("units"):
        centimeters += Decimal(UNIT_WORDS[match.group("units")])
    if match.group("teen"):
        centimeters = Decimal(TEEN_WORDS[match.group("teen")])
    return _format_decimal(meters + centimeters / Decimal(100))


def _and_a_half(match: re.Match[str]) -> str:
    return _format_decimal(_word_value(match.group("whole")) + Decimal("0.5"))


def _tens_and_units(match: re.Match[str]) -> str:
    return str(TENS_WORDS[match.group("tens")] + UNIT_WORDS[match.group("units")])


def _single_word(match: re.Match[str]) -> str:
    return str(NUMBER_WORDS[match.group("word")])


@dataclass(frozen=True)
class NumeralRule:
    name: str
    pattern: re.Pattern[str]
    replace: Callable[[re.Match[str]], str]

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replace, text)


NUMERAL_RULES: Tuple[NumeralRule, ...] = (
    NumeralRule(
        "meters_and_centimeters",
        re.compile(
            rf"(?P<meters>{_DIGITS_OR_WORD})\s+och\s+"
            rf"(?:(?P<tens>{_TENS})(?:\s*(?P<units>{_NONZERO_UNITS}))?|(?P<teen>{_TEENS}))(?!\w)"
        ),
        _meters_and_centimeters,
    ),
    NumeralRule(
        "and_a_half",
        re.compile(rf"(?P<whole>{_DIGITS_OR_WORD})\s+och\s+(?:en\s+)?halva?(?!\w)"),
        _and_a_half,
    ),
    NumeralRule(
        "tens_and_units",
        re.compile(rf"(?<!\w)(?P<tens>{_TENS})\s*(?P<units>{_NONZERO_UNITS})(?!\w)"),
        _tens_and_units,
    ),
    NumeralRule(
        "single_word",
        re.compile(rf"(?<!\w)(?P<word>{_ALL_WORDS})(?!\w)"),
        _single_word,
    ),
)


def resolve_numerals(text: str, rules: Tuple[NumeralRule, ...] = NUMERAL_RULES) -> str:
    """Replace Swedish numeral words in *text* with digit literals.

    The text is lowercased; everything that is not a recognised numeral is left
    untouched. Rules run in table order and the whole table is re-applied until
    a pass changes nothing, bounded by one pass per rule plus a final check, so
    termination does not depend on the rules converging.

    >>> resolve_numerals("fyra gånger fem gånger två och en halv")
    '4 gånger 5 gånger 2.5'
    >>> resolve_numerals("tre och fyrtiofem")
    '3.45'
    """

    if not text:
        return ""
    resolved = text.lower()
    for _ in range(len(rules) + 1):
        previous = resolved
        for rule in rules:
            resolved = rule.apply(resolved)
        if resolved == previous:
            break
    return resolved


def parse_decimal(value: str) -> Optional[float]:
    """Parse a single number written with a period or a Swedish decimal comma."""

    if value is None:
        return None
    match = _RE_DECIMAL.match(str(value))
    if not match:
        return None
    try:
        return float(Decimal(match.group(1).replace(",", ".")))
    except InvalidOperation:  # pragma: no cover - regex already guards the format
        return None
