from __future__ import annotations

from typing import Optional

from catalog.records import Surface, Unit

_UOM_ALIASES = {
    "m2": "m2",
    "m²": "m2",
    "m^2": "m2",
    "kvm": "m2",
    "kvadratmeter": "m2",
    "lpm": "lpm",
    "lm": "lpm",
    "m": "lpm",
    "meter": "lpm",
    "löpmeter": "lpm",
    "st": "st",
    "st.": "st",
    "stk": "st",
    "styck": "st",
    "styckpris": "st",
}

_SURFACE_ALIASES = {
    "vägg": "vägg",
    "väggar": "vägg",
    "vagg": "vägg",
    "wall": "vägg",
    "tak": "tak",
    "innertak": "tak",
    "ceiling": "tak",
    "golv": "golv",
    "floor": "golv",
    "dörr": "dörr",
    "dörrar": "dörr",
    "dorr": "dörr",
    "door": "dörr",
    "fönster": "fönster",
    "fonster": "fönster",
    "window": "fönster",
    "list": "list",
    "lister": "list",
    "taklist": "list",
    "golvlist": "list",
    "trim": "list",
}


def normalize_uom(u: str) -> str:
    if not u:
        return ""
    value = u.strip()
    if not value:
        return ""
    key = value.lower()
    return _UOM_ALIASES.get(key, value)


def to_unit(u: str) -> Unit:
    """Return the :class:`Unit` for *u* or raise ``ValueError``."""
    normalized = normalize_uom(u)
    try:
        return Unit(normalized)
    except ValueError:
        raise ValueError(f"unknown unit '{u}' (expected m2, lpm or st)") from None


def normalize_surface(value: Optional[str]) -> Optional[Surface]:
    """Map a surface label or alias to :class:`Surface`; blanks give ``None``."""
    if value is None:
        return None
    key = str(value).strip().lower()
    if not key:
        return None
    canonical = _SURFACE_ALIASES.get(key)
    if canonical is None:
        raise ValueError(f"unknown surface type '{value}'")
    return Surface(canonical)
