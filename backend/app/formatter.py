"""Plain-text rendering of estimates with Swedish number formatting."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.services.estimate_builder import Estimate

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
ESTIMATE_TEMPLATE = "estimate.txt.j2"


def format_swedish_number(value: Any, decimals: int = 1) -> str:
    """Format *value* with a decimal comma and space-grouped thousands.

    >>> format_swedish_number(31.65)
    '31,7'
    >>> format_swedish_number(12345.5, decimals=2)
    '12 345,50'
    """

    try:
        number = Decimal(str(value))
    except (ArithmeticError, ValueError):
        number = Decimal(0)
    if not number.is_finite():
        number = Decimal(0)
    quantum = Decimal(1).scaleb(-decimals)
    rounded = number.quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{rounded:,.{decimals}f}"
    return text.replace(",", " ").replace(".", ",")


def format_currency(value: Any) -> str:
    return f"{format_swedish_number(value, decimals=2)} kr"


def build_environment(templates_dir: Path = TEMPLATES_DIR) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["sv_number"] = format_swedish_number
    env.filters["currency"] = format_currency
    return env


@lru_cache(maxsize=1)
def _default_environment() -> Environment:
    return build_environment()


def render_estimate_text(
    estimate: Estimate,
    header: Optional[Dict[str, Any]] = None,
    env: Optional[Environment] = None,
) -> str:
    """Render *estimate* as a fixed-width text document.

    *header* carries the dialogue summary (client, project, room,
    measurements); it is optional so bare estimates can be printed too.
    """

    environment = env or _default_environment()
    template = environment.get_template(ESTIMATE_TEMPLATE)
    return template.render(estimate=estimate, header=header or {}).rstrip() + "\n"
