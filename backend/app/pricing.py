"""Unit prices, line items, totals, section grouping and ROT information."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from catalog.records import TaskRecord, Unit

DEFAULT_LABOR_PRICE_PER_HOUR = 500.0
DEFAULT_GLOBAL_MARKUP_PCT = 10.0
DEFAULT_ROT_RATE = 0.30
DEFAULT_ROT_CAP = 50000.0

ROT_NOTE_TITLE = "ROT-avdrag"
ROT_NOTE_TEXT = (
    "Beräknat på arbetskostnaden. Avdraget är {rate:.0f} % av arbetet, "
    "högst {cap} kr per person och år. Uppgiften är informativ och "
    "ingår inte i totalsumman."
)

_PREP_KEYWORDS = ("spackla", "spack", "slipa", "grund")
_FINISH_KEYWORDS = ("lack", "fernissa", "finish")


class Section(str, Enum):
    PREP = "Förberedelse"
    PAINT = "Målning"
    FINISH = "Finish"


SECTION_ORDER: Tuple[Section, ...] = (Section.PREP, Section.PAINT, Section.FINISH)


@dataclass(frozen=True)
class PricingConfig:
    labor_price_per_hour: float = DEFAULT_LABOR_PRICE_PER_HOUR
    global_markup_pct: float = DEFAULT_GLOBAL_MARKUP_PCT
    rot_rate: float = DEFAULT_ROT_RATE
    rot_cap: float = DEFAULT_ROT_CAP


@dataclass(frozen=True)
class LineItem:
    task_id: str
    name: str
    unit: Unit
    quantity: float
    layers: int
    unit_price: float
    subtotal: float
    section: Section

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["unit"] = self.unit.value
        data["section"] = self.section.value
        return data


@dataclass(frozen=True)
class PricedTask:
    """A mapped task with its billable quantity (layers already applied)."""

    task: TaskRecord
    quantity: float
    layers: int = 1


@dataclass(frozen=True)
class EstimateTotals:
    labor_total: float
    material_total: float
    markup_total: float
    grand_total: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class EstimateSection:
    title: Section
    items: List[LineItem] = field(default_factory=list)
    subtotal: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title.value,
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
        }


@dataclass(frozen=True)
class RotInfo:
    eligible_amount: float
    potential_deduction: float
    note_title: str
    note: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def labor_rate(task: TaskRecord, config: PricingConfig) -> float:
    if task.price_labor_per_hour is not None:
        return task.price_labor_per_hour
    return config.labor_price_per_hour


def markup_pct(task: TaskRecord, config: PricingConfig) -> float:
    if task.markup_pct is not None:
        return task.markup_pct
    return config.global_markup_pct


def unit_price(task: TaskRecord, config: PricingConfig) -> float:
    """Labor plus material for one unit, before markup."""
    material = task.price_material_per_unit or 0.0
    return task.labor_norm_per_unit * labor_rate(task, config) + material


def task_section(task: TaskRecord) -> Section:
    name = task.name.lower()
    task_id = task.task_id.lower()
    if task.prep_required or any(key in name or key in task_id for key in _PREP_KEYWORDS):
        return Section.PREP
    if any(key in name or key in task_id for key in _FINISH_KEYWORDS):
        return Section.FINISH
    return Section.PAINT


def line_item(priced: PricedTask, config: PricingConfig) -> LineItem:
    task = priced.task
    marked_up = unit_price(task, config) * (1 + markup_pct(task, config) / 100.0)
    return LineItem(
        task_id=task.task_id,
        name=task.name,
        unit=task.unit,
        quantity=priced.quantity,
        layers=priced.layers,
        unit_price=round_money(marked_up),
        subtotal=round_money(priced.quantity * marked_up),
        section=task_section(task),
    )


def calculate_totals(priced_tasks: Iterable[PricedTask], config: PricingConfig) -> EstimateTotals:
    """Totals from raw labor and material components.

    Labor and material are summed per task, then the global markup is applied
    once to their sum. Marked-up line subtotals are never backed out, so
    rounding of individual lines does not compound into the totals.
    """

    labor_total = 0.0
    material_total = 0.0
    for priced in priced_tasks:
        task = priced.task
        labor_total += task.labor_norm_per_unit * priced.quantity * labor_rate(task, config)
        material_total += (task.price_material_per_unit or 0.0) * priced.quantity
    markup_total = (labor_total + material_total) * config.global_markup_pct / 100.0
    return EstimateTotals(
        labor_total=round_money(labor_total),
        material_total=round_money(material_total),
        markup_total=round_money(markup_total),
        grand_total=round_money(labor_total + material_total + markup_total),
    )


def group_sections(items: Iterable[LineItem]) -> List[EstimateSection]:
    grouped: Dict[Section, List[LineItem]] = {section: [] for section in SECTION_ORDER}
    for item in items:
        grouped[item.section].append(item)
    return [
        EstimateSection(
            title=section,
            items=grouped[section],
            subtotal=round_money(sum(item.subtotal for item in grouped[section])),
        )
        for section in SECTION_ORDER
    ]


def rot_information(labor_total: float, config: PricingConfig) -> RotInfo:
    deduction = min(labor_total * config.rot_rate, config.rot_cap)
    return RotInfo(
        eligible_amount=round_money(labor_total),
        potential_deduction=round_money(deduction),
        note_title=ROT_NOTE_TITLE,
        note=ROT_NOTE_TEXT.format(
            rate=config.rot_rate * 100,
            cap=f"{config.rot_cap:,.0f}".replace(",", " "),
        ),
    )
