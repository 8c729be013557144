from pathlib import Path
import sys

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.pricing import (
    PricedTask,
    PricingConfig,
    Section,
    calculate_totals,
    group_sections,
    line_item,
    rot_information,
    round_money,
    task_section,
    unit_price,
)
from catalog import Surface, TaskRecord, Unit


WALLS = TaskRecord("MAL-VAGG-01", "måla väggar", Unit.M2, 0.10, surface_type=Surface.VAGG,
                   price_material_per_unit=18)
PRIMER = TaskRecord("GRUND-TAK-01", "grundmåla tak", Unit.M2, 0.08, surface_type=Surface.TAK,
                    price_material_per_unit=12)
LACQUER = TaskRecord("LACK-DORR-01", "lacka dörrar", Unit.ST, 1.8, price_material_per_unit=110,
                     price_labor_per_hour=600)


def test_unit_price_and_line_item() -> None:
    config = PricingConfig()
    assert unit_price(WALLS, config) == pytest.approx(68.0)
    item = line_item(PricedTask(WALLS, 53.4, 2), config)
    assert item.unit_price == 74.8
    assert item.subtotal == 3994.32
    assert item.section is Section.PAINT
    assert item.to_dict()["unit"] == "m2"


def test_record_labor_rate_overrides_config() -> None:
    assert unit_price(LACQUER, PricingConfig()) == pytest.approx(1.8 * 600 + 110)


def test_sections() -> None:
    assert task_section(PRIMER) is Section.PREP
    assert task_section(LACQUER) is Section.FINISH
    assert task_section(WALLS) is Section.PAINT


def test_totals_from_raw_components() -> None:
    totals = calculate_totals([PricedTask(WALLS, 53.4, 2)], PricingConfig())
    assert totals.labor_total == 2670.0
    assert totals.material_total == 961.2
    assert totals.markup_total == 363.12
    assert totals.grand_total == 3994.32


def test_empty_totals() -> None:
    totals = calculate_totals([], PricingConfig())
    assert totals.grand_total == 0.0


def test_group_sections_keeps_fixed_order() -> None:
    config = PricingConfig()
    items = [line_item(PricedTask(LACQUER, 1), config), line_item(PricedTask(PRIMER, 10), config)]
    sections = group_sections(items)
    assert [s.title for s in sections] == [Section.PREP, Section.PAINT, Section.FINISH]
    assert [len(s.items) for s in sections] == [1, 0, 1]
    assert sections[1].subtotal == 0.0


def test_rot_is_capped() -> None:
    config = PricingConfig(rot_rate=0.30, rot_cap=50000)
    assert rot_information(10000, config).potential_deduction == 3000.0
    capped = rot_information(400000, config)
    assert capped.potential_deduction == 50000.0
    assert capped.note_title == "ROT-avdrag"
    assert "50 000" in capped.note


def test_round_money_half_up() -> None:
    assert round_money(0.125) == 0.13
    assert round_money(2.675) == 2.68
