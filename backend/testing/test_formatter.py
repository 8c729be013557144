from pathlib import Path
import sys

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.formatter import build_environment, format_currency, format_swedish_number, render_estimate_text
from app.geometry import DoorOpening, RoomGeometry, WindowOpening
from app.services.estimate_builder import compute_estimate
from catalog import CatalogIndex, Surface, TaskRecord, Unit
from shared.normalize.numerals import parse_decimal


@pytest.mark.parametrize(
    "value, decimals, expected",
    [
        (31.65, 1, "31,7"),
        (12345.5, 2, "12 345,50"),
        (0, 1, "0,0"),
        (1234567.891, 2, "1 234 567,89"),
        ("abc", 1, "0,0"),
    ],
)
def test_format_swedish_number(value, decimals, expected) -> None:
    assert format_swedish_number(value, decimals) == expected


def test_format_currency() -> None:
    assert format_currency(3994.32) == "3 994,32 kr"


@pytest.mark.parametrize("area", [31.67, 3.33, 0.04, 99.95, 12.0])
def test_formatted_area_reparses_within_tolerance(area: float) -> None:
    reparsed = parse_decimal(format_swedish_number(area))
    assert reparsed is not None
    assert abs(reparsed - area) <= 0.05


def _estimate():
    catalog = CatalogIndex(
        [
            TaskRecord("MAL-VAGG-01", "måla väggar", Unit.M2, 0.10, surface_type=Surface.VAGG,
                       price_material_per_unit=18),
            TaskRecord("GRUND-TAK-01", "grundmåla tak", Unit.M2, 0.08, surface_type=Surface.TAK,
                       price_material_per_unit=12),
        ]
    )
    room = RoomGeometry(2, 5, 2.5, doors=[DoorOpening()], windows=[WindowOpening(1.2, 1.2)])
    return compute_estimate(room, ["måla väggar två lager", "grundmåla tak", "byta kranen"], catalog)


def test_render_estimate_text() -> None:
    header = {
        "client_name": "Anna Svensson",
        "project_name": "Storgatan",
        "room_name": "Vardagsrummet",
        "measurements": {"width": 2.0, "length": 5.0, "height": 2.5, "doors": 1, "windows": 1},
    }
    text = render_estimate_text(_estimate(), header, env=build_environment())
    assert "Kund:      Anna Svensson" in text
    assert "Väggar netto:       31,7 m²" in text
    assert "▸ FÖRBEREDELSE" in text
    assert "▸ MÅLNING" in text
    assert "▸ FINISH" not in text
    assert "TOTALT:" in text
    assert "ROT-AVDRAG" in text
    assert "EJ MATCHADE ARBETEN" in text
    assert "- byta kranen" in text
    assert text.endswith("\n")


def test_render_without_header() -> None:
    text = render_estimate_text(_estimate())
    assert "Kund:" not in text
    assert "BERÄKNADE YTOR" in text
