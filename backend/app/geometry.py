"""Room geometry: gross/net areas from dimensions, openings and wardrobes.

Every function works on a :class:`RoomGeometry` and can be used on its own.
Arithmetic runs at full float precision; :func:`calculate_room` rounds the
exposed values to one decimal (half-up) as its last step.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from app.measurements import Measurements

STANDARD_DOOR_WIDTH = 0.9
STANDARD_DOOR_HEIGHT = 2.1
STANDARD_WINDOW_WIDTH = 1.2
STANDARD_WINDOW_HEIGHT = 1.2
MAX_WIDTH_LENGTH_M = 100.0
MAX_HEIGHT_M = 10.0


class GeometryValidationError(ValueError):
    """Raised before any calculation when the room input is invalid."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)


@dataclass(frozen=True)
class DoorOpening:
    width: Optional[float] = None
    height: Optional[float] = None
    sides: Optional[int] = None

    @property
    def area(self) -> float:
        width = self.width if self.width is not None else STANDARD_DOOR_WIDTH
        height = self.height if self.height is not None else STANDARD_DOOR_HEIGHT
        sides = self.sides if self.sides is not None else 1
        return width * height * sides


@dataclass(frozen=True)
class WindowOpening:
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class WardrobeRun:
    length: float
    coverage_pct: Optional[float] = None


@dataclass(frozen=True)
class RoomGeometry:
    width: float
    length: float
    height: float
    doors: List[DoorOpening] = field(default_factory=list)
    windows: List[WindowOpening] = field(default_factory=list)
    wardrobes: List[WardrobeRun] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RoomCalculation:
    walls_gross: float
    walls_net: float
    ceiling_gross: float
    ceiling_net: float
    floor_gross: float
    floor_net: float
    openings_total: float
    wardrobes_deduction: float
    perimeter: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def round_area(value: float) -> float:
    """Round to 0.1 with halves away from zero (31.65 -> 31.7)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def walls_gross(geometry: RoomGeometry) -> float:
    return 2 * (geometry.width + geometry.length) * geometry.height


def ceiling_gross(geometry: RoomGeometry) -> float:
    return geometry.width * geometry.length


def floor_gross(geometry: RoomGeometry) -> float:
    return geometry.width * geometry.length


def openings_total(geometry: RoomGeometry) -> float:
    doors = sum(door.area for door in geometry.doors)
    windows = sum(window.area for window in geometry.windows)
    return doors + windows


def wardrobes_deduction(geometry: RoomGeometry) -> float:
    total = 0.0
    for wardrobe in geometry.wardrobes:
        coverage = wardrobe.coverage_pct if wardrobe.coverage_pct is not None else 100.0
        total += wardrobe.length * geometry.height * (coverage / 100.0)
    return total


def walls_net(geometry: RoomGeometry) -> float:
    net = walls_gross(geometry) - openings_total(geometry) - wardrobes_deduction(geometry)
    return max(0.0, net)


def perimeter(geometry: RoomGeometry) -> float:
    return 2 * (geometry.width + geometry.length)


def validate_geometry(geometry: RoomGeometry) -> List[str]:
    """Return every violation found in *geometry*; empty means valid."""

    errors: List[str] = []
    for label, value, limit in (
        ("Bredd", geometry.width, MAX_WIDTH_LENGTH_M),
        ("Längd", geometry.length, MAX_WIDTH_LENGTH_M),
        ("Höjd", geometry.height, MAX_HEIGHT_M),
    ):
        if value <= 0:
            errors.append(f"{label} måste vara större än 0 m")
        elif value > limit:
            errors.append(f"{label} överskrider rimlig gräns ({limit:g} m)")

    for pos, door in enumerate(geometry.doors, start=1):
        if door.width is not None and door.width <= 0:
            errors.append(f"Dörr {pos}: bredden måste vara större än 0")
        if door.height is not None and door.height <= 0:
            errors.append(f"Dörr {pos}: höjden måste vara större än 0")
        if door.sides is not None and door.sides not in (1, 2):
            errors.append(f"Dörr {pos}: antal sidor måste vara 1 eller 2")

    for pos, window in enumerate(geometry.windows, start=1):
        if window.width <= 0:
            errors.append(f"Fönster {pos}: bredden måste vara större än 0")
        if window.height <= 0:
            errors.append(f"Fönster {pos}: höjden måste vara större än 0")

    for pos, wardrobe in enumerate(geometry.wardrobes, start=1):
        if wardrobe.length <= 0:
            errors.append(f"Garderob {pos}: längden måste vara större än 0")
        if wardrobe.coverage_pct is not None and not 0 <= wardrobe.coverage_pct <= 100:
            errors.append(f"Garderob {pos}: täckningen måste vara mellan 0 och 100 %")
    return errors


def calculate_room(geometry: RoomGeometry) -> RoomCalculation:
    errors = validate_geometry(geometry)
    if errors:
        raise GeometryValidationError(errors)
    return RoomCalculation(
        walls_gross=round_area(walls_gross(geometry)),
        walls_net=round_area(walls_net(geometry)),
        ceiling_gross=round_area(ceiling_gross(geometry)),
        ceiling_net=round_area(ceiling_gross(geometry)),
        floor_gross=round_area(floor_gross(geometry)),
        floor_net=round_area(floor_gross(geometry)),
        openings_total=round_area(openings_total(geometry)),
        wardrobes_deduction=round_area(wardrobes_deduction(geometry)),
        perimeter=round_area(perimeter(geometry)),
    )


def geometry_from_measurements(measurements: Measurements) -> RoomGeometry:
    """Room input for a spoken measurement set, using standard door/window sizes."""

    if not measurements.is_complete:
        raise GeometryValidationError(["Bredd, längd och höjd måste anges"])
    return RoomGeometry(
        width=float(measurements.width),
        length=float(measurements.length),
        height=float(measurements.height),
        doors=[DoorOpening() for _ in range(max(0, measurements.doors))],
        windows=[
            WindowOpening(STANDARD_WINDOW_WIDTH, STANDARD_WINDOW_HEIGHT)
            for _ in range(max(0, measurements.windows))
        ],
    )
