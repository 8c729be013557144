"""Immutable catalog task records and their enumerations."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

SYNONYM_DELIMITER = ";"


class Unit(str, Enum):
    """Unit of measure a task is billed in."""

    M2 = "m2"
    LPM = "lpm"
    ST = "st"


class Surface(str, Enum):
    """Physical surface a task is performed on."""

    VAGG = "vägg"
    TAK = "tak"
    GOLV = "golv"
    DORR = "dörr"
    FONSTER = "fönster"
    LIST = "list"


@dataclass(frozen=True)
class TaskRecord:
    task_id: str
    name: str
    unit: Unit
    labor_norm_per_unit: float
    name_en: Optional[str] = None
    material_factor_per_unit: Optional[float] = None
    default_layers: Optional[int] = None
    surface_type: Optional[Surface] = None
    prep_required: bool = False
    synonyms: Optional[str] = None
    price_material_per_unit: Optional[float] = None
    price_labor_per_hour: Optional[float] = None
    markup_pct: Optional[float] = None

    @property
    def synonym_list(self) -> List[str]:
        if not self.synonyms:
            return []
        return [part.strip() for part in self.synonyms.split(SYNONYM_DELIMITER) if part.strip()]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["unit"] = self.unit.value
        data["surface_type"] = self.surface_type.value if self.surface_type else None
        return data
