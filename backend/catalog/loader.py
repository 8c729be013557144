"""Seed-file loader for the task catalog.

Catalog files are YAML or JSON: either a list of task rows or a mapping with
a ``tasks`` list. Each row is validated with pydantic before it becomes a
:class:`TaskRecord`; the index itself never touches the filesystem.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.uom_convert import normalize_surface, to_unit

from .records import SYNONYM_DELIMITER, Surface, TaskRecord, Unit

logger = logging.getLogger("malarkalkyl.catalog")

REQUIRED_COLUMNS = ("task_id", "name", "unit", "labor_norm_per_unit")

COLUMN_ALIASES: Dict[str, str] = {
    "id": "task_id",
    "meps_id": "task_id",
    "meps id": "task_id",
    "task id": "task_id",
    "task_name_sv": "name",
    "task name sv": "name",
    "namn": "name",
    "task_name_en": "name_en",
    "task name en": "name_en",
    "enhet": "unit",
    "labor norm": "labor_norm_per_unit",
    "labor_norm": "labor_norm_per_unit",
    "labour_norm_per_unit": "labor_norm_per_unit",
    "material factor": "material_factor_per_unit",
    "material_factor": "material_factor_per_unit",
    "default layers": "default_layers",
    "lager": "default_layers",
    "surface type": "surface_type",
    "surface": "surface_type",
    "yta": "surface_type",
    "prep required": "prep_required",
    "synonymer": "synonyms",
    "price material": "price_material_per_unit",
    "price_material": "price_material_per_unit",
    "price labor": "price_labor_per_hour",
    "price_labor": "price_labor_per_hour",
    "markup": "markup_pct",
    "markup_percentage": "markup_pct",
}
TRUTHY = {"1", "true", "yes", "ja", "x", "y"}
FALSY = {"0", "false", "no", "nej", "n", ""}


class CatalogLoadError(Exception):
    """Raised when a catalog file cannot be read or contains invalid rows."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


def _swedish_float(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        return text or None
    return value


class TaskRow(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    task_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    unit: Unit
    labor_norm_per_unit: float = Field(gt=0)
    name_en: Optional[str] = None
    material_factor_per_unit: Optional[float] = None
    default_layers: Optional[int] = Field(default=None, gt=0)
    surface_type: Optional[Surface] = None
    prep_required: bool = False
    synonyms: Optional[str] = None
    price_material_per_unit: Optional[float] = Field(default=None, ge=0)
    price_labor_per_hour: Optional[float] = Field(default=None, gt=0)
    markup_pct: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator("task_id", "name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("unit", mode="before")
    @classmethod
    def _coerce_unit(cls, value: Any) -> Any:
        return to_unit(str(value or ""))

    @field_validator("surface_type", mode="before")
    @classmethod
    def _coerce_surface(cls, value: Any) -> Any:
        return normalize_surface(value)

    @field_validator(
        "labor_norm_per_unit",
        "material_factor_per_unit",
        "default_layers",
        "price_material_per_unit",
        "price_labor_per_hour",
        "markup_pct",
        mode="before",
    )
    @classmethod
    def _coerce_number(cls, value: Any) -> Any:
        return _swedish_float(value)

    @field_validator("prep_required", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> Any:
        if value is None:
            return False
        if isinstance(value, str):
            text = value.strip().lower()
            if text in TRUTHY:
                return True
            if text in FALSY:
                return False
        return value

    @field_validator("synonyms", mode="before")
    @classmethod
    def _join_synonyms(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return SYNONYM_DELIMITER.join(str(item).strip() for item in value if str(item).strip())
        return value or None

    def to_record(self) -> TaskRecord:
        return TaskRecord(**self.model_dump())


def normalize_column_name(column: str) -> str:
    key = str(column).strip().lower()
    return COLUMN_ALIASES.get(key, key)


def load_catalog_rows(rows: Iterable[Dict[str, Any]]) -> List[TaskRecord]:
    """Validate raw row dicts and return task records.

    All rows are checked before anything is returned. Any invalid row makes
    the whole load fail with :class:`CatalogLoadError` listing every problem
    as ``"row N: field: message"``.
    """

    records: List[TaskRecord] = []
    errors: List[str] = []
    for row_no, raw in enumerate(rows, start=1):
        if not isinstance(raw, dict):
            errors.append(f"row {row_no}: expected a mapping")
            continue
        normalized = {normalize_column_name(key): value for key, value in raw.items()}
        missing = [column for column in REQUIRED_COLUMNS if normalized.get(column) in (None, "")]
        if missing:
            errors.append(f"row {row_no}: missing required fields: {', '.join(missing)}")
            continue
        try:
            records.append(TaskRow.model_validate(normalized).to_record())
        except ValidationError as exc:
            for issue in exc.errors():
                field = ".".join(str(part) for part in issue.get("loc", ())) or "row"
                errors.append(f"row {row_no}: {field}: {issue.get('msg')}")
    if errors:
        raise CatalogLoadError(f"{len(errors)} invalid catalog row(s)", errors)
    return records


def load_catalog_file(path: str | Path) -> List[TaskRecord]:
    """Read a YAML or JSON catalog file and validate its rows."""

    file_path = Path(path)
    if not file_path.exists():
        raise CatalogLoadError(f"catalog file not found: {file_path}")
    content = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(content or "[]")
        else:
            data = yaml.safe_load(content) or []
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CatalogLoadError(f"could not parse {file_path.name}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("tasks") or []
    if not isinstance(data, list):
        raise CatalogLoadError("catalog file must contain a list of tasks")

    records = load_catalog_rows(data)
    logger.info("Loaded %d catalog tasks from %s", len(records), file_path)
    return records
