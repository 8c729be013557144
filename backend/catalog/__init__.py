"""Closed task catalog: records and the read-only lookup index."""

from .index import CatalogIndex, DuplicateTaskError
from .records import Surface, TaskRecord, Unit

__all__ = [
    "CatalogIndex",
    "DuplicateTaskError",
    "Surface",
    "TaskRecord",
    "Unit",
]
