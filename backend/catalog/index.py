"""Read-only lookup structures over a closed set of task records."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from shared.normalize.text import normalize_query

from .records import Surface, TaskRecord, Unit

logger = logging.getLogger("malarkalkyl.catalog")

SCORE_EXACT_NAME = 100
SCORE_NAME_PREFIX = 80
SCORE_NAME_SUBSTRING = 50
SCORE_SYNONYM_SUBSTRING = 40


class DuplicateTaskError(ValueError):
    """Raised when two records share one task identifier."""

    def __init__(self, task_id: str):
        super().__init__(f"duplicate task_id in catalog: {task_id}")
        self.task_id = task_id


class CatalogIndex:
    """Lookup by id, synonym text and surface type.

    The index is built once from *records* and never mutated afterwards, so a
    single instance can be shared between sessions and threads. Keys are
    normalized with :func:`normalize_query`; lookups are case-insensitive.
    """

    def __init__(self, records: Iterable[TaskRecord]):
        self._tasks: Dict[str, TaskRecord] = {}
        self._by_synonym: Dict[str, List[str]] = {}
        self._by_surface: Dict[Surface, List[str]] = {}

        for record in records:
            if record.task_id in self._tasks:
                raise DuplicateTaskError(record.task_id)
            self._tasks[record.task_id] = record
            for text in [record.name, *record.synonym_list]:
                key = normalize_query(text)
                if not key:
                    continue
                ids = self._by_synonym.setdefault(key, [])
                if record.task_id not in ids:
                    ids.append(record.task_id)
            if record.surface_type is not None:
                self._by_surface.setdefault(record.surface_type, []).append(record.task_id)

        logger.info(
            "Catalog index built: %d tasks, %d synonym keys",
            len(self._tasks),
            len(self._by_synonym),
        )

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def get(self, task_id: str) -> Optional[TaskRecord]:
        return self._tasks.get(task_id)

    def has(self, task_id: str) -> bool:
        return task_id in self._tasks

    def all_tasks(self) -> List[TaskRecord]:
        return list(self._tasks.values())

    def search_by_synonym(self, text: str) -> List[TaskRecord]:
        key = normalize_query(text)
        return [self._tasks[task_id] for task_id in self._by_synonym.get(key, [])]

    def tasks_by_surface(self, surface: Surface | str) -> List[TaskRecord]:
        try:
            surface_key = Surface(surface)
        except ValueError:
            return []
        return [self._tasks[task_id] for task_id in self._by_surface.get(surface_key, [])]

    def tasks_by_unit(self, unit: Unit | str) -> List[TaskRecord]:
        return [record for record in self._tasks.values() if record.unit == unit]

    def fuzzy_search(
        self,
        query: str,
        limit: int = 10,
        candidates: Optional[Sequence[TaskRecord]] = None,
    ) -> List[Tuple[TaskRecord, int]]:
        """Score records against *query* by name and synonym containment.

        Tiers: exact name 100, name prefix 80, name substring 50, synonym
        substring 40. Records scoring nothing are omitted. Ties keep catalog
        order. *candidates* restricts the search to a subset.
        """

        needle = normalize_query(query)
        if not needle or limit <= 0:
            return []
        pool = self.all_tasks() if candidates is None else list(candidates)
        scored: List[Tuple[TaskRecord, int]] = []
        for record in pool:
            score = _score_record(needle, record)
            if score:
                scored.append((record, score))
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:limit]

    def stats(self) -> Dict[str, object]:
        return {
            "total_tasks": len(self._tasks),
            "tasks_by_unit": {unit.value: len(self.tasks_by_unit(unit)) for unit in Unit},
            "tasks_by_surface": {
                surface.value: len(self._by_surface.get(surface, [])) for surface in Surface
            },
            "synonym_keys": len(self._by_synonym),
        }


def _score_record(needle: str, record: TaskRecord) -> int:
    name = normalize_query(record.name)
    if name == needle:
        return SCORE_EXACT_NAME
    if name.startswith(needle):
        return SCORE_NAME_PREFIX
    if needle in name:
        return SCORE_NAME_SUBSTRING
    for synonym in record.synonym_list:
        if needle in normalize_query(synonym):
            return SCORE_SYNONYM_SUBSTRING
    return 0
