"""Guarded mapping of spoken task phrases onto catalog records.

The mapper only ever hands out records it read from the index it was built
with. When nothing matches well enough it returns an empty result; callers
report that phrase as unmapped instead of approximating a task.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Optional

from app.task_phrases import resolve_surface_type

from .index import CatalogIndex
from .records import Surface, TaskRecord

logger = logging.getLogger("malarkalkyl.catalog")

CONFIDENCE_EXACT = 1.0
CONFIDENCE_SURFACE_FUZZY = 0.7
CONFIDENCE_FUZZY = 0.5
FUZZY_LIMIT = 5


@dataclass(frozen=True)
class MappingResult:
    task: Optional[TaskRecord]
    confidence: float
    matches: List[TaskRecord] = field(default_factory=list)

    @property
    def is_mapped(self) -> bool:
        return self.task is not None


NO_MATCH = MappingResult(task=None, confidence=0.0, matches=[])


class TaskMapper:
    def __init__(self, index: CatalogIndex):
        self.index = index

    def validate_task_id(self, task_id: str) -> bool:
        """True when *task_id* exists in the loaded catalog."""
        return self.index.has(task_id)

    def resolve(self, phrase: str, surface: Optional[Surface] = None) -> MappingResult:
        """Map *phrase* to at most one catalog record.

        Order: exact synonym or name (1.0), fuzzy restricted to the phrase's
        surface type (0.7), fuzzy over the whole catalog (0.5). No hit gives
        ``task=None`` with confidence 0.
        """

        text = (phrase or "").strip()
        if not text:
            return NO_MATCH

        exact = self.index.search_by_synonym(text)
        if exact:
            return self._guarded(MappingResult(exact[0], CONFIDENCE_EXACT, exact), text)

        surface = surface or resolve_surface_type(text)
        if surface is not None:
            candidates = self.index.tasks_by_surface(surface)
            filtered = self.index.fuzzy_search(text, FUZZY_LIMIT, candidates=candidates)
            if filtered:
                records = [record for record, _ in filtered]
                return self._guarded(
                    MappingResult(records[0], CONFIDENCE_SURFACE_FUZZY, records), text
                )

        fuzzy = self.index.fuzzy_search(text, FUZZY_LIMIT)
        if fuzzy:
            records = [record for record, _ in fuzzy]
            return self._guarded(MappingResult(records[0], CONFIDENCE_FUZZY, records), text)

        logger.info("No catalog match for phrase %r", text)
        return NO_MATCH

    def _guarded(self, result: MappingResult, phrase: str) -> MappingResult:
        task = result.task
        if task is None or self.index.get(task.task_id) is not task:
            logger.warning(
                "Discarded mapping for %r: task %r is not in the loaded catalog",
                phrase,
                task.task_id if task else None,
            )
            return NO_MATCH
        matches = [record for record in result.matches if self.validate_task_id(record.task_id)]
        return MappingResult(task, result.confidence, matches)
