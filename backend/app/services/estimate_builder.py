"""Estimate assembly: mapped catalog tasks plus room geometry to a priced estimate.

The builder is a pure function of its inputs. Every task phrase is mapped
through :class:`catalog.mapper.TaskMapper`; phrases without a catalog match
end up in ``unmapped_phrases`` and never produce a line item. Invalid room
geometry is the only condition that stops the build (raised by
:func:`app.geometry.calculate_room`); everything else is reported through
``warnings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from app.error_messages import (
    low_confidence_warning,
    unmapped_task_warning,
    zero_quantity_warning,
)
from app.geometry import RoomCalculation, RoomGeometry, calculate_room
from app.pricing import (
    EstimateSection,
    EstimateTotals,
    LineItem,
    PricedTask,
    PricingConfig,
    RotInfo,
    calculate_totals,
    group_sections,
    line_item,
    rot_information,
)
from app.task_phrases import parse_layer_count, resolve_surface_type, strip_layer_words
from catalog.index import CatalogIndex
from catalog.mapper import TaskMapper
from catalog.records import Surface, TaskRecord, Unit
from shared.fuzzy_matcher import find_best_matches

logger = logging.getLogger("malarkalkyl.estimate")

LOW_CONFIDENCE_THRESHOLD = 0.7
SUGGESTION_LIMIT = 3


@dataclass(frozen=True)
class TaskRequest:
    phrase: str
    quantity: Optional[float] = None
    layers: Optional[int] = None


@dataclass
class Estimate:
    room: RoomCalculation
    line_items: List[LineItem] = field(default_factory=list)
    sections: List[EstimateSection] = field(default_factory=list)
    totals: Optional[EstimateTotals] = None
    rot_info: Optional[RotInfo] = None
    warnings: List[str] = field(default_factory=list)
    unmapped_phrases: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "room": self.room.to_dict(),
            "line_items": [item.to_dict() for item in self.line_items],
            "sections": [section.to_dict() for section in self.sections],
            "totals": self.totals.to_dict() if self.totals else None,
            "rot_info": self.rot_info.to_dict() if self.rot_info else None,
            "warnings": list(self.warnings),
            "unmapped_phrases": list(self.unmapped_phrases),
        }


def quantity_for_surface(surface: Optional[Surface], room: RoomCalculation) -> float:
    if surface == Surface.VAGG:
        return room.walls_net
    if surface == Surface.TAK:
        return room.ceiling_net
    if surface == Surface.GOLV:
        return room.floor_net
    if surface == Surface.LIST:
        return room.perimeter
    return 0.0


def _as_request(item: Union[TaskRequest, str]) -> TaskRequest:
    if isinstance(item, TaskRequest):
        return item
    return TaskRequest(phrase=str(item))


def _resolve_layers(request: TaskRequest, parsed: Optional[int], task: TaskRecord) -> int:
    if request.layers is not None:
        return request.layers
    if parsed is not None:
        return parsed
    if task.default_layers:
        return task.default_layers
    return 1


def _base_quantity(
    request: TaskRequest,
    task: TaskRecord,
    surface: Optional[Surface],
    room: RoomCalculation,
) -> float:
    if request.quantity is not None:
        return float(request.quantity)
    if task.unit == Unit.ST:
        return 1.0
    return quantity_for_surface(surface or task.surface_type, room)


def _suggestions(phrase: str, catalog: CatalogIndex) -> List[str]:
    names = [record.name for record in catalog.all_tasks()]
    return [name for name, _ in find_best_matches(phrase, names, top_k=SUGGESTION_LIMIT)]


def compute_estimate(
    room_geometry: Union[RoomGeometry, RoomCalculation],
    task_phrases: Sequence[Union[TaskRequest, str]],
    catalog: CatalogIndex,
    pricing_config: Optional[PricingConfig] = None,
    low_confidence_threshold: float = LOW_CONFIDENCE_THRESHOLD,
) -> Estimate:
    """Build a priced, sectioned estimate.

    Args:
        room_geometry: Raw room input (validated and calculated here) or an
            already computed :class:`RoomCalculation`.
        task_phrases: Spoken phrases or :class:`TaskRequest` objects with
            quantity/layer overrides.
        catalog: The loaded catalog index; the only source of tasks.
        pricing_config: Labor rate, markup and ROT settings.
        low_confidence_threshold: Mappings below this confidence are kept
            but produce a warning.

    Raises:
        GeometryValidationError: when the room input is invalid.
    """

    config = pricing_config or PricingConfig()
    if isinstance(room_geometry, RoomCalculation):
        room = room_geometry
    else:
        room = calculate_room(room_geometry)

    mapper = TaskMapper(catalog)
    estimate = Estimate(room=room)
    priced_tasks: List[PricedTask] = []

    for raw in task_phrases:
        request = _as_request(raw)
        phrase = request.phrase.strip()
        if not phrase:
            continue
        parsed_layers = parse_layer_count(phrase)
        lookup = strip_layer_words(phrase) or phrase
        surface = resolve_surface_type(lookup)
        mapping = mapper.resolve(lookup, surface)

        if mapping.task is None:
            estimate.unmapped_phrases.append(phrase)
            estimate.warnings.append(unmapped_task_warning(phrase, _suggestions(lookup, catalog)))
            logger.info("Unmapped task phrase %r", phrase)
            continue

        task = mapping.task
        layers = _resolve_layers(request, parsed_layers, task)
        quantity = round(_base_quantity(request, task, surface, room) * layers, 2)
        if quantity <= 0:
            estimate.warnings.append(zero_quantity_warning(task.name, task.task_id))
            continue
        if mapping.confidence < low_confidence_threshold:
            estimate.warnings.append(low_confidence_warning(phrase, task.name, mapping.confidence))

        priced = PricedTask(task=task, quantity=quantity, layers=layers)
        priced_tasks.append(priced)
        estimate.line_items.append(line_item(priced, config))

    estimate.totals = calculate_totals(priced_tasks, config)
    estimate.sections = group_sections(estimate.line_items)
    estimate.rot_info = rot_information(estimate.totals.labor_total, config)
    logger.info(
        "Estimate built: %d line items, %d unmapped, grand_total=%.2f",
        len(estimate.line_items),
        len(estimate.unmapped_phrases),
        estimate.totals.grand_total,
    )
    return estimate
