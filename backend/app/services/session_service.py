"""Service layer shared by the FastAPI handlers and the CLI.

Owns the in-memory session store and translates domain failures into
:class:`ServiceError` so callers can map them to HTTP status codes or exit
codes. Sessions are never persisted; a restart forgets them.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any, Dict, Iterator, List, Optional
from uuid import uuid4

from jinja2 import Environment

from app import conversation
from app.conversation import SessionIncompleteError, SessionState
from app.error_messages import geometry_error_message
from app.formatter import render_estimate_text
from app.geometry import (
    DoorOpening,
    GeometryValidationError,
    RoomGeometry,
    WardrobeRun,
    WindowOpening,
    geometry_from_measurements,
)
from app.pricing import PricingConfig
from app.services.estimate_builder import Estimate, TaskRequest, compute_estimate
from catalog.index import CatalogIndex

logger = logging.getLogger("malarkalkyl.session")


class ServiceError(Exception):
    """Domain specific error that can be translated to HTTP responses."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class _SessionSlot:
    state: SessionState
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionStore:
    """In-memory sessions, one lock per session.

    Calls for one session are serialized through its lock; different sessions
    never block each other.
    """

    def __init__(self) -> None:
        self._slots: Dict[str, _SessionSlot] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)

    def create(self) -> str:
        session_id = str(uuid4())
        with self._guard:
            self._slots[session_id] = _SessionSlot(state=conversation.create_session())
        return session_id

    def _slot(self, session_id: str) -> _SessionSlot:
        with self._guard:
            slot = self._slots.get(session_id)
        if slot is None:
            raise ServiceError("session_id ogiltig eller utgången", status_code=404)
        return slot

    @contextmanager
    def locked(self, session_id: str) -> Iterator[SessionState]:
        slot = self._slot(session_id)
        with slot.lock:
            yield slot.state

    def discard(self, session_id: str) -> bool:
        with self._guard:
            return self._slots.pop(session_id, None) is not None

    def clear(self) -> int:
        with self._guard:
            count = len(self._slots)
            self._slots.clear()
        return count


@dataclass
class EstimateServiceContext:
    catalog: CatalogIndex
    sessions: SessionStore
    pricing: PricingConfig
    env: Environment
    logger: Any
    catalog_path: Optional[str] = None
    low_confidence_threshold: float = 0.7
    catalog_top_k: int = 5
    debug: bool = False


def _session_payload(session_id: str, state: SessionState) -> Dict[str, Any]:
    return {
        "session_id": session_id,
        "step": state.step.value,
        "prompt": conversation.current_prompt(state),
        "complete": conversation.is_complete(state),
        "state": state.to_dict(),
    }


def create_session(*, ctx: EstimateServiceContext) -> Dict[str, Any]:
    session_id = ctx.sessions.create()
    ctx.logger.info("session.create id=%s open=%d", session_id, len(ctx.sessions))
    with ctx.sessions.locked(session_id) as state:
        return _session_payload(session_id, state)


def get_session(*, session_id: str, ctx: EstimateServiceContext) -> Dict[str, Any]:
    with ctx.sessions.locked(session_id) as state:
        return _session_payload(session_id, state)


def process_session_input(*, session_id: str, text: str, ctx: EstimateServiceContext) -> Dict[str, Any]:
    with ctx.sessions.locked(session_id) as state:
        result = conversation.process_input(state, text or "")
        if ctx.debug:
            ctx.logger.info(
                "session.input id=%s accepted=%s step=%s text=%r",
                session_id,
                result.accepted,
                result.step.value,
                text,
            )
        payload = _session_payload(session_id, state)
    payload.update(result.to_dict())
    return payload


def session_summary(*, session_id: str, ctx: EstimateServiceContext) -> Dict[str, Any]:
    with ctx.sessions.locked(session_id) as state:
        try:
            return conversation.summary(state)
        except SessionIncompleteError as exc:
            raise ServiceError("Sessionen är inte klar ännu.", status_code=409) from exc


def _build_estimate(
    geometry: RoomGeometry,
    phrases: List[Any],
    ctx: EstimateServiceContext,
) -> Estimate:
    try:
        return compute_estimate(
            geometry,
            phrases,
            ctx.catalog,
            ctx.pricing,
            low_confidence_threshold=ctx.low_confidence_threshold,
        )
    except GeometryValidationError as exc:
        raise ServiceError(geometry_error_message(exc.errors), status_code=422) from exc


def session_estimate(
    *,
    session_id: str,
    ctx: EstimateServiceContext,
    wardrobes: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Estimate for a completed session, plus its rendered text."""

    header = session_summary(session_id=session_id, ctx=ctx)
    with ctx.sessions.locked(session_id) as state:
        try:
            geometry = geometry_from_measurements(state.measurements)
        except GeometryValidationError as exc:
            raise ServiceError(geometry_error_message(exc.errors), status_code=422) from exc
        if wardrobes:
            geometry = RoomGeometry(
                width=geometry.width,
                length=geometry.length,
                height=geometry.height,
                doors=geometry.doors,
                windows=geometry.windows,
                wardrobes=[_wardrobe(item) for item in wardrobes],
            )
        phrases = [task.display for task in state.tasks]

    estimate = _build_estimate(geometry, phrases, ctx)
    ctx.logger.info(
        "session.estimate id=%s items=%d unmapped=%d",
        session_id,
        len(estimate.line_items),
        len(estimate.unmapped_phrases),
    )
    return {
        "session_id": session_id,
        "summary": header,
        "estimate": estimate.to_dict(),
        "text": render_estimate_text(estimate, header, env=ctx.env),
    }


def _wardrobe(raw: Dict[str, Any]) -> WardrobeRun:
    return WardrobeRun(length=float(raw.get("length", 0)), coverage_pct=raw.get("coverage_pct"))


def geometry_from_payload(payload: Dict[str, Any]) -> RoomGeometry:
    """Build a :class:`RoomGeometry` from a plain ``{"width": ..., "doors": [...]}`` dict."""

    try:
        return RoomGeometry(
            width=float(payload["width"]),
            length=float(payload["length"]),
            height=float(payload["height"]),
            doors=[
                DoorOpening(width=d.get("width"), height=d.get("height"), sides=d.get("sides"))
                for d in payload.get("doors") or []
            ],
            windows=[
                WindowOpening(width=float(w["width"]), height=float(w["height"]))
                for w in payload.get("windows") or []
            ],
            wardrobes=[_wardrobe(w) for w in payload.get("wardrobes") or []],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ServiceError(f"Ogiltiga rumsmått: {exc}", status_code=422) from exc


def estimate_from_payload(*, payload: Dict[str, Any], ctx: EstimateServiceContext) -> Dict[str, Any]:
    """Estimate for explicit geometry and task phrases, without a dialogue."""

    geometry = geometry_from_payload(payload.get("room") or {})
    tasks: List[Any] = []
    for item in payload.get("tasks") or []:
        if isinstance(item, dict):
            tasks.append(
                TaskRequest(
                    phrase=str(item.get("phrase") or ""),
                    quantity=item.get("quantity"),
                    layers=item.get("layers"),
                )
            )
        else:
            tasks.append(str(item))
    if not tasks:
        raise ServiceError("Minst ett arbete krävs.", status_code=400)

    estimate = _build_estimate(geometry, tasks, ctx)
    return {"estimate": estimate.to_dict(), "text": render_estimate_text(estimate, env=ctx.env)}


def reset_sessions(*, ctx: EstimateServiceContext, session_id: Optional[str] = None) -> Dict[str, Any]:
    """Reset one session to its first step, or drop all sessions."""

    if session_id:
        with ctx.sessions.locked(session_id) as state:
            conversation.reset(state)
        return {"ok": True, "message": "Sessionen har återställts.", "session_id": session_id}
    cleared = ctx.sessions.clear()
    ctx.logger.info("session.reset cleared=%d", cleared)
    return {"ok": True, "message": f"{cleared} sessioner rensade."}


def list_catalog(*, ctx: EstimateServiceContext) -> Dict[str, Any]:
    tasks = [record.to_dict() for record in ctx.catalog.all_tasks()]
    return {
        "count": len(tasks),
        "source": ctx.catalog_path,
        "tasks": tasks,
        "stats": ctx.catalog.stats(),
    }


def search_catalog(*, query: str, limit: int, ctx: EstimateServiceContext) -> Dict[str, Any]:
    query = (query or "").strip()
    if not query:
        raise ServiceError("query required", status_code=400)
    limit = max(1, min(limit, ctx.catalog_top_k))
    started = time.time()
    exact = ctx.catalog.search_by_synonym(query)
    if exact:
        hits = [(record, 100) for record in exact[:limit]]
    else:
        hits = ctx.catalog.fuzzy_search(query, limit)
    results = [
        {
            "task_id": record.task_id,
            "name": record.name,
            "unit": record.unit.value,
            "surface_type": record.surface_type.value if record.surface_type else None,
            "synonyms": record.synonym_list,
            "score": score,
        }
        for record, score in hits
    ]
    took = int((time.time() - started) * 1000)
    ctx.logger.info("catalog.search q=%r limit=%d took_ms=%d count=%d", query, limit, took, len(results))
    return {"query": query, "limit": limit, "count": len(results), "results": results, "took_ms": took}
