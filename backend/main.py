# main.py
from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent
REPO_ROOT = BASE_DIR.parent

# .env before any local import that reads the environment
load_dotenv(BASE_DIR / ".env")

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from app.formatter import build_environment
from app.pricing import PricingConfig
from app.services.session_service import (
    EstimateServiceContext,
    ServiceError,
    SessionStore,
    create_session,
    estimate_from_payload,
    get_session,
    list_catalog,
    process_session_input,
    reset_sessions,
    search_catalog as service_catalog_search,
    session_estimate,
    session_summary,
)
from catalog import CatalogIndex
from catalog.loader import CatalogLoadError, load_catalog_file


# ---------- Logging ----------
logger = logging.getLogger("malarkalkyl")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)

# ---------- Paths & ENV ----------
DATA_DIR = BASE_DIR / "data"


def _resolve_catalog_path(raw: str) -> Path:
    candidate = Path(raw)
    if candidate.is_absolute():
        return candidate
    for base in (REPO_ROOT, BASE_DIR, DATA_DIR):
        if (base / candidate).exists():
            return base / candidate
    return REPO_ROOT / candidate


CATALOG_PATH = _resolve_catalog_path(os.getenv("CATALOG_PATH", "backend/data/catalog.yaml"))
DEBUG = os.getenv("DEBUG", "0") == "1"
LABOR_PRICE_PER_HOUR = float(os.getenv("LABOR_PRICE_PER_HOUR", "500"))
GLOBAL_MARKUP_PCT = float(os.getenv("GLOBAL_MARKUP_PCT", "10"))
ROT_RATE = float(os.getenv("ROT_RATE", "0.30"))
ROT_CAP = float(os.getenv("ROT_CAP", "50000"))
LOW_CONFIDENCE_THRESHOLD = float(os.getenv("LOW_CONFIDENCE_THRESHOLD", "0.7"))
CATALOG_TOP_K = max(1, int(os.getenv("CATALOG_TOP_K", "5")))

logger.info(
    "Flags: CATALOG_PATH=%s LABOR_PRICE_PER_HOUR=%.2f GLOBAL_MARKUP_PCT=%.1f ROT_RATE=%.2f ROT_CAP=%.0f "
    "LOW_CONFIDENCE_THRESHOLD=%.2f DEBUG=%s",
    CATALOG_PATH,
    LABOR_PRICE_PER_HOUR,
    GLOBAL_MARKUP_PCT,
    ROT_RATE,
    ROT_CAP,
    LOW_CONFIDENCE_THRESHOLD,
    DEBUG,
)

_DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://test.local",
]
_origins_env = os.getenv("FRONTEND_ORIGINS", "")
ALLOWED_ORIGINS = (
    [origin.strip() for origin in _origins_env.split(",") if origin.strip()]
    if _origins_env.strip()
    else _DEFAULT_ALLOWED_ORIGINS
)

# ---------- Jinja2-Env ----------
env = build_environment()

# ---------- Service context ----------
_SERVICE_CONTEXT: Optional[EstimateServiceContext] = None


def _load_catalog() -> CatalogIndex:
    try:
        records = load_catalog_file(CATALOG_PATH)
    except CatalogLoadError as exc:
        for err in exc.errors:
            logger.error("catalog: %s", err)
        raise
    return CatalogIndex(records)


def _get_service_context() -> EstimateServiceContext:
    global _SERVICE_CONTEXT
    if _SERVICE_CONTEXT is None:
        _SERVICE_CONTEXT = EstimateServiceContext(
            catalog=_load_catalog(),
            sessions=SessionStore(),
            pricing=PricingConfig(
                labor_price_per_hour=LABOR_PRICE_PER_HOUR,
                global_markup_pct=GLOBAL_MARKUP_PCT,
                rot_rate=ROT_RATE,
                rot_cap=ROT_CAP,
            ),
            env=env,
            logger=logger,
            catalog_path=str(CATALOG_PATH),
            low_confidence_threshold=LOW_CONFIDENCE_THRESHOLD,
            catalog_top_k=CATALOG_TOP_K,
            debug=DEBUG,
        )
    return _SERVICE_CONTEXT


# ---------- Request models ----------
class SessionInput(BaseModel):
    text: str = ""


class WardrobeIn(BaseModel):
    length: float
    coverage_pct: Optional[float] = None


class DoorIn(BaseModel):
    width: Optional[float] = None
    height: Optional[float] = None
    sides: Optional[int] = None


class WindowIn(BaseModel):
    width: float
    height: float


class RoomIn(BaseModel):
    width: float
    length: float
    height: float
    doors: List[DoorIn] = Field(default_factory=list)
    windows: List[WindowIn] = Field(default_factory=list)
    wardrobes: List[WardrobeIn] = Field(default_factory=list)


class TaskIn(BaseModel):
    phrase: str
    quantity: Optional[float] = None
    layers: Optional[int] = None


class SessionEstimateIn(BaseModel):
    wardrobes: List[WardrobeIn] = Field(default_factory=list)


class EstimateIn(BaseModel):
    room: RoomIn
    tasks: List[Union[TaskIn, str]]


class ResetIn(BaseModel):
    session_id: Optional[str] = None


# ---------- FastAPI ----------


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    ctx = _get_service_context()
    logger.info("Startup: %d catalog tasks from %s", len(ctx.catalog), CATALOG_PATH)
    logger.info("ALLOWED_ORIGINS=%s", ALLOWED_ORIGINS)
    yield


app = FastAPI(title="Målarkalkyl Backend", lifespan=_lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _call(fn, **kwargs) -> Dict[str, Any]:
    try:
        return fn(ctx=_get_service_context(), **kwargs)
    except ServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


# Root (Health)
@app.get("/")
def root():
    return {"ok": True, "service": "malarkalkyl-backend", "health": "/api/health", "docs": "/docs"}


@app.get("/api/health")
def api_health():
    return {"ok": True, "time": datetime.utcnow().isoformat()}


@app.get("/api/catalog")
def api_catalog():
    return _call(list_catalog)


@app.get("/api/catalog/search")
def api_catalog_search(
    q: str = Query(..., min_length=2, description="Fritext (namn, synonym)"),
    top_k: int = Query(5, ge=1, le=10, description="Max antal träffar"),
):
    return _call(service_catalog_search, query=q, limit=top_k)


# ---- Dialogue sessions ----
@app.post("/api/session")
def api_session_create():
    return _call(create_session)


# declared before /api/session/{session_id} routes so "reset" is never read as an id
@app.post("/api/session/reset")
def api_session_reset(payload: Optional[ResetIn] = None):
    return _call(reset_sessions, session_id=payload.session_id if payload else None)


@app.get("/api/session/{session_id}")
def api_session_get(session_id: str):
    return _call(get_session, session_id=session_id)


@app.post("/api/session/{session_id}/input")
def api_session_input(session_id: str, payload: SessionInput):
    return _call(process_session_input, session_id=session_id, text=payload.text)


@app.get("/api/session/{session_id}/summary")
def api_session_summary(session_id: str):
    return _call(session_summary, session_id=session_id)


@app.post("/api/session/{session_id}/estimate")
def api_session_estimate(session_id: str, payload: Optional[SessionEstimateIn] = None):
    wardrobes = [w.model_dump() for w in payload.wardrobes] if payload else None
    return _call(session_estimate, session_id=session_id, wardrobes=wardrobes)


# ---- Direct estimate ----
@app.post("/api/estimate")
def api_estimate(payload: EstimateIn):
    body = {
        "room": payload.room.model_dump(),
        "tasks": [t.model_dump() if isinstance(t, TaskIn) else t for t in payload.tasks],
    }
    return _call(estimate_from_payload, payload=body)


# ---------- Local start ----------
if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "7860"))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=False)
