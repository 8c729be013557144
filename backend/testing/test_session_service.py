import logging
from pathlib import Path
import sys
import threading

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

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
    search_catalog,
    session_estimate,
    session_summary,
)
from catalog import CatalogIndex
from catalog.loader import load_catalog_file


DEMO_CATALOG = BACKEND_ROOT / "data" / "catalog.yaml"
DIALOGUE = [
    "Anna Svensson",
    "Storgatan 5",
    "sovrummet",
    "fyra gånger fem gånger två och en halv",
    "måla väggar två lager och grundmåla taket",
    "klar",
    "ja",
]


@pytest.fixture()
def ctx() -> EstimateServiceContext:
    return EstimateServiceContext(
        catalog=CatalogIndex(load_catalog_file(DEMO_CATALOG)),
        sessions=SessionStore(),
        pricing=PricingConfig(),
        env=build_environment(),
        logger=logging.getLogger("malarkalkyl"),
        catalog_path=str(DEMO_CATALOG),
    )


def _complete_session(ctx: EstimateServiceContext) -> str:
    session_id = create_session(ctx=ctx)["session_id"]
    for text in DIALOGUE:
        process_session_input(session_id=session_id, text=text, ctx=ctx)
    return session_id


def test_create_and_get_session(ctx) -> None:
    created = create_session(ctx=ctx)
    assert created["step"] == "awaiting_client_name"
    assert created["prompt"] == "Vad heter din kund?"
    assert get_session(session_id=created["session_id"], ctx=ctx)["complete"] is False


def test_unknown_session_is_404(ctx) -> None:
    with pytest.raises(ServiceError) as excinfo:
        get_session(session_id="missing", ctx=ctx)
    assert excinfo.value.status_code == 404


def test_input_reports_result_and_state(ctx) -> None:
    session_id = create_session(ctx=ctx)["session_id"]
    payload = process_session_input(session_id=session_id, text="Anna", ctx=ctx)
    assert payload["accepted"] is True
    assert payload["step"] == "awaiting_project_name"
    assert payload["state"]["client_name"] == "Anna"


def test_summary_requires_completion(ctx) -> None:
    session_id = create_session(ctx=ctx)["session_id"]
    with pytest.raises(ServiceError) as excinfo:
        session_summary(session_id=session_id, ctx=ctx)
    assert excinfo.value.status_code == 409


def test_session_estimate(ctx) -> None:
    session_id = _complete_session(ctx)
    result = session_estimate(session_id=session_id, ctx=ctx)
    ids = [item["task_id"] for item in result["estimate"]["line_items"]]
    assert ids == ["MAL-VAGG-01", "GRUND-TAK-01"]
    assert result["summary"]["room_name"] == "Sovrummet"
    assert "Kund:      Anna Svensson" in result["text"]


def test_session_estimate_with_wardrobe(ctx) -> None:
    session_id = _complete_session(ctx)
    plain = session_estimate(session_id=session_id, ctx=ctx)
    with_wardrobe = session_estimate(session_id=session_id, ctx=ctx, wardrobes=[{"length": 2.0}])
    assert with_wardrobe["estimate"]["room"]["walls_net"] < plain["estimate"]["room"]["walls_net"]


def test_estimate_from_payload(ctx) -> None:
    result = estimate_from_payload(
        payload={
            "room": {"width": 4, "length": 5, "height": 2.5, "doors": [{}], "windows": [{"width": 1.2, "height": 1.2}]},
            "tasks": ["måla tak", {"phrase": "måla väggar", "layers": 1}],
        },
        ctx=ctx,
    )
    items = result["estimate"]["line_items"]
    assert [i["task_id"] for i in items] == ["MAL-TAK-01", "MAL-VAGG-01"]
    assert items[1]["layers"] == 1
    assert "TOTALT:" in result["text"]


def test_estimate_from_payload_errors(ctx) -> None:
    with pytest.raises(ServiceError) as excinfo:
        estimate_from_payload(payload={"room": {"width": 0, "length": 5, "height": 2.5}, "tasks": ["måla tak"]}, ctx=ctx)
    assert excinfo.value.status_code == 422
    assert "Bredd måste vara större än 0 m" in excinfo.value.message
    with pytest.raises(ServiceError) as excinfo:
        estimate_from_payload(payload={"room": {"width": 4}, "tasks": ["måla tak"]}, ctx=ctx)
    assert excinfo.value.status_code == 422
    with pytest.raises(ServiceError) as excinfo:
        estimate_from_payload(payload={"room": {"width": 4, "length": 5, "height": 2.5}, "tasks": []}, ctx=ctx)
    assert excinfo.value.status_code == 400


def test_reset_single_and_all(ctx) -> None:
    session_id = _complete_session(ctx)
    reset_sessions(ctx=ctx, session_id=session_id)
    assert get_session(session_id=session_id, ctx=ctx)["step"] == "awaiting_client_name"
    result = reset_sessions(ctx=ctx)
    assert result["ok"] is True
    assert len(ctx.sessions) == 0


def test_catalog_listing_and_search(ctx) -> None:
    listing = list_catalog(ctx=ctx)
    assert listing["count"] == len(ctx.catalog)
    assert listing["source"] == str(DEMO_CATALOG)
    exact = search_catalog(query="takmålning", limit=5, ctx=ctx)
    assert exact["results"][0]["task_id"] == "MAL-TAK-01"
    assert exact["results"][0]["score"] == 100
    fuzzy = search_catalog(query="väggar", limit=3, ctx=ctx)
    assert 0 < fuzzy["count"] <= 3
    with pytest.raises(ServiceError):
        search_catalog(query="  ", limit=5, ctx=ctx)


def test_sessions_are_isolated_under_concurrency(ctx) -> None:
    ids = [create_session(ctx=ctx)["session_id"] for _ in range(8)]
    errors = []

    def drive(session_id: str, client: str) -> None:
        try:
            process_session_input(session_id=session_id, text=client, ctx=ctx)
            for text in DIALOGUE[1:]:
                process_session_input(session_id=session_id, text=text, ctx=ctx)
        except Exception as exc:  # pragma: no cover - surfaced by the assert below
            errors.append(exc)

    threads = [threading.Thread(target=drive, args=(sid, f"Kund {n}")) for n, sid in enumerate(ids)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    for n, sid in enumerate(ids):
        summary = session_summary(session_id=sid, ctx=ctx)
        assert summary["client_name"] == f"Kund {n}"
        assert len(summary["task_phrases"]) == 2
