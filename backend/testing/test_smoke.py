import importlib
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


# Ensure the backend package is importable when pytest runs from repo root.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


def _load_app() -> TestClient:
    """
    Import the FastAPI app against the bundled demo catalog.
    Reloading ensures env overrides are respected for every test run.
    """
    os.environ["CATALOG_PATH"] = str(BACKEND_ROOT / "data" / "catalog.yaml")
    os.environ.setdefault("FRONTEND_ORIGINS", "http://test.local")
    module = importlib.import_module("main")
    module = importlib.reload(module)
    return TestClient(module.app)


@pytest.fixture(scope="session")
def client() -> TestClient:
    return _load_app()


def test_root_and_health(client: TestClient):
    assert client.get("/").json()["ok"] is True
    res = client.get("/api/health")
    assert res.status_code == 200
    data = res.json()
    assert data["ok"] is True
    assert "time" in data


def test_session_reset(client: TestClient):
    res = client.post("/api/session/reset")
    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is True
    assert "message" in body


def test_cors_preflight(client: TestClient):
    res = client.options(
        "/api/health",
        headers={
            "Origin": "http://test.local",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert res.status_code == 200
    assert res.headers.get("access-control-allow-origin") == "http://test.local"


def test_catalog_endpoints(client: TestClient):
    listing = client.get("/api/catalog").json()
    assert listing["count"] >= 10
    assert listing["source"].endswith("catalog.yaml")
    res = client.get("/api/catalog/search", params={"q": "måla tak"})
    assert res.status_code == 200
    assert res.json()["results"][0]["task_id"] == "MAL-TAK-01"
    assert client.get("/api/catalog/search", params={"q": "x"}).status_code == 422


def test_full_dialogue_over_http(client: TestClient):
    created = client.post("/api/session").json()
    session_id = created["session_id"]
    assert created["prompt"] == "Vad heter din kund?"

    assert client.get(f"/api/session/{session_id}/summary").status_code == 409

    for text in [
        "Anna Svensson",
        "Storgatan",
        "köket",
        "tre och en halv gånger fyra gånger två och en halv",
        "måla väggar två lager",
        "grundmåla taket",
        "klar",
        "ja",
    ]:
        res = client.post(f"/api/session/{session_id}/input", json={"text": text})
        assert res.status_code == 200
        assert res.json()["accepted"] is True

    state = client.get(f"/api/session/{session_id}").json()
    assert state["complete"] is True

    summary = client.get(f"/api/session/{session_id}/summary").json()
    assert summary["measurements"]["width"] == 3.5
    assert summary["task_phrases"] == ["måla väggar (2 lager)", "grundmåla tak"]

    estimate = client.post(f"/api/session/{session_id}/estimate").json()
    assert len(estimate["estimate"]["line_items"]) == 2
    assert estimate["estimate"]["totals"]["grand_total"] > 0
    assert "TOTALT:" in estimate["text"]


def test_unknown_session_is_404(client: TestClient):
    res = client.post("/api/session/nope/input", json={"text": "hej"})
    assert res.status_code == 404


def test_direct_estimate(client: TestClient):
    res = client.post(
        "/api/estimate",
        json={
            "room": {"width": 2, "length": 5, "height": 2.5, "doors": [{}], "windows": [{"width": 1.2, "height": 1.2}]},
            "tasks": ["måla väggar ett lager", {"phrase": "byta kranen"}],
        },
    )
    assert res.status_code == 200
    body = res.json()["estimate"]
    assert body["room"]["walls_net"] == 31.7
    assert body["line_items"][0]["quantity"] == 31.7
    assert body["unmapped_phrases"] == ["byta kranen"]


def test_direct_estimate_invalid_geometry(client: TestClient):
    res = client.post(
        "/api/estimate",
        json={"room": {"width": 0, "length": 5, "height": 2.5}, "tasks": ["måla tak"]},
    )
    assert res.status_code == 422
    assert "Bredd" in res.json()["detail"]
