# tests/test_server.py
"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: test_server.py
Description: HTTP tests for APIServer using Flask's test client.
"""

import base64
from typing import Any, Dict

import cv2
import numpy as np
import pytest

from drive_decision.api.server import APIServer
from drive_decision.core.config import AppConfig
from drive_decision.core.settings_store import SettingsStore
from drive_decision.services.analyzer import FareAnalyzer


@pytest.fixture
def analyzer() -> FareAnalyzer:
    fa = FareAnalyzer()
    yield fa
    fa.shutdown()


@pytest.fixture
def client(tmp_path, analyzer: FareAnalyzer):
    store = SettingsStore(str(tmp_path / "settings.json"))
    server = APIServer(analyzer, store, AppConfig(ocr_timeout_s=1.2))
    app = server.create_app()
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def analyze_payload(offer_dump: str) -> Dict[str, Any]:
    return {
        "accessibility_text": offer_dump,
        "ocr_lines": [
            {"text": "PICKUP (min): 5 min | 1.2 km", "left": 40, "top": 300, "right": 420, "bottom": 340},
            {"text": "TOTAL (max): 12 min | 6.0 km", "left": 40, "top": 520, "right": 420, "bottom": 560},
        ],
    }


# -----------------------------------------------------------------------------
# Status and settings
# -----------------------------------------------------------------------------

def test_status(client) -> None:
    response = client.get("/api/status")
    assert response.status_code == 200
    assert response.get_json() == {"busy": False, "ocr_timeout_s": 1.2}


def test_get_default_settings(client) -> None:
    response = client.get("/api/settings")
    assert response.status_code == 200
    assert response.get_json()["min_net_per_hour"] == 90.0


def test_put_settings_clamps_and_persists(client) -> None:
    response = client.put("/api/settings", json={"fee_pct": 150, "fuel_price": 25})
    assert response.status_code == 200
    assert response.get_json()["fee_pct"] == 100.0

    stored = client.get("/api/settings").get_json()
    assert stored["fee_pct"] == 100.0
    assert stored["fuel_price"] == 25.0


@pytest.mark.parametrize("kwargs", [
    {"json": {"fuel_price": "cheap"}},
    {"json": [1, 2, 3]},
    {"data": "not json", "content_type": "text/plain"},
])
def test_put_invalid_settings(client, kwargs) -> None:
    assert client.put("/api/settings", **kwargs).status_code == 400


# -----------------------------------------------------------------------------
# Analysis
# -----------------------------------------------------------------------------

def test_analyze_accepts_passenger_offer(client, analyze_payload: Dict[str, Any]) -> None:
    response = client.post("/api/analyze", json=analyze_payload)
    body = response.get_json()

    assert response.status_code == 200
    assert body["status"] == "ok"
    assert body["recommendation"]["decision"] == "accept"
    assert body["recommendation"]["offer"]["amount"] == "70"
    assert "ACCEPT 70" in body["report"]


def test_analyze_settings_override(client, analyze_payload: Dict[str, Any]) -> None:
    analyze_payload["settings"] = {"min_net_per_hour": 1000}
    body = client.post("/api/analyze", json=analyze_payload).get_json()

    assert body["recommendation"]["decision"] == "minimum"
    assert client.get("/api/settings").get_json()["min_net_per_hour"] == 90.0


def test_analyze_without_readings(client, offer_dump: str) -> None:
    response = client.post("/api/analyze", json={"accessibility_text": offer_dump, "ocr_lines": []})
    assert response.status_code == 200
    assert response.get_json()["status"] == "need_clearer_capture"


def test_analyze_image_without_engine(client) -> None:
    ok, png = cv2.imencode(".png", np.full((120, 160, 3), 255, dtype=np.uint8))
    assert ok
    image_data = "data:image/png;base64," + base64.b64encode(png.tobytes()).decode("ascii")

    response = client.post("/api/analyze", json={"image_data": image_data})
    assert response.status_code == 200
    assert response.get_json()["status"] == "recognition_failed"


@pytest.mark.parametrize("payload", [
    {"ocr_lines": [{"text": "5 min", "left": 0}]},
    {"ocr_lines": "5 min"},
    {"ocr_lines": [{"left": 0, "top": 0, "right": 1, "bottom": 1}]},
    {"image_data": "%%%not-base64%%%"},
    {"image_data": base64.b64encode(b"not an image").decode("ascii")},
    {"crop": {"left": "a", "top": 0, "right": 1, "bottom": 1}},
    {"accessibility_text": 42},
    {"settings": {"fee_pct": "ten"}},
    {"settings": [1]},
])
def test_analyze_bad_input(client, payload: Dict[str, Any]) -> None:
    response = client.post("/api/analyze", json=payload)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_analyze_requires_json(client) -> None:
    assert client.post("/api/analyze", data="x", content_type="text/plain").status_code == 400


def test_analyze_while_busy_returns_409(client, analyzer: FareAnalyzer, analyze_payload: Dict[str, Any]) -> None:
    analyzer._in_flight.acquire()
    try:
        assert client.get("/api/status").get_json()["busy"] is True
        response = client.post("/api/analyze", json=analyze_payload)
    finally:
        analyzer._in_flight.release()

    assert response.status_code == 409
    assert response.get_json()["status"] == "busy"


def test_unknown_route_is_json_404(client) -> None:
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Resource not found"}
