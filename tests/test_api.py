import logging

from conftest import AlternatingGraphBuilder, ScriptedSynthesizer
from fastapi.testclient import TestClient

from patternfill.main import app
from patternfill.services.collaborators import PatternEngine


client = TestClient(app)


def _payload(**chart):
    return {
        "chart": {"events": [{"row": 0, "lane": 0, "kind": "tap"}, {"row": 12, "lane": 2, "kind": "tap"}], **chart},
        "regions": [{"start_row": 8, "length": 8, "seed": 3}],
    }


def _use_engine(monkeypatch, synthesizer=None):
    engine = PatternEngine(graph_builder=AlternatingGraphBuilder(), synthesizer=synthesizer or ScriptedSynthesizer())
    monkeypatch.setattr("patternfill.main.engine", engine)
    return engine


def test_generate_patterns_returns_updated_chart(monkeypatch):
    _use_engine(monkeypatch)

    res = client.post("/api/generate-patterns", json=_payload())

    assert res.status_code == 200
    payload = res.json()
    assert payload["description"] == "Autogenerate Sixteenths Pattern at row 8."
    assert [event["row"] for event in payload["deleted"]] == [12]
    assert [event["row"] for event in payload["added"]] == list(range(8, 16))
    assert [event["row"] for event in payload["events"]] == [0, *range(8, 16)]
    region = payload["regions"][0]
    assert region["status"] == "generated"
    assert region["seed"] == 3
    assert region["preceding_footing"] == [0, 3]
    assert region["entry_foot"] == 0
    assert payload["warnings"] == []
    assert res.headers["X-Request-ID"]


def test_generate_patterns_reports_skipped_regions_as_warnings(monkeypatch):
    _use_engine(monkeypatch, ScriptedSynthesizer(fail_rows={8}))

    res = client.post("/api/generate-patterns", json=_payload())

    assert res.status_code == 200
    payload = res.json()
    assert payload["regions"][0]["status"] == "skipped"
    assert "Could not create Performed Chart." in payload["warnings"][0]
    assert payload["added"] == []


def test_generate_patterns_rejects_unknown_chart_type(monkeypatch, caplog):
    _use_engine(monkeypatch)

    with caplog.at_level(logging.INFO):
        res = client.post("/api/generate-patterns", json=_payload(chart_type="techno-single"))

    assert res.status_code == 422
    detail = res.json()["detail"]
    assert "Pattern generation failed" in detail["message"]
    assert detail["reason"] == "Failed to generate pattern. No techno-single StepGraph is loaded."
    assert detail["request_id"]
    assert any(getattr(record, "event", "") == "request_failed" for record in caplog.records)


def test_generate_patterns_validates_region_bounds(monkeypatch):
    _use_engine(monkeypatch)
    payload = _payload()
    payload["regions"] = [{"start_row": 16, "end_row": 8}]

    res = client.post("/api/generate-patterns", json=payload)

    assert res.status_code == 422


def test_generate_patterns_without_engine_fails_cleanly(monkeypatch):
    monkeypatch.setattr("patternfill.main.engine", PatternEngine())

    res = client.post("/api/generate-patterns", json=_payload())

    assert res.status_code == 422
    assert "graph builder" in res.json()["detail"]["reason"]


def test_config_catalog_lists_defaults():
    res = client.get("/api/configs")

    assert res.status_code == 200
    payload = res.json()
    assert "dance-single" in payload["step_graphs"]
    assert payload["pattern_configs"] == ["Eighths", "Sixteenths", "Twelfths"]
    assert "Balanced" in payload["synthesis_configs"]


def test_request_id_header_is_echoed():
    res = client.get("/api/configs", headers={"X-Request-ID": "req-abc"})

    assert res.headers["X-Request-ID"] == "req-abc"
