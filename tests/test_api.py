from __future__ import annotations

import os
import sys
from pathlib import Path

from starlette.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from receipt_tracker.diagnostics import LastParseRecorder
from receipt_tracker.pipeline.api import create_app
from receipt_tracker.settings import SettingsStore

RECEIPT = "\n".join(
    [
        "WHOLE FOODS MARKET",
        "Date: 15/03/2024",
        "Milk 2L                  4.99",
        "Bread Whole Wheat        3.50",
        "Eggs Dozen               5.25",
        "Cheese Cheddar           7.99",
        "Subtotal                21.73",
        "Tax                      1.74",
        "Total                   23.47",
    ]
)


def _client(root: Path, *, recorder: LastParseRecorder | None = None) -> tuple[TestClient, SettingsStore]:
    store = SettingsStore(str(root / "settings.json"))
    app = create_app(store, recorder=recorder, allow_origins=["*"])
    return TestClient(app), store


def test_parse_endpoint_returns_receipt(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)

    resp = client.post("/api/parse", json={"text": RECEIPT})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["merchant"] == "WHOLE FOODS MARKET"
    assert payload["date"] == "2024-03-15"
    assert payload["subtotal_cents"] == 2173
    assert payload["tax_cents"] == 174
    assert payload["total_cents"] == 2347
    assert len(payload["items"]) == 4
    assert payload["items"][0] == {
        "name": "Milk 2L",
        "quantity": 1,
        "amount_cents": 499,
        "category": "Groceries",
        "raw_text": "Milk 2L                  4.99",
    }
    # 21.73 in items against a 23.47 total: the tax is not an item
    assert payload["reconciliation"]["items_cents"] == 2173
    assert payload["reconciliation"]["mismatch"] is True


def test_parse_endpoint_rejects_bad_input(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)

    assert client.post("/api/parse", json={"text": 42}).status_code == 400
    assert client.post("/api/parse", json=["text"]).status_code == 400
    assert client.post("/api/parse", content=b"not json", headers={"content-type": "application/json"}).status_code == 400


def test_parse_empty_text_is_not_an_error(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)

    payload = client.post("/api/parse", json={"text": ""}).json()
    assert payload["merchant"] == "Unknown Merchant"
    assert payload["date"] is None
    assert payload["items"] == []


def test_rules_crud_changes_categories(tmp_path: Path) -> None:
    client, store = _client(tmp_path)

    listing = client.get("/api/rules").json()
    assert listing["user"] == []
    assert listing["built_in"][0] == {"keyword": "bread", "category": "Groceries"}

    created = client.post("/api/rules", json={"keyword": "MILK", "category": "Dairy"})
    assert created.status_code == 201
    assert created.json() == {"keyword": "milk", "category": "Dairy"}
    assert [r.keyword for r in store.keyword_rules()] == ["milk"]

    items = client.post("/api/parse", json={"text": RECEIPT}).json()["items"]
    assert items[0]["category"] == "Dairy"

    assert client.delete("/api/rules/milk").status_code == 204
    assert client.delete("/api/rules/milk").status_code == 404
    items = client.post("/api/parse", json={"text": RECEIPT}).json()["items"]
    assert items[0]["category"] == "Groceries"


def test_add_rule_validation(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)

    assert client.post("/api/rules", json={"keyword": "  ", "category": "X"}).status_code == 400
    assert client.post("/api/rules", json={"keyword": "tea", "category": ""}).status_code == 400
    assert client.post("/api/rules", json={"keyword": "tea"}).status_code == 400


def test_debug_endpoints_need_a_recorder(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    assert client.get("/api/debug/last-parse").status_code == 404
    assert client.get("/api/debug/logs").status_code == 404

    client, _ = _client(tmp_path, recorder=LastParseRecorder())
    empty = client.get("/api/debug/last-parse").json()
    assert empty == {"ocr": None, "parse": None}

    client.post("/api/parse", json={"text": RECEIPT})
    snap = client.get("/api/debug/last-parse").json()
    assert snap["parse"]["receipt"]["total_cents"] == 2347

    logs = client.get("/api/debug/logs", params={"tag": "parser"}).json()["items"]
    assert logs
    assert all("parser" in entry["tag"] for entry in logs)


def test_health(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_review_uses_stored_currency(tmp_path: Path) -> None:
    client, store = _client(tmp_path)

    assert client.get("/api/settings/currency").json() == {"currency": "USD"}
    resp = client.put("/api/settings/currency", json={"currency": "eur"})
    assert resp.status_code == 200
    assert resp.json() == {"currency": "EUR"}
    assert store.currency() == "EUR"
    assert client.put("/api/settings/currency", json={"currency": "euro"}).status_code == 400

    payload = client.post("/api/review", json={"text": "CORNER SHOP\n2 x Coffee 5.00\nGum 1.50"}).json()
    assert payload["currency"] == "EUR"
    assert payload["subtotal_cents"] == 650
    assert payload["tax_cents"] == 0
    assert payload["total_cents"] == 650
    assert payload["date"]
    assert payload["items"][0]["unit_cents"] == 250
    assert payload["reconciliation"]["mismatch"] is False

    assert client.post("/api/review", json={"text": None}).status_code == 400
