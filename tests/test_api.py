"""
tests/test_api.py
REST layer over a temporary SQLite store seeded from the shipped catalog.
"""
import sys
from datetime import date, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

import api.routes as routes
from api.app import create_app
from billing.invoices import InvoiceGenerator
from billing.payments import PaymentRecorder
from catalog.json_store import JSONCatalog
from catalog.sqlite_store import SQLiteStore
from pricing_engine.engine import PricingEngine

TODAY = date(2026, 10, 19)
SEED = Path(__file__).parent.parent / "data" / "catalog.json"


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    source = JSONCatalog(SEED)
    s = SQLiteStore(db_path=tmp_path / "api.db", strict_rules=False)
    s.insert_tariffs(source.tariff_rows())
    s.insert_rules(source.rule_rows())
    s.insert_shipment({"id": "s-1", "tracking_number": "TRK-001", "customer_id": "C-1",
                       "price": 2320, "created_at": "2026-10-05 10:00:00"})
    return s


@pytest.fixture
def client(store, monkeypatch) -> TestClient:
    monkeypatch.setattr(routes, "_store", store)
    monkeypatch.setattr(routes, "_engine", PricingEngine(catalog=store, tax_rate=0.16, today=lambda: TODAY))
    monkeypatch.setattr(routes, "_payments", PaymentRecorder(store, now=lambda: datetime(2026, 10, 19, 12)))
    monkeypatch.setattr(routes, "_invoices", InvoiceGenerator(store, tax_rate=0.16, today=lambda: TODAY))
    return TestClient(create_app())


class TestPriceEndpoint:

    def test_express_quote(self, client):
        r = client.post("/api/v1/price", json={"service_type": "EXPRESS", "weight_kg": 2})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["tariff_id"] == "T-EXP-1"
        assert body["subtotal"] == 2000
        assert body["tax_amount"] == pytest.approx(320)
        assert body["total_amount"] == 2320
        assert body["breakdown"][0]["description"].startswith("Tariff")
        assert body["breakdown"][-1]["description"] == "Tax (16%)"

    def test_rules_applied_and_skipped(self, client):
        payload = {"service_type": "EXPRESS", "weight_kg": 25, "requires_signature": True}
        with_rules = client.post("/api/v1/price", json=payload).json()
        without = client.post("/api/v1/price", json={**payload, "skip_rules": True}).json()
        assert with_rules["rules_applied"]
        assert without["rules_applied"] == []
        assert without["rules_skipped"] is True
        assert with_rules["subtotal"] > without["subtotal"]

    def test_no_tariff_is_422(self, client):
        r = client.post("/api/v1/price", json={"service_type": "OVERNIGHT", "weight_kg": 1})
        assert r.status_code == 422
        detail = r.json()["detail"]
        assert detail["error"] == "No rate available for this service/weight"
        assert detail["service_type"] == "OVERNIGHT"

    def test_non_positive_weight_rejected(self, client):
        r = client.post("/api/v1/price", json={"service_type": "EXPRESS", "weight_kg": 0})
        assert r.status_code == 422


class TestBillingEndpoints:

    def test_payment_then_invoice(self, client, store):
        paid = client.post("/api/v1/payments", json={
            "shipment_id": "s-1", "amount": 2320, "payment_method": "CASH", "user_id": "clerk-1",
        })
        assert paid.status_code == 200
        assert paid.json()["success"] is True
        assert paid.json()["data"]["payment_reference"].startswith("PAY-")

        invoiced = client.post("/api/v1/invoices", json={
            "customer_id": "C-1", "period_start": "2026-10-01", "period_end": "2026-10-31",
        })
        body = invoiced.json()
        assert body["success"] is True
        assert body["data"]["subtotal"] == 2320
        assert len(body["data"]["items"]) == 1

        revenue = client.get("/api/v1/revenue/daily", params={"day": "2026-10-19"}).json()
        assert revenue["count"] == 1
        assert revenue["by_method"] == {"CASH": 2320}

    def test_payment_for_unknown_shipment(self, client):
        r = client.post("/api/v1/payments", json={
            "shipment_id": "missing", "amount": 10, "payment_method": "CASH",
        })
        assert r.status_code == 200
        assert r.json()["success"] is False
        assert r.json()["error"]

    def test_unknown_payment_method_rejected(self, client):
        r = client.post("/api/v1/payments", json={
            "shipment_id": "s-1", "amount": 10, "payment_method": "BARTER",
        })
        assert r.status_code == 422

    def test_reversed_invoice_period_rejected(self, client):
        r = client.post("/api/v1/invoices", json={
            "customer_id": "C-1", "period_start": "2026-10-31", "period_end": "2026-10-01",
        })
        assert r.status_code == 422


class TestCatalogEndpoints:

    def test_tariffs(self, client):
        tariffs = client.get("/api/v1/tariffs", params={"service_type": "EXPRESS"}).json()["tariffs"]
        assert {t["id"] for t in tariffs} == {"T-EXP-1", "T-EXP-OLD"}

    def test_rules_in_priority_order(self, client):
        body = client.get("/api/v1/rules", params={"as_of": "2026-10-19"}).json()
        priorities = [r["priority"] for r in body["rules"]]
        assert priorities == sorted(priorities, reverse=True)
        assert not any(r["inert"] for r in body["rules"])

    def test_rule_validation(self, client):
        body = client.get("/api/v1/rules/validation").json()
        assert body["passed"] is True
        assert body["checked"] == 4

    def test_health(self, client):
        body = client.get("/api/v1/health").json()
        assert body["status"] == "healthy"
        assert body["catalog"]["loaded"] is True
        assert body["catalog"]["breakdown"]["pricing_rules"] == 4


class TestRobustness:

    BAD_RULE = {"id": "R-BAD", "name": "bad", "condition_field": "weight_kg", "operator": ">",
                "value_from": 0, "action_type": "ADD", "action_value": "ten", "priority": 99,
                "effective_date": "01/02/2024"}

    def test_malformed_rule_does_not_break_pricing(self, client, store):
        store.insert_rules([self.BAD_RULE])
        r = client.post("/api/v1/price", json={"service_type": "EXPRESS", "weight_kg": 2})
        assert r.status_code == 200
        assert r.json()["total_amount"] == 2320

        rules = client.get("/api/v1/rules", params={"as_of": "2026-10-19"}).json()["rules"]
        assert [r["inert"] for r in rules if r["id"] == "R-BAD"] == [True]

    def test_malformed_rule_is_reported(self, client, store):
        store.insert_rules([self.BAD_RULE])
        body = client.get("/api/v1/rules/validation").json()
        assert body["passed"] is False
        assert any("non-numeric action_value" in i for i in body["issues"])
        assert any("unparseable" in i for i in body["issues"])

    def test_read_endpoints_use_threadpool(self, client, monkeypatch):
        calls = []
        original = routes.run_in_threadpool

        async def recording(fn, *args, **kwargs):
            calls.append(fn.__name__)
            return await original(fn, *args, **kwargs)

        monkeypatch.setattr(routes, "run_in_threadpool", recording)
        for path in ("/tariffs", "/rules", "/rules/validation", "/revenue/daily", "/health"):
            assert client.get("/api/v1" + path).status_code == 200
        assert calls == ["all_tariffs", "list_active_rules", "rule_rows", "daily_revenue", "stats"]

    def test_unexpected_error_uses_error_envelope(self, store, monkeypatch):
        def broken():
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(routes, "_store", store)
        monkeypatch.setattr(store, "stats", broken)
        client = TestClient(create_app(), raise_server_exceptions=False)

        r = client.get("/api/v1/health")
        assert r.status_code == 500
        assert r.json() == {"success": False, "error": "Internal server error", "detail": "disk on fire"}
