"""
tests/test_billing.py
Payment recording, daily revenue and invoice generation against a real
SQLite file in tmp_path.
"""
import json
import re
import sys
from datetime import date, datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from billing.invoices import InvoiceGenerator
from billing.payments import PaymentRecorder
from catalog.sqlite_store import SQLiteStore
from pricing_engine.models import BreakdownLine, PriceCalculationResult

NOW = datetime(2026, 10, 19, 9, 30)
TODAY = NOW.date()

SHIPMENTS = [
    {"id": "s-1", "tracking_number": "TRK-001", "customer_id": "C-1", "price": 2320,
     "is_paid": True, "created_at": "2026-10-05 10:00:00"},
    {"id": "s-2", "tracking_number": "TRK-002", "customer_id": "C-1", "price": 1160,
     "is_paid": True, "created_at": "2026-10-31 23:15:00"},
    {"id": "s-3", "tracking_number": "TRK-003", "customer_id": "C-1", "price": 999,
     "is_paid": False, "created_at": "2026-10-10 08:00:00"},
    {"id": "s-4", "tracking_number": "TRK-004", "customer_id": "C-2", "price": 500,
     "is_paid": True, "created_at": "2026-10-10 08:00:00"},
    {"id": "s-5", "tracking_number": "TRK-005", "customer_id": "C-1", "price": 700,
     "is_paid": True, "created_at": "2026-11-01 00:00:01"},
]


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    s = SQLiteStore(db_path=tmp_path / "billing.db", strict_rules=False)
    for row in SHIPMENTS:
        s.insert_shipment(row)
    return s


@pytest.fixture
def payments(store) -> PaymentRecorder:
    return PaymentRecorder(store, now=lambda: NOW)


@pytest.fixture
def invoices(store) -> InvoiceGenerator:
    return InvoiceGenerator(store, tax_rate=0.16, today=lambda: TODAY)


@pytest.fixture
def quote() -> PriceCalculationResult:
    return PriceCalculationResult(
        base_price=1000, weight_price=1000, volume_price=0, distance_price=0,
        insurance_price=0, handling_fee=0, delivery_fee=0,
        subtotal=2000, tax_amount=320, total_amount=2320,
        breakdown=[BreakdownLine("Tariff Express", 1000), BreakdownLine("Weight surcharge (2kg)", 1000),
                   BreakdownLine("Tax (16%)", 320)],
        tariff_id="T-EXP-1",
    )


class TestPaymentRecorder:

    def test_reference_format(self, payments):
        assert re.match(r"^PAY-\d+-[A-Z0-9]{6}$", payments.payment_reference())

    def test_reference_uses_epoch_millis(self, payments):
        millis = int(payments.payment_reference().split("-")[1])
        assert millis == int(NOW.timestamp() * 1000)

    def test_records_paid_payment(self, payments, store):
        result = payments.record("s-3", 999, "cash", user_id="clerk-1")
        assert result.success, result.error
        assert result.data["status"] == "PAID"
        assert result.data["payment_method"] == "CASH"
        assert result.data["paid_amount"] == 999
        assert result.data["customer_id"] == "C-1"
        assert result.data["payment_date"] == "2026-10-19T09:30:00"
        assert result.data["created_by"] == "clerk-1"

        shipment = store.get_shipment("s-3")
        assert shipment["is_paid"] == 1
        assert shipment["payment_method"] == "CASH"

    def test_quote_stored_as_breakdown(self, payments, quote):
        result = payments.record("s-3", 2320, "MOBILE_MONEY", user_id=None, quote=quote)
        assert result.success
        stored = json.loads(result.data["price_breakdown"])
        assert stored["total_amount"] == 2320
        assert stored["breakdown"][2] == {"description": "Tax (16%)", "amount": 320}

    def test_missing_shipment_is_structured_failure(self, payments, store):
        result = payments.record("nope", 100, "CASH", user_id=None)
        assert not result.success
        assert "not found" in result.error
        assert store.stats()["payments"] == 0

    def test_unknown_method_is_structured_failure(self, payments, store):
        result = payments.record("s-3", 100, "BITCOIN", user_id=None)
        assert not result.success
        assert "BITCOIN" in result.error
        assert store.get_shipment("s-3")["is_paid"] == 0

    def test_non_positive_amount_rejected(self, payments):
        result = payments.record("s-3", 0, "CASH", user_id=None)
        assert not result.success

    def test_daily_revenue(self, payments):
        payments.record("s-1", 2320, "CASH", user_id=None)
        payments.record("s-2", 1160, "CREDIT_CARD", user_id=None)
        payments.record("s-4", 500, "CASH", user_id=None)

        revenue = payments.daily_revenue()
        assert revenue["day"] == "2026-10-19"
        assert revenue["count"] == 3
        assert revenue["total"] == pytest.approx(3980)
        assert revenue["by_method"] == {"CASH": pytest.approx(2820), "CREDIT_CARD": pytest.approx(1160)}

    def test_daily_revenue_other_day_is_empty(self, payments):
        payments.record("s-1", 2320, "CASH", user_id=None)
        revenue = payments.daily_revenue(date(2026, 10, 18))
        assert revenue["count"] == 0
        assert revenue["total"] == 0
        assert revenue["by_method"] == {}


class TestInvoiceGenerator:

    def test_number_format(self, invoices):
        assert re.match(r"^INV-2026-10-[A-Z0-9]{6}$", invoices.invoice_number())

    def test_invoices_paid_shipments_in_period(self, invoices, store):
        result = invoices.generate("C-1", date(2026, 10, 1), date(2026, 10, 31), user_id="clerk-1")
        assert result.success, result.error

        invoice = result.data
        assert invoice["subtotal"] == pytest.approx(3480)
        assert invoice["tax_amount"] == pytest.approx(3480 * 0.16)
        assert invoice["total_amount"] == pytest.approx(3480 * 1.16)
        assert invoice["status"] == "SENT"
        assert invoice["issue_date"] == "2026-10-19"
        assert invoice["due_date"] == "2026-11-18"

        items = invoice["items"]
        assert [i["shipment_id"] for i in items] == ["s-1", "s-2"]
        assert items[0]["description"] == "Shipment TRK-001"
        assert all(i["quantity"] == 1 for i in items)

        assert store.get_shipment("s-1")["invoice_id"] == invoice["id"]
        assert store.get_shipment("s-3")["invoice_id"] is None
        assert store.get_shipment("s-5")["invoice_id"] is None

    def test_shipments_are_invoiced_once(self, invoices):
        first = invoices.generate("C-1", date(2026, 10, 1), date(2026, 10, 31), user_id=None)
        second = invoices.generate("C-1", date(2026, 10, 1), date(2026, 10, 31), user_id=None)
        assert first.success
        assert not second.success
        assert second.error == "No shipments to invoice for this period"

    def test_empty_period_fails_without_writing(self, invoices, store):
        result = invoices.generate("C-9", date(2026, 10, 1), date(2026, 10, 31), user_id=None)
        assert not result.success
        assert store.stats()["invoices"] == 0
