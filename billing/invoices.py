"""
billing/invoices.py
Invoice generator: bills a customer's paid, un-invoiced shipments for a period.
"""
import sqlite3
from datetime import date, timedelta
from typing import Callable, Optional

from billing.results import PersistenceResult, random_suffix
from catalog.sqlite_store import SQLiteStore
from config.settings import settings
from monitoring import PERSISTENCE_FAILURES, get_logger
from pricing_engine.errors import PersistenceError

log = get_logger(__name__)


class InvoiceGenerator:
    """
    Sums the stored shipment prices and re-applies the flat tax rate to the
    aggregate.  One invoice item per shipment; shipments are linked to the
    invoice in the same transaction.
    """

    def __init__(
        self,
        store: SQLiteStore,
        tax_rate: Optional[float] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store    = store
        self.tax_rate = settings.tax_rate if tax_rate is None else tax_rate
        self._today   = today

    def invoice_number(self) -> str:
        """INV-<YYYY>-<MM>-<6 random upper-case alphanumerics>"""
        today = self._today()
        return f"INV-{today.year}-{today.month:02d}-{random_suffix()}"

    def generate(
        self,
        customer_id: str,
        period_start: date,
        period_end: date,
        user_id: Optional[str],
    ) -> PersistenceResult:
        try:
            shipments = self.store.unbilled_shipments(customer_id, period_start, period_end)
            if not shipments:
                raise PersistenceError("No shipments to invoice for this period")

            subtotal   = sum(s["price"] or 0 for s in shipments)
            tax_amount = subtotal * self.tax_rate
            issue_date = self._today()

            invoice = self.store.create_invoice(
                {
                    "invoice_number": self.invoice_number(),
                    "customer_id":    customer_id,
                    "period_start":   period_start.isoformat(),
                    "period_end":     period_end.isoformat(),
                    "issue_date":     issue_date.isoformat(),
                    "due_date":       (issue_date + timedelta(days=settings.invoice_due_days)).isoformat(),
                    "subtotal":       subtotal,
                    "tax_amount":     tax_amount,
                    "total_amount":   subtotal + tax_amount,
                    "status":         "SENT",
                    "created_by":     user_id,
                },
                [
                    {
                        "description": f"Shipment {s['tracking_number']}",
                        "quantity":    1,
                        "unit_price":  s["price"] or 0,
                        "shipment_id": s["id"],
                    }
                    for s in shipments
                ],
            )
        except (PersistenceError, sqlite3.Error) as exc:
            log.error("Invoice generation failed", customer_id=customer_id, error=str(exc))
            PERSISTENCE_FAILURES.labels(operation="invoice").inc()
            return PersistenceResult(success=False, error=str(exc))

        invoice["items"] = self.store.invoice_items(invoice["id"])
        log.info(
            "Invoice generated",
            invoice_number=invoice["invoice_number"],
            customer_id=customer_id,
            shipments=len(shipments),
            total=invoice["total_amount"],
        )
        return PersistenceResult(success=True, data=invoice)
