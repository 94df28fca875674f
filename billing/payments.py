"""
billing/payments.py
Payment recorder: persists a payment for a priced shipment and marks the
shipment paid.  Also provides the daily revenue summary.
"""
import sqlite3
from collections import defaultdict
from datetime import date, datetime
from typing import Callable, Optional

from billing.results import PersistenceResult, random_suffix
from catalog.sqlite_store import SQLiteStore
from monitoring import PERSISTENCE_FAILURES, get_logger
from pricing_engine.errors import PersistenceError
from pricing_engine.models import PaymentMethod, PriceCalculationResult

log = get_logger(__name__)


class PaymentRecorder:

    def __init__(self, store: SQLiteStore, now: Callable[[], datetime] = datetime.now) -> None:
        self.store = store
        self._now  = now

    def payment_reference(self) -> str:
        """PAY-<epoch millis>-<6 random upper-case alphanumerics>"""
        millis = int(self._now().timestamp() * 1000)
        return f"PAY-{millis}-{random_suffix()}"

    def record(
        self,
        shipment_id: str,
        amount: float,
        payment_method: str,
        user_id: Optional[str],
        quote: Optional[PriceCalculationResult] = None,
    ) -> PersistenceResult:
        """
        Persist a PAID payment and flag the shipment as paid.

        Args:
            quote: Optional price calculation stored with the payment as an audit artifact.
        """
        try:
            method = PaymentMethod(str(payment_method).upper())
            if amount <= 0:
                raise PersistenceError("amount must be > 0")
            payment = self.store.record_payment({
                "shipment_id":       shipment_id,
                "amount":            amount,
                "paid_amount":       amount,
                "payment_method":    method.value,
                "payment_reference": self.payment_reference(),
                "status":            "PAID",
                "payment_date":      self._now().isoformat(timespec="seconds"),
                "created_by":        user_id,
                "price_breakdown":   quote.to_dict() if quote else None,
            })
        except ValueError:
            return self._failed(shipment_id, f"Unknown payment method '{payment_method}'")
        except (PersistenceError, sqlite3.Error) as exc:
            return self._failed(shipment_id, str(exc))

        log.info(
            "Payment recorded",
            shipment_id=shipment_id,
            reference=payment["payment_reference"],
            amount=amount,
            method=payment["payment_method"],
        )
        return PersistenceResult(success=True, data=payment)

    def daily_revenue(self, day: Optional[date] = None) -> dict:
        """Total, count and per-method totals of the payments dated `day`."""
        day = day or self._now().date()
        payments = self.store.payments_on(day)
        by_method: dict[str, float] = defaultdict(float)
        for p in payments:
            by_method[p["payment_method"]] += p["amount"]
        return {
            "day":       day.isoformat(),
            "total":     sum(p["amount"] for p in payments),
            "count":     len(payments),
            "by_method": dict(by_method),
        }

    @staticmethod
    def _failed(shipment_id: str, error: str) -> PersistenceResult:
        log.error("Payment persistence failed", shipment_id=shipment_id, error=error)
        PERSISTENCE_FAILURES.labels(operation="payment").inc()
        return PersistenceResult(success=False, error=error)
