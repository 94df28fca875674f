"""
catalog/sqlite_store.py
SQLite persistence for the tariff/rule catalog and the billing records
(shipments, payments, invoices).
"""
import json
import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Optional

from config.settings import settings
from monitoring import get_logger
from pricing_engine.errors import PersistenceError
from pricing_engine.models import PricingRule, Tariff
from pricing_engine.rules import decode_rule

log = get_logger(__name__)

DB_PATH = Path(settings.sqlite_db_path)


SCHEMA = """
-- ─────────────────────────────────────────────────────────────────
-- tariffs: rate cards per service type and weight interval
-- ─────────────────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS tariffs (
    seq                    INTEGER PRIMARY KEY AUTOINCREMENT,  -- catalog order
    id                     TEXT NOT NULL UNIQUE,
    code                   TEXT,
    name                   TEXT,
    service_type           TEXT NOT NULL,       -- STANDARD | EXPRESS | ...
    min_weight             REAL NOT NULL DEFAULT 0,
    max_weight             REAL,                -- NULL = no upper limit
    base_price             REAL NOT NULL,
    price_per_kg           REAL,
    price_per_volume_unit  REAL,                -- per cm3
    insurance_rate_percent REAL NOT NULL DEFAULT 0,
    handling_fee           REAL NOT NULL DEFAULT 0,
    delivery_fee           REAL NOT NULL DEFAULT 0,
    is_active              INTEGER NOT NULL DEFAULT 1
);

-- ─────────────────────────────────────────────────────────────────
-- pricing_rules: conditional surcharges/discounts
-- ─────────────────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS pricing_rules (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT NOT NULL UNIQUE,
    name            TEXT NOT NULL,
    description     TEXT,
    condition_field TEXT,                       -- weight_kg | volume_cm3 | total_amount | ...
    operator        TEXT,                       -- = > < >= <= BETWEEN
    value_from      REAL,
    value_to        REAL,                       -- BETWEEN only
    action_type     TEXT,                       -- ADD | MULTIPLY | PERCENTAGE | FIXED
    action_value    REAL NOT NULL,
    priority        INTEGER NOT NULL DEFAULT 0, -- higher evaluated first
    effective_date  TEXT NOT NULL,              -- YYYY-MM-DD
    expiration_date TEXT,                       -- NULL = open-ended
    is_active       INTEGER NOT NULL DEFAULT 1
);

-- ─────────────────────────────────────────────────────────────────
-- shipments: minimal rows read and updated by billing
-- ─────────────────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS shipments (
    id              TEXT PRIMARY KEY,
    tracking_number TEXT NOT NULL UNIQUE,
    customer_id     TEXT,
    price           REAL NOT NULL DEFAULT 0,
    is_paid         INTEGER NOT NULL DEFAULT 0,
    payment_method  TEXT,
    invoice_id      INTEGER,
    created_at      TEXT DEFAULT (datetime('now')),
    updated_at      TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS payments (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    shipment_id       TEXT NOT NULL,
    customer_id       TEXT,
    amount            REAL NOT NULL,
    paid_amount       REAL NOT NULL,
    payment_method    TEXT NOT NULL,
    payment_reference TEXT NOT NULL UNIQUE,
    status            TEXT NOT NULL DEFAULT 'PAID',
    payment_date      TEXT NOT NULL,
    created_by        TEXT,
    price_breakdown   TEXT                      -- JSON audit artifact
);

CREATE TABLE IF NOT EXISTS invoices (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number TEXT NOT NULL UNIQUE,
    customer_id    TEXT NOT NULL,
    period_start   TEXT,
    period_end     TEXT,
    issue_date     TEXT NOT NULL,
    due_date       TEXT NOT NULL,
    subtotal       REAL NOT NULL,
    tax_amount     REAL NOT NULL,
    total_amount   REAL NOT NULL,
    status         TEXT NOT NULL DEFAULT 'SENT',
    created_by     TEXT
);

CREATE TABLE IF NOT EXISTS invoice_items (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id  INTEGER NOT NULL REFERENCES invoices(id),
    description TEXT NOT NULL,
    quantity    INTEGER NOT NULL DEFAULT 1,
    unit_price  REAL NOT NULL,
    shipment_id TEXT
);
"""

_TARIFF_COLUMNS = (
    "id", "code", "name", "service_type", "min_weight", "max_weight", "base_price",
    "price_per_kg", "price_per_volume_unit", "insurance_rate_percent",
    "handling_fee", "delivery_fee", "is_active",
)
_RULE_COLUMNS = (
    "id", "name", "description", "condition_field", "operator", "value_from", "value_to",
    "action_type", "action_value", "priority", "effective_date", "expiration_date", "is_active",
)


_DEFAULTS = {
    "min_weight": 0, "insurance_rate_percent": 0, "handling_fee": 0, "delivery_fee": 0,
    "priority": 0, "action_value": 0,
}


def _normalise(row: dict, columns: tuple[str, ...]) -> dict:
    out = {c: row.get(c) for c in columns}
    for key, default in _DEFAULTS.items():
        if key in out and out[key] is None:
            out[key] = default
    out["is_active"] = 1 if row.get("is_active", True) else 0
    for key in ("effective_date", "expiration_date"):
        if isinstance(out.get(key), date):
            out[key] = out[key].isoformat()
    if "effective_date" in out and not out["effective_date"]:
        out["effective_date"] = date.min.isoformat()
    return out


class SQLiteStore:
    """
    Read/write interface to the SQLite pricing database.
    Used by:
      - PricingEngine (read):     tariff and active-rule snapshots
      - Billing (read/write):     shipments, payments, invoices
      - CLI seed command (write): catalog rows from the JSON seed file
    """

    def __init__(self, db_path: Optional[Path] = None, strict_rules: Optional[bool] = None) -> None:
        self.db_path = Path(db_path) if db_path else DB_PATH
        self.strict_rules = settings.strict_rule_loading if strict_rules is None else strict_rules
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()
        log.info("SQLite store ready", path=str(self.db_path))

    # ── Schema ────────────────────────────────────────────────────────────────

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ── Catalog write ─────────────────────────────────────────────────────────

    def clear_catalog(self) -> None:
        """Wipe tariffs and rules (used before re-seeding)."""
        with self._conn() as conn:
            for t in ("tariffs", "pricing_rules"):
                conn.execute(f"DELETE FROM {t}")
        log.info("Catalog cleared")

    def insert_tariffs(self, rows: list[dict]) -> int:
        sql = f"""INSERT INTO tariffs ({", ".join(_TARIFF_COLUMNS)})
                  VALUES ({", ".join(":" + c for c in _TARIFF_COLUMNS)})"""
        with self._conn() as conn:
            conn.executemany(sql, [_normalise(r, _TARIFF_COLUMNS) for r in rows])
        return len(rows)

    def insert_rules(self, rows: list[dict]) -> int:
        sql = f"""INSERT INTO pricing_rules ({", ".join(_RULE_COLUMNS)})
                  VALUES ({", ".join(":" + c for c in _RULE_COLUMNS)})"""
        with self._conn() as conn:
            conn.executemany(sql, [_normalise(r, _RULE_COLUMNS) for r in rows])
        return len(rows)

    # ── Catalog read (pricing engine) ─────────────────────────────────────────

    def list_tariffs(self, service_type: str, weight_kg: float) -> list[Tariff]:
        """Active tariffs covering weight_kg, cheapest first, catalog order on ties."""
        with self._conn() as conn:
            rows = conn.execute("""
                SELECT * FROM tariffs
                WHERE service_type = ?
                  AND is_active = 1
                  AND min_weight <= ?
                  AND (max_weight IS NULL OR max_weight >= ?)
                ORDER BY base_price, seq
            """, (service_type, weight_kg, weight_kg)).fetchall()
        return [Tariff.from_row(dict(r)) for r in rows]

    def all_tariffs(self, service_type: Optional[str] = None) -> list[Tariff]:
        sql, params = "SELECT * FROM tariffs", ()
        if service_type:
            sql, params = sql + " WHERE service_type = ?", (service_type,)
        with self._conn() as conn:
            rows = conn.execute(sql + " ORDER BY seq", params).fetchall()
        return [Tariff.from_row(dict(r)) for r in rows]

    def list_active_rules(self, as_of: date) -> list[PricingRule]:
        """Rules in effect on as_of, highest priority first, catalog order on ties."""
        day = as_of.isoformat()
        with self._conn() as conn:
            rows = conn.execute("""
                SELECT * FROM pricing_rules
                WHERE is_active = 1
                  AND effective_date <= ?
                  AND (expiration_date IS NULL OR expiration_date >= ?)
                ORDER BY priority DESC, seq
            """, (day, day)).fetchall()
        return [decode_rule(dict(r), strict=self.strict_rules) for r in rows]

    def rule_rows(self) -> list[dict[str, Any]]:
        """Raw rule rows, undecoded, for out-of-band validation."""
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM pricing_rules ORDER BY seq").fetchall()
        return [dict(r) for r in rows]

    # ── Shipments ─────────────────────────────────────────────────────────────

    def insert_shipment(self, row: dict) -> None:
        with self._conn() as conn:
            conn.execute("""
                INSERT INTO shipments (id, tracking_number, customer_id, price, is_paid, created_at)
                VALUES (:id, :tracking_number, :customer_id, :price, :is_paid,
                        COALESCE(:created_at, datetime('now')))
            """, {
                "id": row["id"],
                "tracking_number": row["tracking_number"],
                "customer_id": row.get("customer_id"),
                "price": row.get("price", 0),
                "is_paid": 1 if row.get("is_paid") else 0,
                "created_at": row.get("created_at"),
            })

    def get_shipment(self, shipment_id: str) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM shipments WHERE id = ?", (shipment_id,)).fetchone()
        return dict(row) if row else None

    # ── Payments ──────────────────────────────────────────────────────────────

    def record_payment(self, payment: dict) -> dict:
        """Insert a payment and mark its shipment paid, in one transaction."""
        with self._conn() as conn:
            shipment = conn.execute(
                "SELECT id, customer_id FROM shipments WHERE id = ?", (payment["shipment_id"],)
            ).fetchone()
            if shipment is None:
                raise PersistenceError(f"Shipment {payment['shipment_id']} not found")

            row = {**payment, "customer_id": shipment["customer_id"]}
            breakdown = row.get("price_breakdown")
            row["price_breakdown"] = json.dumps(breakdown) if breakdown is not None else None
            cur = conn.execute("""
                INSERT INTO payments (shipment_id, customer_id, amount, paid_amount, payment_method,
                                      payment_reference, status, payment_date, created_by, price_breakdown)
                VALUES (:shipment_id, :customer_id, :amount, :paid_amount, :payment_method,
                        :payment_reference, :status, :payment_date, :created_by, :price_breakdown)
            """, row)
            conn.execute("""
                UPDATE shipments
                SET is_paid = 1, payment_method = ?, updated_at = datetime('now')
                WHERE id = ?
            """, (payment["payment_method"], payment["shipment_id"]))
            stored = conn.execute("SELECT * FROM payments WHERE id = ?", (cur.lastrowid,)).fetchone()
        return dict(stored)

    def payments_on(self, day: date) -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM payments WHERE substr(payment_date, 1, 10) = ? ORDER BY id",
                (day.isoformat(),),
            ).fetchall()
        return [dict(r) for r in rows]

    # ── Invoices ──────────────────────────────────────────────────────────────

    def unbilled_shipments(self, customer_id: str, period_start: date, period_end: date) -> list[dict]:
        """Paid, un-invoiced shipments of a customer created within the period (inclusive)."""
        with self._conn() as conn:
            rows = conn.execute("""
                SELECT id, tracking_number, price, created_at FROM shipments
                WHERE customer_id = ?
                  AND is_paid = 1
                  AND invoice_id IS NULL
                  AND substr(created_at, 1, 10) BETWEEN ? AND ?
                ORDER BY created_at, id
            """, (customer_id, period_start.isoformat(), period_end.isoformat())).fetchall()
        return [dict(r) for r in rows]

    def create_invoice(self, invoice: dict, items: list[dict]) -> dict:
        """Insert invoice + items and link the shipments, in one transaction."""
        with self._conn() as conn:
            cur = conn.execute("""
                INSERT INTO invoices (invoice_number, customer_id, period_start, period_end, issue_date,
                                      due_date, subtotal, tax_amount, total_amount, status, created_by)
                VALUES (:invoice_number, :customer_id, :period_start, :period_end, :issue_date,
                        :due_date, :subtotal, :tax_amount, :total_amount, :status, :created_by)
            """, invoice)
            invoice_id = cur.lastrowid
            conn.executemany("""
                INSERT INTO invoice_items (invoice_id, description, quantity, unit_price, shipment_id)
                VALUES (:invoice_id, :description, :quantity, :unit_price, :shipment_id)
            """, [{**item, "invoice_id": invoice_id} for item in items])
            conn.executemany(
                "UPDATE shipments SET invoice_id = ?, updated_at = datetime('now') WHERE id = ?",
                [(invoice_id, item["shipment_id"]) for item in items],
            )
            stored = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
        return dict(stored)

    def invoice_items(self, invoice_id: int) -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM invoice_items WHERE invoice_id = ? ORDER BY id", (invoice_id,)
            ).fetchall()
        return [dict(r) for r in rows]

    # ── Stats ─────────────────────────────────────────────────────────────────

    def stats(self) -> dict:
        """Return row counts per table."""
        tables = ["tariffs", "pricing_rules", "shipments", "payments", "invoices"]
        result = {}
        with self._conn() as conn:
            for t in tables:
                result[t] = conn.execute(f"SELECT COUNT(*) as n FROM {t}").fetchone()["n"]
        return result

    def count(self) -> int:
        s = self.stats()
        return s["tariffs"] + s["pricing_rules"]
