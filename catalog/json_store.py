"""
catalog/json_store.py
Structured JSON catalog (seed file and in-memory catalog for demos/tests).
"""
import json
from datetime import date
from pathlib import Path
from typing import Any, Optional

from config.settings import settings
from monitoring import get_logger
from pricing_engine.models import PricingRule, Tariff
from pricing_engine.rules import decode_rule, order_rules

log = get_logger(__name__)


class JSONCatalog:
    """
    Read-optimised tariff/rule catalog backed by a JSON file:
        {"tariffs": [...], "pricing_rules": [...]}
    Lazy-loads on first access and caches in memory.
    """

    def __init__(self, path: Optional[Path] = None, strict_rules: Optional[bool] = None) -> None:
        self.path = Path(path or settings.catalog_json_path)
        self.strict_rules = settings.strict_rule_loading if strict_rules is None else strict_rules
        self._store: Optional[dict[str, Any]] = None

    # ── Public API ────────────────────────────────────────────────────────────

    @property
    def store(self) -> dict[str, Any]:
        if self._store is None:
            self._store = self._load()
        return self._store

    def reload(self) -> None:
        """Force reload from disk."""
        self._store = None
        log.info("JSON catalog cache cleared — will reload on next access")

    def tariff_rows(self) -> list[dict[str, Any]]:
        return self.store.get("tariffs", [])

    def rule_rows(self) -> list[dict[str, Any]]:
        return self.store.get("pricing_rules", [])

    def list_tariffs(self, service_type: str, weight_kg: float) -> list[Tariff]:
        tariffs = [Tariff.from_row(r) for r in self.tariff_rows()]
        eligible = [
            t for t in tariffs
            if t.is_active and t.service_type == service_type and t.covers(weight_kg)
        ]
        return sorted(eligible, key=lambda t: t.base_price)

    def list_active_rules(self, as_of: date) -> list[PricingRule]:
        rules = [decode_rule(r, strict=self.strict_rules) for r in self.rule_rows()]
        return order_rules(rules, as_of)

    def count(self) -> int:
        """Return total number of tariffs and rules in the catalog."""
        return len(self.tariff_rows()) + len(self.rule_rows())

    # ── Private ───────────────────────────────────────────────────────────────

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            log.warning("JSON catalog not found — using empty catalog.", path=str(self.path))
            return {"tariffs": [], "pricing_rules": []}
        with open(self.path) as f:
            data: dict[str, Any] = json.load(f)
        log.info(
            "JSON catalog loaded",
            tariffs=len(data.get("tariffs", [])),
            rules=len(data.get("pricing_rules", [])),
        )
        return data
