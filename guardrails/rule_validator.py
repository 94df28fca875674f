"""
guardrails/rule_validator.py
Out-of-band catalog checks.  The pricing engine itself never rejects
configuration (inert rules are skipped); these validators report problems to
operators before they reach a calculation.
  1. RuleCatalogValidator: decodability and consistency of pricing rules
  2. TariffCatalogValidator: weight intervals and prices of tariffs
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from monitoring import get_logger
from pricing_engine.models import ActionType, ConditionField, Operator

log = get_logger(__name__)

_FIELDS    = {f.value for f in ConditionField}
_OPERATORS = {o.value for o in Operator}
_ACTIONS   = {a.value for a in ActionType}


@dataclass
class ValidationReport:
    passed: bool
    checked: int = 0
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _parse_day(value: Any):
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return "invalid"


def _parse_number(value: Any):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return "invalid"


# ── 1. Rule catalog ───────────────────────────────────────────────────────────

class RuleCatalogValidator:

    def validate(self, rows: Iterable[dict[str, Any]]) -> ValidationReport:
        rows = list(rows)
        issues: list[str] = []
        warnings: list[str] = []
        priorities: list[float] = []

        for row in rows:
            rid = row.get("id") or row.get("name") or "?"

            field_name = str(row.get("condition_field") or "").strip()
            operator   = str(row.get("operator") or "").strip()
            action     = str(row.get("action_type") or "").strip()
            for key, value, known in (
                ("condition_field", field_name, _FIELDS),
                ("operator", operator, _OPERATORS),
                ("action_type", action, _ACTIONS),
            ):
                if value in known:
                    continue
                hint = " (use upper case)" if value.upper() in known else ""
                issues.append(f"rule {rid}: unknown {key} {row.get(key)!r}, rule is inert{hint}")

            numbers = {}
            for key in ("value_from", "value_to", "action_value", "priority"):
                numbers[key] = _parse_number(row.get(key))
                if numbers[key] == "invalid":
                    issues.append(f"rule {rid}: non-numeric {key} {row.get(key)!r}, rule is inert")

            value_from, value_to = numbers["value_from"], numbers["value_to"]
            if "invalid" not in (value_from, value_to):
                if operator == Operator.BETWEEN.value:
                    if not value_to:
                        warnings.append(f"rule {rid}: BETWEEN without value_to is open-ended")
                    elif value_from is not None and value_to < value_from:
                        issues.append(f"rule {rid}: value_to {value_to:g} is below value_from {value_from:g}")
                elif value_to is not None:
                    warnings.append(f"rule {rid}: value_to is ignored by operator {operator or '?'}")

            effective  = _parse_day(row.get("effective_date"))
            expiration = _parse_day(row.get("expiration_date"))
            if "invalid" in (effective, expiration):
                issues.append(f"rule {rid}: unparseable effective/expiration date")
            elif effective and expiration and expiration < effective:
                issues.append(f"rule {rid}: expires {expiration} before it takes effect {effective}")

            action_value = numbers["action_value"]
            if action_value != "invalid":
                if not action_value:
                    warnings.append(f"rule {rid}: action_value is 0, rule never changes the total")
                elif action == ActionType.PERCENTAGE.value and action_value < -100:
                    warnings.append(f"rule {rid}: discount over 100% drives the total negative")

            if row.get("is_active", True) and numbers["priority"] != "invalid":
                priorities.append(int(numbers["priority"] or 0))

        for priority, n in Counter(priorities).items():
            if n > 1:
                warnings.append(f"{n} active rules share priority {priority}; catalog order decides")

        report = ValidationReport(passed=not issues, checked=len(rows), issues=issues, warnings=warnings)
        log.info("Rule catalog validated", checked=len(rows), issues=len(issues), warnings=len(warnings))
        return report


# ── 2. Tariff catalog ─────────────────────────────────────────────────────────

class TariffCatalogValidator:

    def validate(self, rows: Iterable[dict[str, Any]]) -> ValidationReport:
        rows = list(rows)
        issues: list[str] = []
        warnings: list[str] = []

        for row in rows:
            tid = row.get("id") or row.get("code") or "?"
            numbers = {}
            for key in ("min_weight", "max_weight", "base_price", "price_per_kg", "price_per_volume_unit",
                        "handling_fee", "delivery_fee", "insurance_rate_percent"):
                numbers[key] = _parse_number(row.get(key))
                if numbers[key] == "invalid":
                    issues.append(f"tariff {tid}: non-numeric {key} {row.get(key)!r}")
            if "invalid" in numbers.values():
                continue

            low, high = numbers["min_weight"] or 0, numbers["max_weight"]
            if high is not None and high < low:
                issues.append(f"tariff {tid}: max_weight {high:g} is below min_weight {low:g}")
            if (numbers["base_price"] or 0) < 0:
                issues.append(f"tariff {tid}: negative base_price")
            for key in ("price_per_kg", "price_per_volume_unit", "handling_fee", "delivery_fee",
                        "insurance_rate_percent"):
                if numbers[key] is not None and numbers[key] < 0:
                    warnings.append(f"tariff {tid}: negative {key} is ignored")

        report = ValidationReport(passed=not issues, checked=len(rows), issues=issues, warnings=warnings)
        log.info("Tariff catalog validated", checked=len(rows), issues=len(issues))
        return report
