"""
pricing_engine/rules.py
Rule decoding and the priority-ordered rule engine.

Rows from the catalog are decoded into PricingRule once, when loaded:
  - condition_field / operator / action_type → enum members (exact match)
  - unknown names or unparseable numbers/dates → inert rule (logged),
    or InvalidPricingRule in strict mode

Evaluation is a fold over the ordered rules carrying (total, lines, applied):
every rule sees the running total left by the rules before it.
"""
import functools
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional, Type

from monitoring import RULES_INERT, get_logger
from pricing_engine.errors import InvalidPricingRule
from pricing_engine.models import (
    ActionType,
    BreakdownLine,
    ConditionField,
    Operator,
    PriceCalculationInput,
    PricingRule,
)

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────────────────────

def _reject(rule_id: str, field_name: str, raw: Any, strict: bool) -> None:
    if strict:
        raise InvalidPricingRule(rule_id, field_name, raw)
    log.warning("Inert pricing rule", rule_id=rule_id, field=field_name, value=raw)
    RULES_INERT.labels(reason=field_name).inc()


def _decode_enum(enum_cls: Type[Enum], raw: Any, rule_id: str, field_name: str, strict: bool):
    try:
        return enum_cls(str(raw or "").strip())
    except ValueError:
        _reject(rule_id, field_name, raw, strict)
        return None


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(float(value))


def decode_rule(row: dict[str, Any], strict: bool = False) -> PricingRule:
    """
    Build a PricingRule from a raw catalog row (SQLite or JSON).

    A value that cannot be decoded makes the rule inert instead of failing the
    snapshot; with strict=True it raises InvalidPricingRule.
    """
    rule_id = str(row.get("id", ""))
    malformed = False

    def convert(field_name: str, parse):
        nonlocal malformed
        raw = row.get(field_name)
        try:
            return parse(raw)
        except (TypeError, ValueError):
            _reject(rule_id, field_name, raw, strict)
            malformed = True
            return None

    values = {
        "action_value":    convert("action_value", _as_float),
        "priority":        convert("priority", _as_int),
        "value_from":      convert("value_from", _as_float),
        "value_to":        convert("value_to", _as_float),
        "effective_date":  convert("effective_date", _as_date),
        "expiration_date": convert("expiration_date", _as_date),
    }
    operator = _decode_enum(Operator, row.get("operator"), rule_id, "operator", strict)

    return PricingRule(
        id=rule_id,
        name=row.get("name") or rule_id,
        description=row.get("description") or "",
        condition_field=_decode_enum(ConditionField, row.get("condition_field"), rule_id, "condition_field", strict),
        operator=None if malformed else operator,
        action_type=_decode_enum(ActionType, row.get("action_type"), rule_id, "action_type", strict),
        action_value=values["action_value"] or 0.0,
        priority=values["priority"] or 0,
        value_from=values["value_from"],
        value_to=values["value_to"],
        is_active=bool(row.get("is_active", True)),
        effective_date=values["effective_date"] or date.min,
        expiration_date=values["expiration_date"],
    )


def order_rules(rules: Iterable[PricingRule], as_of: date) -> list[PricingRule]:
    """Rules in effect on as_of, priority descending; sorted() is stable so ties keep catalog order."""
    return sorted((r for r in rules if r.in_effect(as_of)), key=lambda r: -r.priority)


# ─────────────────────────────────────────────────────────────────────────────
# Evaluation
# ─────────────────────────────────────────────────────────────────────────────

def _condition_value(rule_field: Optional[ConditionField], shipment: PriceCalculationInput,
                     running_total: float) -> Optional[float]:
    if rule_field is ConditionField.WEIGHT_KG:
        return shipment.weight_kg
    if rule_field is ConditionField.VOLUME_CM3:
        return shipment.volume_cm3 or 0
    if rule_field is ConditionField.DISTANCE_KM:
        return shipment.distance_km or 0
    if rule_field is ConditionField.HAS_INSURANCE:
        return 1 if shipment.has_insurance else 0
    if rule_field is ConditionField.REQUIRES_SIGNATURE:
        return 1 if shipment.requires_signature else 0
    if rule_field is ConditionField.TOTAL_AMOUNT:
        return running_total
    return None


def matches(rule: PricingRule, shipment: PriceCalculationInput, running_total: float) -> bool:
    value = _condition_value(rule.condition_field, shipment, running_total)
    if value is None:
        return False

    low = rule.value_from if rule.value_from is not None else 0
    op = rule.operator
    if op is Operator.EQ:
        return value == low
    if op is Operator.GT:
        return value > low
    if op is Operator.LT:
        return value < low
    if op is Operator.GTE:
        return value >= low
    if op is Operator.LTE:
        return value <= low
    if op is Operator.BETWEEN:
        # unset or 0 upper bound: open-ended
        high = rule.value_to or math.inf
        return low <= value <= high
    return False


def effect(rule: PricingRule, running_total: float) -> float:
    action = rule.action_type
    if action is ActionType.ADD or action is ActionType.FIXED:
        return rule.action_value
    if action is ActionType.MULTIPLY:
        return running_total * rule.action_value
    if action is ActionType.PERCENTAGE:
        return running_total * rule.action_value / 100
    return 0.0


def describe(rule: PricingRule) -> str:
    if rule.action_type is ActionType.PERCENTAGE and rule.action_value < 0:
        return f"discount: {rule.name}"
    return f"surcharge: {rule.name}"


@dataclass(frozen=True)
class RuleOutcome:
    total: float
    lines: tuple[BreakdownLine, ...] = ()
    applied: tuple[str, ...] = ()


class RuleEngine:
    """Applies ordered pricing rules to a running total. Stateless."""

    def apply(self, rules: Iterable[PricingRule], shipment: PriceCalculationInput,
              running_total: float, as_of: date) -> RuleOutcome:
        ordered = order_rules(rules, as_of)

        def step(acc: RuleOutcome, rule: PricingRule) -> RuleOutcome:
            if not matches(rule, shipment, acc.total):
                return acc
            amount = effect(rule, acc.total)
            if amount == 0:
                return acc
            log.debug("Rule applied", rule_id=rule.id, priority=rule.priority, amount=amount)
            return RuleOutcome(
                total=acc.total + amount,
                lines=acc.lines + (BreakdownLine(describe(rule), amount),),
                applied=acc.applied + (rule.id,),
            )

        return functools.reduce(step, ordered, RuleOutcome(total=running_total))
