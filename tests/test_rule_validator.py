"""
tests/test_rule_validator.py
Out-of-band catalog validation: issues fail the report, warnings do not.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from guardrails.rule_validator import RuleCatalogValidator, TariffCatalogValidator


def rule(**overrides) -> dict:
    base = {
        "id": "R-1", "name": "rule", "condition_field": "weight_kg", "operator": ">",
        "value_from": 10, "value_to": None, "action_type": "ADD", "action_value": 100,
        "priority": 1, "effective_date": "2024-01-01", "expiration_date": None, "is_active": True,
    }
    base.update(overrides)
    return base


@pytest.fixture
def validator() -> RuleCatalogValidator:
    return RuleCatalogValidator()


class TestRuleCatalogValidator:

    def test_clean_catalog_passes(self, validator):
        report = validator.validate([rule(), rule(id="R-2", priority=2)])
        assert report.passed
        assert report.checked == 2
        assert report.issues == []
        assert report.warnings == []

    @pytest.mark.parametrize("key, value", [
        ("condition_field", "customer_tier"),
        ("operator", "<>"),
        ("action_type", "CAP"),
        ("operator", None),
    ])
    def test_undecodable_values_are_issues(self, validator, key, value):
        report = validator.validate([rule(**{key: value})])
        assert not report.passed
        assert key in report.issues[0]

    def test_lowercase_operator_and_action_are_issues(self, validator):
        report = validator.validate([rule(operator="between", value_to=20, action_type="percentage")])
        assert not report.passed
        assert len(report.issues) == 2
        assert all(i.endswith("(use upper case)") for i in report.issues)

    @pytest.mark.parametrize("key, value", [
        ("action_value", "ten"),
        ("priority", "high"),
        ("value_from", "heavy"),
        ("value_to", "lots"),
    ])
    def test_non_numeric_values_are_issues(self, validator, key, value):
        report = validator.validate([rule(**{"operator": "BETWEEN", "value_to": 20, key: value})])
        assert not report.passed
        assert report.issues == [f"rule R-1: non-numeric {key} {value!r}, rule is inert"]

    def test_between_bounds(self, validator):
        reversed_ = validator.validate([rule(operator="BETWEEN", value_from=20, value_to=10)])
        open_ended = validator.validate([rule(operator="BETWEEN", value_to=None)])
        zero_bound = validator.validate([rule(operator="BETWEEN", value_to=0)])
        assert not reversed_.passed
        assert open_ended.passed
        assert "open-ended" in open_ended.warnings[0]
        assert zero_bound.passed
        assert "open-ended" in zero_bound.warnings[0]

    def test_value_to_ignored_outside_between(self, validator):
        report = validator.validate([rule(operator=">=", value_to=50)])
        assert report.passed
        assert report.warnings

    def test_dates(self, validator):
        assert not validator.validate([rule(effective_date="not-a-date")]).passed
        assert not validator.validate([rule(effective_date="2026-01-01", expiration_date="2025-01-01")]).passed

    def test_zero_action_and_deep_discount_warn(self, validator):
        report = validator.validate([
            rule(id="zero", action_value=0, priority=1),
            rule(id="deep", action_type="PERCENTAGE", action_value=-150, priority=2),
        ])
        assert report.passed
        assert len(report.warnings) == 2

    def test_shared_priority_warns(self, validator):
        report = validator.validate([rule(id="a"), rule(id="b"), rule(id="c", is_active=False)])
        assert report.passed
        assert report.warnings == ["2 active rules share priority 1; catalog order decides"]


class TestTariffCatalogValidator:

    def test_interval_and_price_checks(self):
        report = TariffCatalogValidator().validate([
            {"id": "ok", "min_weight": 0, "max_weight": 5, "base_price": 100},
            {"id": "open", "min_weight": 5, "max_weight": None, "base_price": 100},
            {"id": "inverted", "min_weight": 10, "max_weight": 5, "base_price": 100},
            {"id": "negative", "min_weight": 0, "max_weight": 5, "base_price": -1},
            {"id": "odd-fee", "min_weight": 0, "max_weight": 5, "base_price": 1, "handling_fee": -5},
        ])
        assert not report.passed
        assert report.checked == 5
        assert len(report.issues) == 2
        assert report.warnings == ["tariff odd-fee: negative handling_fee is ignored"]

    def test_non_numeric_tariff_values_are_issues(self):
        report = TariffCatalogValidator().validate([
            {"id": "bad", "min_weight": "light", "max_weight": 5, "base_price": "cheap"},
        ])
        assert not report.passed
        assert len(report.issues) == 2
