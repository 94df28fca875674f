"""
pricing_engine/errors.py
Exceptions raised by the pricing engine and its collaborators.
"""


class PricingError(Exception):
    """Base class for pricing failures."""


class NoTariffAvailable(PricingError):
    """No active tariff covers the requested service type and weight."""

    def __init__(self, service_type: str, weight_kg: float) -> None:
        self.service_type = service_type
        self.weight_kg = weight_kg
        super().__init__(f"No rate available for service '{service_type}' at {weight_kg} kg")


class InvalidPriceInput(PricingError, ValueError):
    pass


class InvalidPricingRule(PricingError, ValueError):
    """Raised only when rules are loaded in strict mode."""

    def __init__(self, rule_id: str, field_name: str, value) -> None:
        self.rule_id = rule_id
        self.field_name = field_name
        self.value = value
        super().__init__(f"Pricing rule {rule_id}: unrecognised {field_name} {value!r}")


class PersistenceError(Exception):
    """Payment or invoice persistence failed. Never invalidates a computed price."""
