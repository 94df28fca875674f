"""pricing_engine package"""
from .calculators import SurchargeCalculator, Surcharges, TariffSelector, TaxCalculator
from .engine import PricingCatalog, PricingEngine, round_currency
from .errors import (
    InvalidPriceInput, InvalidPricingRule, NoTariffAvailable, PersistenceError, PricingError,
)
from .models import (
    ActionType, BreakdownLine, ConditionField, Operator, PaymentMethod,
    PriceCalculationInput, PriceCalculationResult, PricingRule, Tariff,
)
from .rules import RuleEngine, RuleOutcome, decode_rule, order_rules
__all__ = [
    "SurchargeCalculator","Surcharges","TariffSelector","TaxCalculator",
    "PricingCatalog","PricingEngine","round_currency",
    "InvalidPriceInput","InvalidPricingRule","NoTariffAvailable","PersistenceError","PricingError",
    "ActionType","BreakdownLine","ConditionField","Operator","PaymentMethod",
    "PriceCalculationInput","PriceCalculationResult","PricingRule","Tariff",
    "RuleEngine","RuleOutcome","decode_rule","order_rules",
]
