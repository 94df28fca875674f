"""
pricing_engine/engine.py
Coordinates tariff selection, surcharges, pricing rules and tax, and composes
the itemised PriceCalculationResult.
"""
import math
from datetime import date
from typing import Callable, Optional, Protocol

from monitoring import PRICE_REQUESTS, get_logger, timed
from pricing_engine.calculators import SurchargeCalculator, TariffSelector, TaxCalculator
from pricing_engine.errors import InvalidPriceInput, NoTariffAvailable
from pricing_engine.models import (
    PriceCalculationInput,
    PriceCalculationResult,
    PricingRule,
    Tariff,
)
from pricing_engine.rules import RuleEngine

log = get_logger(__name__)


class PricingCatalog(Protocol):
    def list_tariffs(self, service_type: str, weight_kg: float) -> list[Tariff]: ...

    def list_active_rules(self, as_of: date) -> list[PricingRule]: ...


def round_currency(amount: float) -> float:
    """Round half up to a whole currency unit."""
    return float(math.floor(amount + 0.5))


class PricingEngine:
    """
    Single pricing path for quotes and shipment creation.
    Reads one tariff snapshot and (unless skip_rules) one rule snapshot per
    call; everything after that is pure computation.
    """

    def __init__(
        self,
        catalog: PricingCatalog,
        tax_rate: Optional[float] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._catalog    = catalog
        self._today      = today
        self._selector   = TariffSelector()
        self._surcharges = SurchargeCalculator()
        self._rules      = RuleEngine()
        self._tax        = TaxCalculator(tax_rate)

    @timed("calculate_price")
    def calculate_price(
        self,
        shipment: PriceCalculationInput,
        skip_rules: bool = False,
        as_of: Optional[date] = None,
    ) -> PriceCalculationResult:
        """
        Price a shipment.

        Args:
            shipment:   Physical/service attributes of the shipment.
            skip_rules: Tariff-only price (shipment creation); the rule catalog is not read.
            as_of:      Date used for the rule effective window. Defaults to today.

        Raises:
            InvalidPriceInput: weight_kg is not positive.
            NoTariffAvailable: no active tariff covers the service type and weight.
        """
        if shipment.weight_kg is None or shipment.weight_kg <= 0:
            raise InvalidPriceInput("weight_kg must be > 0")

        as_of = as_of or self._today()
        log.info(
            "Starting price calculation",
            service_type=shipment.service_type,
            weight_kg=shipment.weight_kg,
            skip_rules=skip_rules,
        )

        try:
            tariffs = self._catalog.list_tariffs(shipment.service_type, shipment.weight_kg)
            tariff = self._selector.select(tariffs, shipment.service_type, shipment.weight_kg)
        except NoTariffAvailable:
            PRICE_REQUESTS.labels(service_type=shipment.service_type, status="no_tariff").inc()
            raise

        surcharges = self._surcharges.calculate(tariff, shipment)
        lines = list(surcharges.lines)
        subtotal = surcharges.total
        applied: list[str] = []

        if not skip_rules:
            rules = self._catalog.list_active_rules(as_of)
            outcome = self._rules.apply(rules, shipment, subtotal, as_of)
            subtotal = outcome.total
            lines.extend(outcome.lines)
            applied = list(outcome.applied)

        tax_amount, tax_line = self._tax.calculate(subtotal)
        lines.append(tax_line)

        result = PriceCalculationResult(
            base_price=surcharges.base_price,
            weight_price=surcharges.weight_price,
            volume_price=surcharges.volume_price,
            distance_price=surcharges.distance_price,
            insurance_price=surcharges.insurance_price,
            handling_fee=surcharges.handling_fee,
            delivery_fee=surcharges.delivery_fee,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=round_currency(subtotal + tax_amount),
            breakdown=lines,
            tariff_id=tariff.id,
            rules_applied=applied,
            rules_skipped=skip_rules,
        )

        PRICE_REQUESTS.labels(service_type=shipment.service_type, status="ok").inc()
        log.info(
            "Price calculated",
            tariff_id=tariff.id,
            subtotal=result.subtotal,
            tax=result.tax_amount,
            total=result.total_amount,
            rules_applied=len(applied),
        )
        return result
