"""
pricing_engine/calculators.py
Pure-math pricing stages: tariff selection, surcharges, tax.

Each stage is stateless and directly testable; PricingEngine wires them
together around the rule engine.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from config.settings import settings
from monitoring import get_logger
from pricing_engine.errors import NoTariffAvailable
from pricing_engine.models import BreakdownLine, PriceCalculationInput, Tariff

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# 1. TARIFF SELECTOR
# ─────────────────────────────────────────────────────────────────────────────
class TariffSelector:
    """
    Cheapest active tariff whose [min_weight, max_weight] contains the weight.
    min() returns the first of equal candidates, so catalog order breaks ties.
    """

    def select(self, tariffs: Iterable[Tariff], service_type: str, weight_kg: float) -> Tariff:
        eligible = [
            t for t in tariffs
            if t.is_active and t.service_type == service_type and t.covers(weight_kg)
        ]
        if not eligible:
            log.info("No tariff available", service_type=service_type, weight_kg=weight_kg)
            raise NoTariffAvailable(service_type, weight_kg)
        return min(eligible, key=lambda t: t.base_price)


# ─────────────────────────────────────────────────────────────────────────────
# 2. SURCHARGE CALCULATOR
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class Surcharges:
    base_price: float
    weight_price: float = 0.0
    volume_price: float = 0.0
    distance_price: float = 0.0
    insurance_price: float = 0.0
    handling_fee: float = 0.0
    delivery_fee: float = 0.0
    lines: list[BreakdownLine] = field(default_factory=list)

    @property
    def total(self) -> float:
        return (
            self.base_price + self.weight_price + self.volume_price + self.distance_price
            + self.insurance_price + self.handling_fee + self.delivery_fee
        )


class SurchargeCalculator:
    """
    Fixed order: base → weight → volume → insurance → handling → delivery.
    The base line is always present; every other component counts only when positive.
    """

    def calculate(self, tariff: Tariff, shipment: PriceCalculationInput) -> Surcharges:
        label = tariff.name or tariff.code or tariff.service_type
        result = Surcharges(
            base_price=tariff.base_price,
            lines=[BreakdownLine(f"Tariff {label}", tariff.base_price)],
        )

        weight = self._weight(tariff, shipment)
        if weight > 0:
            result.weight_price = weight
            result.lines.append(BreakdownLine(f"Weight surcharge ({shipment.weight_kg:g}kg)", weight))

        volume = self._volume(tariff, shipment)
        if volume > 0:
            result.volume_price = volume
            result.lines.append(BreakdownLine(f"Volume surcharge ({shipment.volume_cm3:g}cm3)", volume))

        result.distance_price = self._distance(tariff, shipment)

        insurance = self._insurance(tariff, shipment)
        if insurance > 0:
            result.insurance_price = insurance
            result.lines.append(
                BreakdownLine(f"Insurance ({tariff.insurance_rate_percent:g}%)", insurance)
            )

        if tariff.handling_fee > 0:
            result.handling_fee = tariff.handling_fee
            result.lines.append(BreakdownLine("Handling fee", tariff.handling_fee))

        if tariff.delivery_fee > 0:
            result.delivery_fee = tariff.delivery_fee
            result.lines.append(BreakdownLine("Delivery fee", tariff.delivery_fee))

        return result

    @staticmethod
    def _weight(tariff: Tariff, shipment: PriceCalculationInput) -> float:
        if not tariff.price_per_kg or shipment.weight_kg <= 0:
            return 0.0
        return tariff.price_per_kg * shipment.weight_kg

    @staticmethod
    def _volume(tariff: Tariff, shipment: PriceCalculationInput) -> float:
        if not tariff.price_per_volume_unit or not shipment.volume_cm3 or shipment.volume_cm3 <= 0:
            return 0.0
        return tariff.price_per_volume_unit * shipment.volume_cm3

    @staticmethod
    def _insurance(tariff: Tariff, shipment: PriceCalculationInput) -> float:
        if not shipment.has_insurance or not shipment.declared_value or shipment.declared_value <= 0:
            return 0.0
        return shipment.declared_value * tariff.insurance_rate_percent / 100

    @staticmethod
    def _distance(tariff: Tariff, shipment: PriceCalculationInput) -> float:
        # Distance pricing is not modelled yet; the component is always zero.
        if shipment.distance_km:
            log.debug("Distance pricing not implemented", distance_km=shipment.distance_km)
        return 0.0


# ─────────────────────────────────────────────────────────────────────────────
# 3. TAX CALCULATOR
# ─────────────────────────────────────────────────────────────────────────────
class TaxCalculator:
    """Single flat-rate tax on the post-rule subtotal."""

    def __init__(self, rate: Optional[float] = None) -> None:
        self.rate = settings.tax_rate if rate is None else rate

    def calculate(self, subtotal: float) -> tuple[float, BreakdownLine]:
        amount = subtotal * self.rate
        return amount, BreakdownLine(f"Tax ({self.rate * 100:g}%)", amount)
