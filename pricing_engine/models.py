"""
pricing_engine/models.py
Shared domain dataclasses used by the catalog stores, the pricing engine,
billing, and the API layer.  Kept in a separate module to avoid circular imports.
"""
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional


class ConditionField(str, Enum):
    WEIGHT_KG          = "weight_kg"
    VOLUME_CM3         = "volume_cm3"
    DISTANCE_KM        = "distance_km"
    HAS_INSURANCE      = "has_insurance"
    REQUIRES_SIGNATURE = "requires_signature"
    TOTAL_AMOUNT       = "total_amount"


class Operator(str, Enum):
    EQ      = "="
    GT      = ">"
    LT      = "<"
    GTE     = ">="
    LTE     = "<="
    BETWEEN = "BETWEEN"


class ActionType(str, Enum):
    ADD        = "ADD"
    MULTIPLY   = "MULTIPLY"
    PERCENTAGE = "PERCENTAGE"
    FIXED      = "FIXED"


class PaymentMethod(str, Enum):
    CASH          = "CASH"
    MOBILE_MONEY  = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"
    CREDIT_CARD   = "CREDIT_CARD"
    CREDIT        = "CREDIT"


@dataclass(frozen=True)
class Tariff:
    """Rate card for one service type and weight interval."""
    id: str
    service_type: str
    min_weight: float
    max_weight: Optional[float]           # None = no upper limit
    base_price: float
    price_per_kg: Optional[float] = None
    price_per_volume_unit: Optional[float] = None
    insurance_rate_percent: float = 0.0
    handling_fee: float = 0.0
    delivery_fee: float = 0.0
    is_active: bool = True
    code: str = ""
    name: str = ""

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Tariff":
        def _opt(key: str) -> Optional[float]:
            value = row.get(key)
            return None if value is None or value == "" else float(value)

        return cls(
            id=str(row["id"]),
            service_type=row["service_type"],
            min_weight=float(row.get("min_weight") or 0),
            max_weight=_opt("max_weight"),
            base_price=float(row.get("base_price") or 0),
            price_per_kg=_opt("price_per_kg"),
            price_per_volume_unit=_opt("price_per_volume_unit"),
            insurance_rate_percent=float(row.get("insurance_rate_percent") or 0),
            handling_fee=float(row.get("handling_fee") or 0),
            delivery_fee=float(row.get("delivery_fee") or 0),
            is_active=bool(row.get("is_active", True)),
            code=row.get("code") or "",
            name=row.get("name") or "",
        )

    def covers(self, weight_kg: float) -> bool:
        if weight_kg < self.min_weight:
            return False
        return self.max_weight is None or weight_kg <= self.max_weight


@dataclass(frozen=True)
class PricingRule:
    """
    Conditional surcharge/discount.  condition_field, operator and action_type
    are decoded once at load time; None marks a value that failed to decode
    and makes the rule inert.
    """
    id: str
    name: str
    condition_field: Optional[ConditionField]
    operator: Optional[Operator]
    action_type: Optional[ActionType]
    action_value: float
    priority: int = 0
    value_from: Optional[float] = None
    value_to: Optional[float] = None
    is_active: bool = True
    effective_date: date = date.min
    expiration_date: Optional[date] = None
    description: str = ""

    def in_effect(self, as_of: date) -> bool:
        if not self.is_active or self.effective_date > as_of:
            return False
        return self.expiration_date is None or self.expiration_date >= as_of

    @property
    def inert(self) -> bool:
        return self.condition_field is None or self.operator is None or self.action_type is None


@dataclass
class PriceCalculationInput:
    service_type: str
    weight_kg: float
    volume_cm3: Optional[float] = None
    distance_km: Optional[float] = None
    has_insurance: bool = False
    declared_value: Optional[float] = None
    requires_signature: bool = False


@dataclass(frozen=True)
class BreakdownLine:
    description: str
    amount: float


@dataclass
class PriceCalculationResult:
    base_price: float
    weight_price: float
    volume_price: float
    distance_price: float
    insurance_price: float
    handling_fee: float
    delivery_fee: float
    subtotal: float
    tax_amount: float
    total_amount: float
    breakdown: list[BreakdownLine] = field(default_factory=list)

    # Audit
    tariff_id: str = ""
    rules_applied: list[str] = field(default_factory=list)
    rules_skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
