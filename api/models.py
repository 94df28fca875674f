"""
api/models.py
Pydantic request/response models.
"""
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from pricing_engine.models import PaymentMethod


class PriceRequest(BaseModel):
    service_type:       str             = Field(..., min_length=1, description="Service type e.g. 'EXPRESS'")
    weight_kg:          float           = Field(..., gt=0, description="Shipment weight in kg")
    volume_cm3:         Optional[float] = Field(default=None, ge=0)
    distance_km:        Optional[float] = Field(default=None, ge=0, description="Accepted; not priced yet")
    has_insurance:      bool            = False
    declared_value:     Optional[float] = Field(default=None, ge=0)
    requires_signature: bool            = False
    skip_rules:         bool            = Field(
        default=False,
        description="Tariff-only price as used at shipment creation; pricing rules are not applied.",
    )
    as_of:              Optional[date]  = Field(
        default=None,
        description="Date for the pricing-rule effective window. Defaults to today.",
    )


class PaymentRequest(BaseModel):
    shipment_id:    str           = Field(..., min_length=1)
    amount:         float         = Field(..., gt=0)
    payment_method: PaymentMethod
    user_id:        Optional[str] = None


class InvoiceRequest(BaseModel):
    customer_id:  str           = Field(..., min_length=1)
    period_start: date
    period_end:   date
    user_id:      Optional[str] = None

    @model_validator(mode="after")
    def period_is_ordered(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")
        return self


class BreakdownItem(BaseModel):
    description: str
    amount:      float


class PriceResponse(BaseModel):
    success:         bool
    request_id:      Optional[str] = None
    timestamp:       str           = Field(default_factory=lambda: datetime.utcnow().isoformat())
    service_type:    str
    base_price:      float
    weight_price:    float
    volume_price:    float
    distance_price:  float
    insurance_price: float
    handling_fee:    float
    delivery_fee:    float
    subtotal:        float
    tax_amount:      float
    total_amount:    float
    breakdown:       list[BreakdownItem]
    tariff_id:       str
    rules_applied:   list[str] = []
    rules_skipped:   bool      = False


class PersistenceResponse(BaseModel):
    success: bool
    data:    Optional[dict[str, Any]] = None
    error:   Optional[str]            = None


class ValidationResponse(BaseModel):
    passed:   bool
    checked:  int
    issues:   list[str]
    warnings: list[str]


class ErrorResponse(BaseModel):
    success:    bool          = False
    error:      str
    detail:     Optional[str] = None
    request_id: Optional[str] = None
