"""
api/routes.py
REST endpoints.
"""
import time
import uuid
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool

from api.models import (
    BreakdownItem,
    InvoiceRequest,
    PaymentRequest,
    PersistenceResponse,
    PriceRequest,
    PriceResponse,
    ValidationResponse,
)
from billing.invoices import InvoiceGenerator
from billing.payments import PaymentRecorder
from catalog.sqlite_store import SQLiteStore
from guardrails.rule_validator import RuleCatalogValidator
from monitoring import get_logger
from pricing_engine.engine import PricingEngine
from pricing_engine.errors import InvalidPriceInput, NoTariffAvailable
from pricing_engine.models import PriceCalculationInput

router = APIRouter()
log = get_logger(__name__)

# Lazy singletons (created on first request)
_store:    Optional[SQLiteStore]      = None
_engine:   Optional[PricingEngine]    = None
_payments: Optional[PaymentRecorder]  = None
_invoices: Optional[InvoiceGenerator] = None


def _get_store() -> SQLiteStore:
    global _store
    if _store is None:
        _store = SQLiteStore()
    return _store


def _get_engine() -> PricingEngine:
    global _engine
    if _engine is None:
        _engine = PricingEngine(catalog=_get_store())
    return _engine


def _get_payments() -> PaymentRecorder:
    global _payments
    if _payments is None:
        _payments = PaymentRecorder(_get_store())
    return _payments


def _get_invoices() -> InvoiceGenerator:
    global _invoices
    if _invoices is None:
        _invoices = InvoiceGenerator(_get_store())
    return _invoices


#POST /price

@router.post(
    "/price",
    response_model=PriceResponse,
    summary="Calculate the itemised price of a shipment",
    description="""
Select the cheapest eligible tariff, add weight/volume/insurance/handling/delivery
surcharges, apply active pricing rules by priority, and add tax.

```json
{ "service_type": "EXPRESS", "weight_kg": 2, "has_insurance": true, "declared_value": 50000 }
```

Set `skip_rules` for the tariff-only price used at shipment creation.
""",
)
async def calculate_price(request: PriceRequest) -> PriceResponse:
    request_id = str(uuid.uuid4())[:8]
    t0 = time.perf_counter()
    log.info(
        "Price request",
        request_id=request_id,
        service_type=request.service_type,
        weight_kg=request.weight_kg,
        skip_rules=request.skip_rules,
    )

    shipment = PriceCalculationInput(
        service_type=request.service_type,
        weight_kg=request.weight_kg,
        volume_cm3=request.volume_cm3,
        distance_km=request.distance_km,
        has_insurance=request.has_insurance,
        declared_value=request.declared_value,
        requires_signature=request.requires_signature,
    )

    try:
        result = await run_in_threadpool(
            _get_engine().calculate_price, shipment, request.skip_rules, request.as_of
        )
    except NoTariffAvailable as exc:
        log.info("No tariff for request", request_id=request_id, error=str(exc))
        raise HTTPException(
            status_code=422,
            detail={
                "error":        "No rate available for this service/weight",
                "service_type": exc.service_type,
                "weight_kg":    exc.weight_kg,
            },
        )
    except InvalidPriceInput as exc:
        raise HTTPException(status_code=422, detail={"error": str(exc)})

    log.info(
        "Price request complete",
        request_id=request_id,
        elapsed_ms=round((time.perf_counter() - t0) * 1000),
        total=result.total_amount,
    )

    return PriceResponse(
        success         =True,
        request_id      =request_id,
        service_type    =request.service_type,
        base_price      =result.base_price,
        weight_price    =result.weight_price,
        volume_price    =result.volume_price,
        distance_price  =result.distance_price,
        insurance_price =result.insurance_price,
        handling_fee    =result.handling_fee,
        delivery_fee    =result.delivery_fee,
        subtotal        =result.subtotal,
        tax_amount      =result.tax_amount,
        total_amount    =result.total_amount,
        breakdown       =[BreakdownItem(description=b.description, amount=b.amount) for b in result.breakdown],
        tariff_id       =result.tariff_id,
        rules_applied   =result.rules_applied,
        rules_skipped   =result.rules_skipped,
    )


#POST /payments

@router.post("/payments", response_model=PersistenceResponse, summary="Record a shipment payment")
async def record_payment(request: PaymentRequest) -> PersistenceResponse:
    outcome = await run_in_threadpool(
        _get_payments().record,
        request.shipment_id, request.amount, request.payment_method.value, request.user_id,
    )
    return PersistenceResponse(success=outcome.success, data=outcome.data, error=outcome.error)


#POST /invoices

@router.post("/invoices", response_model=PersistenceResponse, summary="Invoice a customer's paid shipments")
async def generate_invoice(request: InvoiceRequest) -> PersistenceResponse:
    outcome = await run_in_threadpool(
        _get_invoices().generate,
        request.customer_id, request.period_start, request.period_end, request.user_id,
    )
    return PersistenceResponse(success=outcome.success, data=outcome.data, error=outcome.error)


# GET /tariffs

@router.get("/tariffs", summary="List tariffs")
async def list_tariffs(service_type: Optional[str] = None) -> dict:
    tariffs = await run_in_threadpool(_get_store().all_tariffs, service_type)
    return {"tariffs": [asdict(t) for t in tariffs]}


# GET /rules

@router.get("/rules", summary="List pricing rules in effect")
async def list_rules(as_of: Optional[date] = None) -> dict:
    day = as_of or date.today()
    rules = await run_in_threadpool(_get_store().list_active_rules, day)
    return {
        "as_of": day.isoformat(),
        "rules": [
            {
                "id":              r.id,
                "name":            r.name,
                "priority":        r.priority,
                "condition_field": r.condition_field.value if r.condition_field else None,
                "operator":        r.operator.value if r.operator else None,
                "value_from":      r.value_from,
                "value_to":        r.value_to,
                "action_type":     r.action_type.value if r.action_type else None,
                "action_value":    r.action_value,
                "inert":           r.inert,
            }
            for r in rules
        ],
    }


@router.get("/rules/validation", response_model=ValidationResponse, summary="Validate the rule catalog")
async def validate_rules() -> ValidationResponse:
    rows = await run_in_threadpool(_get_store().rule_rows)
    report = RuleCatalogValidator().validate(rows)
    return ValidationResponse(**report.__dict__)


# GET /revenue/daily

@router.get("/revenue/daily", summary="Payments received on a day")
async def daily_revenue(day: Optional[date] = None) -> dict:
    return await run_in_threadpool(_get_payments().daily_revenue, day)


#GET /health

@router.get("/health", summary="Health check")
async def health() -> dict:
    stats = await run_in_threadpool(_get_store().stats)
    return {
        "status": "healthy",
        "catalog": {
            "loaded":    stats["tariffs"] + stats["pricing_rules"] > 0,
            "breakdown": stats,
        },
    }
