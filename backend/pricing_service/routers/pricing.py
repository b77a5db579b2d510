"""Pricing calculation API"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from pricing_service.services.catalog_client import CatalogClient
from pricing_service.services.pricing_engine import PricingEngine, PricingRequest
from pricing_service.services.pricing_service import PricingService

router = APIRouter(prefix="/api/pricing", tags=["pricing"])

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class PricingCalculationRequest(BaseModel):
    """Price one product on one marketplace; product and costs come from upstream"""
    sku_id: int
    marketplace_id: int
    mode: str                       # SELLING_PRICE or PROFIT_PERCENT
    value: float                    # the selling price OR desired profit %
    input_gst: float = 0.0
    commission_rebate_pct: float = 0.0
    rebate_mode: Optional[str] = None  # NET or DEFERRED

    model_config = _CAMEL


class CostRuleModel(BaseModel):
    """Marketplace cost rule"""
    id: Optional[int] = None
    cost_category: Optional[str] = None        # COMMISSION, SHIPPING, MARKETING
    cost_value_type: Optional[str] = None      # P (percent) or A (amount)
    cost_value: Optional[float] = None
    cost_product_range: Optional[str] = None   # e.g. "0-300"

    model_config = _CAMEL


class PricingEvaluationRequest(BaseModel):
    """Price with every input supplied inline; no upstream calls"""
    product_cost: Optional[float] = None
    costs: List[CostRuleModel] = []
    mode: str
    value: float
    input_gst: float = 0.0
    commission_rebate_pct: float = 0.0
    rebate_mode: Optional[str] = None
    product_enabled: bool = True
    marketplace_enabled: bool = True

    model_config = _CAMEL


class PricingResponse(BaseModel):
    """Full pricing breakdown, money in INR rounded to 2 decimals"""
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    sku_code: Optional[str] = None
    product_cost: float
    marketplace_id: Optional[int] = None
    marketplace_name: Optional[str] = None
    selling_price: float
    commission: float
    shipping: float
    marketing: float
    total_cost: float
    output_gst: float
    input_gst: float
    gst_difference: float
    net_realisation: float
    profit: float
    profit_percentage: float
    commission_before_rebate: Optional[float] = None
    pending_rebate_gross: Optional[float] = None

    model_config = _CAMEL


def get_pricing_service() -> PricingService:
    """Dependency for the pricing service"""
    return PricingService(CatalogClient())


def get_pricing_engine() -> PricingEngine:
    """Dependency for the bare pricing engine"""
    return PricingEngine()


@router.post("/calculate", response_model=PricingResponse)
def calculate(
    request: PricingCalculationRequest,
    authorization: Optional[str] = Header(None),
    service: PricingService = Depends(get_pricing_service),
):
    """Real-time calculation - does NOT persist anything"""
    breakdown = service.calculate(
        sku_id=request.sku_id,
        marketplace_id=request.marketplace_id,
        mode=request.mode,
        value=request.value,
        input_tax=request.input_gst,
        rebate_percent=request.commission_rebate_pct,
        rebate_mode=request.rebate_mode,
        auth_token=authorization,
    )
    return PricingResponse.model_validate(breakdown.to_dict())


@router.post("/evaluate", response_model=PricingResponse)
def evaluate(
    request: PricingEvaluationRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
):
    """Calculate against an inline cost structure"""
    breakdown = engine.evaluate(
        PricingRequest(
            product_cost=request.product_cost,
            rules=[cost.model_dump(by_alias=True) for cost in request.costs],
            mode=request.mode,
            value=request.value,
            input_tax=request.input_gst,
            rebate_percent=request.commission_rebate_pct,
            rebate_mode=request.rebate_mode,
            product_enabled=request.product_enabled,
            marketplace_enabled=request.marketplace_enabled,
        )
    )
    return PricingResponse.model_validate(breakdown.to_dict())


@router.get("/health")
async def health():
    """Health check endpoint"""
    return "pricing-service OK"
