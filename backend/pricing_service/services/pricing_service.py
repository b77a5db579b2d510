"""Pricing orchestration: resolve collaborators, then run the engine"""
import logging
from typing import Any, Optional

from pricing_service.services.catalog_client import CatalogClient
from pricing_service.services.pricing_engine import (
    PricingBreakdown,
    PricingEngine,
    PricingRequest,
)

logger = logging.getLogger(__name__)


class PricingService:
    """Loads product, marketplace and effective costs, then evaluates a price"""

    def __init__(self, catalog: CatalogClient, engine: Optional[PricingEngine] = None):
        self.catalog = catalog
        self.engine = engine or PricingEngine()

    def calculate(
        self,
        sku_id: int,
        marketplace_id: int,
        mode: Any,
        value: Any,
        input_tax: Any = 0,
        rebate_percent: Any = 0,
        rebate_mode: Any = None,
        auth_token: Optional[str] = None,
    ) -> PricingBreakdown:
        """
        Real-time calculation for one product on one marketplace.

        Re-derives everything from upstream data and persists nothing.

        Raises:
            NotFoundError: product or marketplace missing upstream
            InactiveEntityError: product or marketplace disabled
            InvalidInputError: bad cost configuration or request values
            UpstreamError / UpstreamUnavailableError: upstream failures
        """
        # Lifecycle first: a disabled entity is rejected before its cost
        # configuration is fetched or parsed
        product = self.catalog.get_product(sku_id, auth_token)
        product_id = product.id if product.id is not None else sku_id
        self.engine.ensure_product_active(product.enabled, product_id)

        marketplace = self.catalog.get_marketplace(marketplace_id, auth_token)
        resolved_marketplace_id = marketplace.id if marketplace.id is not None else marketplace_id
        self.engine.ensure_marketplace_active(marketplace.enabled, resolved_marketplace_id)

        rules = self.catalog.get_effective_costs(marketplace_id, product.brand_id, auth_token)

        request = PricingRequest(
            product_cost=product.product_cost,
            rules=rules,
            mode=mode,
            value=value,
            input_tax=input_tax,
            rebate_percent=rebate_percent,
            rebate_mode=rebate_mode,
            product_enabled=product.enabled,
            marketplace_enabled=marketplace.enabled,
            product_id=product_id,
            product_name=product.name,
            sku_code=product.sku_code,
            marketplace_id=resolved_marketplace_id,
            marketplace_name=marketplace.name,
        )
        breakdown = self.engine.evaluate(request)

        logger.info(
            f"Priced sku={sku_id} marketplace={marketplace_id} mode={mode} value={value}: "
            f"SP={breakdown.selling_price} profit={breakdown.profit} "
            f"({breakdown.profit_percentage}%)"
        )
        return breakdown
