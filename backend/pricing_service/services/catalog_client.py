"""HTTP client for the product and admin (marketplace) services

The pricing engine never performs I/O itself; this module fetches what it
needs from the two upstream services:

- product-service: GET /products/{id}
- admin-service:   GET /marketplaces/{id}
                   GET /marketplaces/{id}/effective-costs?brandId={brandId}

Effective costs are brand-specific when the admin service has them
configured for the product's brand, otherwise the marketplace defaults.
Calls are not retried.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from pricing_service.config import config
from pricing_service.services.cost_rules import CostRule
from pricing_service.services.exceptions import (
    NotFoundError,
    UpstreamError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass
class ProductRecord:
    """Product as supplied by product-service"""
    id: Optional[int]
    name: Optional[str]
    sku_code: Optional[str]
    product_cost: Optional[float]
    enabled: bool
    brand_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductRecord":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            sku_code=data.get("skuCode"),
            product_cost=data.get("productCost"),
            # Missing flag means enabled, only an explicit false disables
            enabled=data.get("enabled") is not False,
            brand_id=data.get("brandId"),
        )


@dataclass
class MarketplaceRecord:
    """Marketplace as supplied by admin-service"""
    id: Optional[int]
    name: Optional[str]
    enabled: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketplaceRecord":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            enabled=data.get("enabled") is not False,
        )


class CatalogClient:
    """Fetches products, marketplaces and effective cost rules over HTTP"""

    def __init__(
        self,
        product_service_url: Optional[str] = None,
        admin_service_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.product_service_url = (product_service_url or config.PRODUCT_SERVICE_URL).rstrip("/")
        self.admin_service_url = (admin_service_url or config.ADMIN_SERVICE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.UPSTREAM_TIMEOUT
        self.session = session or requests.Session()

    def get_product(self, product_id: int, auth_token: Optional[str] = None) -> ProductRecord:
        url = f"{self.product_service_url}/products/{product_id}"
        body = self._get_json(url, "Product", product_id, auth_token)
        if not isinstance(body, dict) or not body:
            raise NotFoundError("Product", product_id)
        return ProductRecord.from_dict(body)

    def get_marketplace(self, marketplace_id: int, auth_token: Optional[str] = None) -> MarketplaceRecord:
        url = f"{self.admin_service_url}/marketplaces/{marketplace_id}"
        body = self._get_json(url, "Marketplace", marketplace_id, auth_token)
        marketplace = body.get("marketplace") if isinstance(body, dict) else None
        if not marketplace:
            raise NotFoundError("Marketplace", marketplace_id)
        return MarketplaceRecord.from_dict(marketplace)

    def get_effective_costs(
        self,
        marketplace_id: int,
        brand_id: Optional[int] = None,
        auth_token: Optional[str] = None,
    ) -> List[CostRule]:
        """Cost rules in admin-service order; an empty body means no rules"""
        url = f"{self.admin_service_url}/marketplaces/{marketplace_id}/effective-costs"
        params = {"brandId": brand_id} if brand_id is not None else None
        body = self._get_json(url, "Marketplace", marketplace_id, auth_token, params=params)
        costs = body.get("costs") if isinstance(body, dict) else None
        if not costs:
            logger.info(f"Marketplace {marketplace_id} has no effective costs (brand={brand_id})")
            return []
        return [CostRule.from_dict(item) for item in costs]

    def _get_json(
        self,
        url: str,
        resource_type: str,
        resource_id: Any,
        auth_token: Optional[str],
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = auth_token

        logger.debug(f"GET {url} params={params}")
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.error(f"Upstream unavailable: {url}: {e}")
            raise UpstreamUnavailableError(
                "A downstream service is unavailable. Please try again later."
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Upstream request failed: {url}: {e}")
            raise UpstreamError(f"Downstream request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(resource_type, resource_id)
        if response.status_code == 401:
            raise UpstreamError(
                "Unauthorised downstream call - check JWT token.", status_code=401
            )
        if response.status_code >= 400:
            logger.warning(f"Upstream error {response.status_code} from {url}")
            raise UpstreamError(
                f"Downstream service error: {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {url}") from e
