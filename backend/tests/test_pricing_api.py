"""API tests for the pricing router"""
import unittest

from fastapi.testclient import TestClient

from pricing_service.main import app
from pricing_service.routers.pricing import get_pricing_service
from pricing_service.services.catalog_client import MarketplaceRecord, ProductRecord
from pricing_service.services.cost_rules import CostRule
from pricing_service.services.exceptions import NotFoundError, UpstreamUnavailableError
from pricing_service.services.pricing_service import PricingService


class FakeCatalog:
    """In-memory stand-in for the product/admin services"""

    def __init__(self, product=None, marketplace=None, rules=None, error=None):
        self.product = product or ProductRecord(
            id=12, name="Kettle", sku_code="KT-12", product_cost=1000.0, enabled=True, brand_id=4
        )
        self.marketplace = marketplace or MarketplaceRecord(id=3, name="Amazon", enabled=True)
        self.rules = rules if rules is not None else [CostRule("COMMISSION", "P", 10, "0-5000")]
        self.error = error
        self.calls = []

    def get_product(self, product_id, auth_token=None):
        self.calls.append(("product", product_id, auth_token))
        if self.error:
            raise self.error
        return self.product

    def get_marketplace(self, marketplace_id, auth_token=None):
        self.calls.append(("marketplace", marketplace_id, auth_token))
        return self.marketplace

    def get_effective_costs(self, marketplace_id, brand_id=None, auth_token=None):
        self.calls.append(("costs", marketplace_id, brand_id))
        return [CostRule.from_dict(rule) if isinstance(rule, dict) else rule for rule in self.rules]


class TestPricingApi(unittest.TestCase):
    """Test cases for /api/pricing"""

    def setUp(self):
        """Set up test fixtures"""
        self.catalog = FakeCatalog()
        app.dependency_overrides[get_pricing_service] = lambda: PricingService(self.catalog)
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def _calculate(self, **overrides):
        body = {"skuId": 12, "marketplaceId": 3, "mode": "SELLING_PRICE", "value": 1900}
        body.update(overrides)
        return self.client.post(
            "/api/pricing/calculate", json=body, headers={"Authorization": "Bearer t"}
        )

    def test_calculate_selling_price(self):
        response = self._calculate()

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["productId"], 12)
        self.assertEqual(data["marketplaceName"], "Amazon")
        self.assertEqual(data["sellingPrice"], 1900.0)
        self.assertEqual(data["commission"], 190.0)
        self.assertEqual(data["outputGst"], 95.0)
        self.assertEqual(data["netRealisation"], 1615.0)
        self.assertEqual(data["profit"], 710.0)
        self.assertEqual(data["profitPercentage"], 71.0)
        self.assertIsNone(data["pendingRebateGross"])

    def test_calculate_uses_brand_and_forwards_token(self):
        self._calculate()

        self.assertIn(("product", 12, "Bearer t"), self.catalog.calls)
        self.assertIn(("costs", 3, 4), self.catalog.calls)

    def test_calculate_profit_percent(self):
        response = self._calculate(mode="PROFIT_PERCENT", value=71)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["sellingPrice"], 1900.0)

    def test_calculate_deferred_rebate(self):
        response = self._calculate(commissionRebatePct=20, rebateMode="DEFERRED")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["pendingRebateGross"], 38.0)

    def test_inactive_product(self):
        self.catalog.product.enabled = False
        response = self._calculate()

        self.assertEqual(response.status_code, 400)
        self.assertIn("not active", response.json()["message"])

    def test_inactive_marketplace(self):
        self.catalog.marketplace.enabled = False
        response = self._calculate()

        self.assertEqual(response.status_code, 400)
        self.assertIn("inactive", response.json()["message"])

    def test_inactive_marketplace_checked_before_costs(self):
        """A disabled marketplace is reported even when its cost rules are broken"""
        self.catalog.marketplace.enabled = False
        self.catalog.rules = [{"costCategory": "PACKAGING", "costValueType": "P", "costValue": 2}]
        response = self._calculate()

        self.assertEqual(response.status_code, 400)
        self.assertIn("Marketplace 3 is inactive", response.json()["message"])
        self.assertNotIn(("costs", 3, 4), self.catalog.calls)

    def test_inactive_product_checked_before_marketplace(self):
        self.catalog.product.enabled = False
        self._calculate()

        self.assertEqual([call[0] for call in self.catalog.calls], ["product"])

    def test_product_not_found(self):
        self.catalog.error = NotFoundError("Product", 12)
        response = self._calculate()

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Not Found")

    def test_upstream_unavailable(self):
        self.catalog.error = UpstreamUnavailableError("A downstream service is unavailable.")
        response = self._calculate()

        self.assertEqual(response.status_code, 503)

    def test_no_feasible_price(self):
        self.catalog.rules = [CostRule("COMMISSION", "P", 70), CostRule("MARKETING", "P", 30)]
        response = self._calculate(mode="PROFIT_PERCENT", value=10)

        self.assertEqual(response.status_code, 400)
        self.assertIn("No feasible price", response.json()["message"])

    def test_request_validation(self):
        response = self.client.post("/api/pricing/calculate", json={"skuId": 12})

        self.assertEqual(response.status_code, 400)
        self.assertIn("Validation failed", response.json()["message"])

    def test_evaluate_inline(self):
        response = self.client.post("/api/pricing/evaluate", json={
            "productCost": 1000,
            "costs": [
                {"costCategory": "COMMISSION", "costValueType": "P",
                 "costValue": 10, "costProductRange": "0-5000"},
            ],
            "mode": "SELLING_PRICE",
            "value": 1900,
            "commissionRebatePct": 20,
            "rebateMode": "NET",
        })

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["commission"], 152.0)
        self.assertEqual(data["commissionBeforeRebate"], 190.0)

    def test_evaluate_bad_rule(self):
        response = self.client.post("/api/pricing/evaluate", json={
            "productCost": 1000,
            "costs": [{"costCategory": "COMMISSION", "costValueType": "Z", "costValue": 10}],
            "mode": "SELLING_PRICE",
            "value": 1900,
        })

        self.assertEqual(response.status_code, 400)
        self.assertIn("COMMISSION", response.json()["message"])

    def test_health(self):
        self.assertEqual(self.client.get("/api/pricing/health").json(), "pricing-service OK")
        self.assertEqual(self.client.get("/health").json(), {"status": "healthy"})


if __name__ == '__main__':
    unittest.main()
