"""Unit tests for CatalogClient"""
import json
import unittest
from decimal import Decimal
from unittest import mock

import requests

from pricing_service.services.catalog_client import CatalogClient
from pricing_service.services.cost_rules import CostCategory
from pricing_service.services.exceptions import (
    InvalidInputError,
    NotFoundError,
    UpstreamError,
    UpstreamUnavailableError,
)


def _response(status_code, body=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    return response


class TestCatalogClient(unittest.TestCase):
    """Test cases for upstream product/marketplace lookups"""

    def setUp(self):
        """Set up test fixtures"""
        self.session = mock.Mock(spec=requests.Session)
        self.client = CatalogClient(
            product_service_url="http://products/api/",
            admin_service_url="http://admin/api",
            timeout=3,
            session=self.session,
        )

    def test_get_product(self):
        self.session.get.return_value = _response(200, {
            "id": 12, "name": "Kettle", "skuCode": "KT-12",
            "productCost": 1000.0, "enabled": True, "brandId": 4,
        })

        product = self.client.get_product(12, "Bearer abc")

        self.assertEqual(product.id, 12)
        self.assertEqual(product.sku_code, "KT-12")
        self.assertEqual(product.brand_id, 4)
        self.assertTrue(product.enabled)
        args, kwargs = self.session.get.call_args
        self.assertEqual(args[0], "http://products/api/products/12")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer abc")
        self.assertEqual(kwargs["timeout"], 3)

    def test_product_disabled_flag(self):
        self.session.get.return_value = _response(200, {"id": 1, "productCost": 5, "enabled": False})
        self.assertFalse(self.client.get_product(1).enabled)

    def test_product_missing_enabled_flag_means_enabled(self):
        self.session.get.return_value = _response(200, {"id": 1, "productCost": 5})
        self.assertTrue(self.client.get_product(1).enabled)

    def test_product_not_found(self):
        self.session.get.return_value = _response(404, {"message": "nope"})
        with self.assertRaisesRegex(NotFoundError, "Product not found with id: 99"):
            self.client.get_product(99)

    def test_product_empty_body(self):
        self.session.get.return_value = _response(200)
        with self.assertRaises(NotFoundError):
            self.client.get_product(99)

    def test_product_body_not_an_object(self):
        for body in ([{"id": 1}], "Kettle", 42):
            self.session.get.return_value = _response(200, body)
            with self.assertRaises(NotFoundError, msg=repr(body)):
                self.client.get_product(1)

    def test_no_authorization_header_without_token(self):
        self.session.get.return_value = _response(200, {"id": 1, "productCost": 5})
        self.client.get_product(1)
        _, kwargs = self.session.get.call_args
        self.assertNotIn("Authorization", kwargs["headers"])

    def test_get_marketplace(self):
        self.session.get.return_value = _response(200, {
            "marketplace": {"id": 3, "name": "Amazon", "enabled": True}
        })

        marketplace = self.client.get_marketplace(3)

        self.assertEqual(marketplace.name, "Amazon")
        self.assertTrue(marketplace.enabled)
        self.assertEqual(self.session.get.call_args[0][0], "http://admin/api/marketplaces/3")

    def test_marketplace_missing_wrapper(self):
        self.session.get.return_value = _response(200, {"other": {}})
        with self.assertRaisesRegex(NotFoundError, "Marketplace not found with id: 3"):
            self.client.get_marketplace(3)

    def test_get_effective_costs_with_brand(self):
        self.session.get.return_value = _response(200, {"costs": [
            {"id": 1, "costCategory": "COMMISSION", "costValueType": "P",
             "costValue": 10, "costProductRange": "0-5000"},
            {"id": 2, "costCategory": "SHIPPING", "costValueType": "A",
             "costValue": 60, "costProductRange": None},
        ]})

        rules = self.client.get_effective_costs(3, brand_id=4)

        self.assertEqual([rule.category for rule in rules],
                         [CostCategory.COMMISSION, CostCategory.SHIPPING])
        self.assertEqual(rules[1].value, Decimal("60"))
        args, kwargs = self.session.get.call_args
        self.assertEqual(args[0], "http://admin/api/marketplaces/3/effective-costs")
        self.assertEqual(kwargs["params"], {"brandId": 4})

    def test_get_effective_costs_without_brand(self):
        self.session.get.return_value = _response(200, {"costs": []})

        self.assertEqual(self.client.get_effective_costs(3), [])
        self.assertIsNone(self.session.get.call_args[1]["params"])

    def test_invalid_cost_payload(self):
        self.session.get.return_value = _response(200, {"costs": [
            {"costCategory": "FEES", "costValueType": "P", "costValue": 1},
        ]})
        with self.assertRaisesRegex(InvalidInputError, "FEES"):
            self.client.get_effective_costs(3)

    def test_connection_error_is_unavailable(self):
        self.session.get.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_product(1)

    def test_timeout_is_unavailable(self):
        self.session.get.side_effect = requests.exceptions.Timeout("slow")
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_marketplace(1)

    def test_server_error(self):
        self.session.get.return_value = _response(500, {"error": "boom"})
        with self.assertRaises(UpstreamError) as ctx:
            self.client.get_product(1)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertNotIsInstance(ctx.exception, UpstreamUnavailableError)

    def test_unauthorised(self):
        self.session.get.return_value = _response(401)
        with self.assertRaises(UpstreamError) as ctx:
            self.client.get_product(1, "Bearer expired")
        self.assertEqual(ctx.exception.status_code, 401)

    def test_not_retried(self):
        self.session.get.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_product(1)
        self.assertEqual(self.session.get.call_count, 1)


if __name__ == '__main__':
    unittest.main()
