"""Pricing service exceptions"""
from typing import Optional


class PricingError(Exception):
    """Base exception for the pricing service"""


class NotFoundError(PricingError):
    """A product or marketplace is missing in the upstream service"""

    def __init__(self, resource_type: str, resource_id: Optional[object]):
        super().__init__(f"{resource_type} not found with id: {resource_id}")
        self.resource_type = resource_type
        self.resource_id = resource_id


class InactiveEntityError(PricingError):
    """A product or marketplace is disabled and cannot be priced"""


class InvalidInputError(PricingError, ValueError):
    """Malformed cost rule, negative/non-finite input or an unsolvable price"""


class UpstreamError(PricingError):
    """An upstream service answered with an unexpected error"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamUnavailableError(UpstreamError):
    """An upstream service could not be reached"""
