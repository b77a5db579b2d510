"""Marketplace cost rules, price-range slabs and the GST schedule

A marketplace describes its deductions as a flat list of rules. Each rule
belongs to one category (commission, shipping, marketing), is either a
percentage of the selling price or a fixed amount, and may be confined to an
inclusive price range ("slab"). Ranges are operator-entered, so they may
overlap or leave gaps; slab lookup is therefore an ordered linear scan on
containment rather than a keyed lookup.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from pricing_service.services.exceptions import InvalidInputError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
INFINITY = Decimal("Infinity")


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Convert a numeric input to a finite Decimal or raise InvalidInputError"""
    if value is None:
        raise InvalidInputError(f"{field_name} is null.")
    if isinstance(value, bool):
        raise InvalidInputError(f"{field_name} is invalid: {value!r}")
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidInputError(f"{field_name} is invalid: {value!r}") from None
    if not number.is_finite():
        raise InvalidInputError(f"{field_name} is invalid: {value!r}")
    return number


class CostCategory(str, Enum):
    """Marketplace deduction category"""
    COMMISSION = "COMMISSION"
    SHIPPING = "SHIPPING"
    MARKETING = "MARKETING"

    @classmethod
    def parse(cls, raw: Any) -> "CostCategory":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise InvalidInputError(
                f"Unknown cost category '{raw}'. Expected: COMMISSION | SHIPPING | MARKETING"
            ) from None


class CostValueType(str, Enum):
    """How a rule's value applies: percentage of price (P) or absolute amount (A)"""
    PERCENT = "P"
    FLAT = "A"

    @classmethod
    def parse(cls, raw: Any, category: Any = None) -> "CostValueType":
        if isinstance(raw, cls):
            return raw
        key = str(raw).strip().upper()
        member = _VALUE_TYPE_ALIASES.get(key)
        if member is None:
            raise InvalidInputError(
                f"Invalid costValueType '{raw}' for {category}. Expected: P | A"
            )
        return member


_VALUE_TYPE_ALIASES = {
    "P": CostValueType.PERCENT,
    "PERCENT": CostValueType.PERCENT,
    "PERCENTAGE": CostValueType.PERCENT,
    "A": CostValueType.FLAT,
    "FLAT": CostValueType.FLAT,
    "AMOUNT": CostValueType.FLAT,
}


@dataclass(frozen=True)
class PriceRange:
    """Inclusive [low, high] price bounds of a slab"""
    low: Decimal
    high: Decimal

    def contains(self, price: Decimal) -> bool:
        return self.low <= price <= self.high

    def __str__(self) -> str:
        return f"{self.low}-{self.high}"


def parse_price_range(raw: Any) -> Optional[PriceRange]:
    """
    Parse a slab range into PriceRange.

    Accepts "0-300" style strings, (from, to) pairs, {"from":..,"to":..}
    mappings or an existing PriceRange. Anything malformed (non-numeric,
    non-finite, reversed or degenerate) means "no range" and never raises.
    """
    if raw is None:
        return None
    if isinstance(raw, PriceRange):
        bounds: Tuple[Any, Any] = (raw.low, raw.high)
    elif isinstance(raw, str):
        text = raw.strip()
        # Skip the first character so a leading minus sign is not read as the separator
        dash = text.find("-", 1)
        if dash < 0:
            return None
        bounds = (text[:dash], text[dash + 1:])
    elif isinstance(raw, Mapping):
        bounds = (raw.get("from"), raw.get("to"))
    else:
        try:
            low_raw, high_raw = raw
        except (TypeError, ValueError):
            return None
        bounds = (low_raw, high_raw)

    try:
        low = Decimal(str(bounds[0]).strip())
        high = Decimal(str(bounds[1]).strip())
    except (InvalidOperation, ValueError):
        return None
    if not (low.is_finite() and high.is_finite()) or high <= low:
        return None
    return PriceRange(low=low, high=high)


@dataclass(frozen=True)
class CostRule:
    """
    A single marketplace cost rule.

    Construction coerces loosely typed input (strings, floats, "0-300"
    ranges) and rejects unknown categories, unknown value types and
    negative or non-finite values.
    """
    category: CostCategory
    value_type: CostValueType
    value: Decimal
    price_range: Optional[PriceRange] = None
    rule_id: Optional[int] = None

    def __post_init__(self) -> None:
        category = CostCategory.parse(self.category)
        value_type = CostValueType.parse(self.value_type, category.value)
        value = to_decimal(self.value, f"Cost value for {category.value}")
        if value < ZERO:
            raise InvalidInputError(
                f"Cost value for {category.value} must be non-negative, got {value}."
            )
        object.__setattr__(self, "category", category)
        object.__setattr__(self, "value_type", value_type)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "price_range", parse_price_range(self.price_range))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CostRule":
        """Build a rule from an admin-service cost payload (camelCase or snake_case)"""
        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        return cls(
            category=pick("costCategory", "cost_category", "category"),
            value_type=pick("costValueType", "cost_value_type", "value_type"),
            value=pick("costValue", "cost_value", "value"),
            price_range=pick("costProductRange", "cost_product_range", "price_range"),
            rule_id=pick("id", "rule_id"),
        )

    @property
    def upper_bound(self) -> Decimal:
        """Upper range bound; unranged rules count as unbounded"""
        return self.price_range.high if self.price_range is not None else INFINITY

    def scaled(self, factor: Decimal) -> "CostRule":
        return replace(self, value=self.value * factor)

    def amount(self, reference_price: Decimal) -> Decimal:
        if self.value_type is CostValueType.PERCENT:
            return reference_price * self.value / HUNDRED
        return self.value


def resolve_rule(
    category: CostCategory,
    rules: Sequence[CostRule],
    reference_price: Decimal,
) -> Optional[CostRule]:
    """
    Select the rule of a category that applies at reference_price.

    1. The first rule (input order) whose range contains the price.
    2. Otherwise the rule with the greatest upper bound; unranged rules are
       unbounded, and on ties the most recently defined rule wins.
    3. None when the category has no rules at all.
    """
    candidates = [rule for rule in rules if rule.category is category]
    if not candidates:
        return None

    for rule in candidates:
        if rule.price_range is not None and rule.price_range.contains(reference_price):
            return rule

    # max() keeps the first maximum it sees, so scan newest first
    return max(reversed(candidates), key=lambda rule: rule.upper_bound)


def rule_amount(rule: Optional[CostRule], reference_price: Decimal) -> Decimal:
    if rule is None:
        return ZERO
    return rule.amount(reference_price)


def category_cost(
    category: CostCategory,
    rules: Sequence[CostRule],
    reference_price: Decimal,
) -> Decimal:
    """Cost amount a category contributes at reference_price"""
    return rule_amount(resolve_rule(category, rules, reference_price), reference_price)


def rule_breakpoints(rules: Iterable[CostRule]) -> Set[Decimal]:
    points: Set[Decimal] = set()
    for rule in rules:
        if rule.price_range is not None:
            points.add(rule.price_range.low)
            points.add(rule.price_range.high)
    return points


@dataclass(frozen=True)
class TaxSchedule:
    """
    Step function of selling price -> output tax rate.

    tiers are ascending (threshold, rate) pairs; a tier applies from its
    threshold inclusive. Prices below the first threshold use base_rate.
    Rates are fractions (0.05 for 5%).
    """
    base_rate: Decimal
    tiers: Tuple[Tuple[Decimal, Decimal], ...] = ()

    def rate_for(self, price: Decimal) -> Decimal:
        rate = self.base_rate
        for threshold, tier_rate in self.tiers:
            if price < threshold:
                break
            rate = tier_rate
        return rate

    def breakpoints(self) -> List[Decimal]:
        return [threshold for threshold, _ in self.tiers]


# GST slab: 5% when SP < ₹2064, 18% when SP >= ₹2064
GST_THRESHOLD = Decimal("2064")
GST_RATE_LOW = Decimal("0.05")
GST_RATE_HIGH = Decimal("0.18")

GST_SCHEDULE = TaxSchedule(base_rate=GST_RATE_LOW, tiers=((GST_THRESHOLD, GST_RATE_HIGH),))
