"""Pricing calculation engine - pure calculation logic without side effects

Two directions are supported:

* SELLING_PRICE: price -> full profit/loss breakdown (single pass).
* PROFIT_PERCENT: desired profit % -> selling price -> breakdown.

The inverse direction is circular: the selling price decides which cost slab
and which GST rate apply, and those in turn decide the selling price. The
solver partitions the price line at every slab bound and tax threshold,
solves the closed form once per interval, and keeps the first price whose
own slabs and tax rate agree with the ones it was solved under.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pricing_service.services.cost_rules import (
    GST_SCHEDULE,
    HUNDRED,
    ZERO,
    CostCategory,
    CostRule,
    CostValueType,
    TaxSchedule,
    category_cost,
    resolve_rule,
    rule_breakpoints,
    to_decimal,
)
from pricing_service.services.exceptions import InactiveEntityError, InvalidInputError

logger = logging.getLogger(__name__)

ONE = Decimal("1")
CENT = Decimal("0.01")


class PricingMode(str, Enum):
    """What the caller's value means"""
    SELLING_PRICE = "SELLING_PRICE"
    PROFIT_PERCENT = "PROFIT_PERCENT"

    @classmethod
    def parse(cls, raw: Any) -> "PricingMode":
        if isinstance(raw, cls):
            return raw
        key = str(raw).strip().upper()
        member = _MODE_ALIASES.get(key)
        if member is None:
            raise InvalidInputError(
                f"Invalid mode '{raw}'. Expected: SELLING_PRICE | PROFIT_PERCENT"
            )
        return member


_MODE_ALIASES = {
    "SELLING_PRICE": PricingMode.SELLING_PRICE,
    "BY_PRICE": PricingMode.SELLING_PRICE,
    "PROFIT_PERCENT": PricingMode.PROFIT_PERCENT,
    "BY_PROFIT_PERCENT": PricingMode.PROFIT_PERCENT,
}


class RebateMode(str, Enum):
    """NET: rebate reduces commission now. DEFERRED: rebate is a later receivable."""
    NET = "NET"
    DEFERRED = "DEFERRED"

    @classmethod
    def parse(cls, raw: Any) -> Optional["RebateMode"]:
        if raw is None or isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise InvalidInputError(
                f"Invalid rebateMode '{raw}'. Expected: NET | DEFERRED"
            ) from None


@dataclass
class PricingRequest:
    """One pricing evaluation, as supplied by the caller and its collaborators"""
    product_cost: Any
    rules: Sequence[Any] = field(default_factory=list)
    mode: Any = PricingMode.SELLING_PRICE
    value: Any = ZERO
    input_tax: Any = ZERO
    rebate_percent: Any = ZERO
    rebate_mode: Any = None
    product_enabled: bool = True
    marketplace_enabled: bool = True
    # Identity, echoed back in the breakdown
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    sku_code: Optional[str] = None
    marketplace_id: Optional[int] = None
    marketplace_name: Optional[str] = None


@dataclass(frozen=True)
class PricingInputs:
    """A validated request: every number is a finite Decimal, every rule a CostRule"""
    product_cost: Decimal
    rules: Tuple[CostRule, ...]
    mode: PricingMode
    value: Decimal
    input_tax: Decimal
    rebate_percent: Decimal
    rebate_mode: Optional[RebateMode]

    @property
    def rebate_applies(self) -> bool:
        return self.rebate_mode is not None and self.rebate_percent > ZERO


@dataclass
class PricingBreakdown:
    """Full pricing breakdown; money rounded half-up to 2 decimals"""
    selling_price: Decimal
    product_cost: Decimal
    commission: Decimal
    shipping: Decimal
    marketing: Decimal
    total_cost: Decimal              # product_cost + commission + shipping + marketing
    output_tax: Decimal              # selling_price x GST slab rate
    input_tax: Decimal               # flat purchase GST paid by the seller
    tax_difference: Decimal          # output_tax - input_tax (positive = payable)
    net_realisation: Decimal         # selling_price - marketplace deductions - output_tax
    profit: Decimal                  # net_realisation - product_cost + tax_difference
    profit_percentage: Decimal       # profit / product_cost * 100, 0 when cost is 0
    commission_before_rebate: Optional[Decimal] = None  # NET rebate only
    pending_receivable: Optional[Decimal] = None        # DEFERRED rebate only
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    sku_code: Optional[str] = None
    marketplace_id: Optional[int] = None
    marketplace_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation using the pricing API's field names"""
        def money(value: Optional[Decimal]) -> Optional[float]:
            return float(value) if value is not None else None

        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "skuCode": self.sku_code,
            "productCost": money(self.product_cost),
            "marketplaceId": self.marketplace_id,
            "marketplaceName": self.marketplace_name,
            "sellingPrice": money(self.selling_price),
            "commission": money(self.commission),
            "shipping": money(self.shipping),
            "marketing": money(self.marketing),
            "totalCost": money(self.total_cost),
            "outputGst": money(self.output_tax),
            "inputGst": money(self.input_tax),
            "gstDifference": money(self.tax_difference),
            "netRealisation": money(self.net_realisation),
            "profit": money(self.profit),
            "profitPercentage": money(self.profit_percentage),
            "commissionBeforeRebate": money(self.commission_before_rebate),
            "pendingRebateGross": money(self.pending_receivable),
        }


@dataclass(frozen=True)
class PriceFigures:
    """Unrounded forward-solver output"""
    selling_price: Decimal
    product_cost: Decimal
    commission: Decimal
    shipping: Decimal
    marketing: Decimal
    output_tax: Decimal
    input_tax: Decimal
    tax_difference: Decimal
    net_realisation: Decimal
    profit: Decimal
    profit_percentage: Decimal

    @property
    def marketplace_costs(self) -> Decimal:
        return self.commission + self.shipping + self.marketing


@dataclass(frozen=True)
class Regime:
    """Cost structure in force at one price: Σ percentage rates, Σ flat amounts, tax rate"""
    percent_total: Decimal
    flat_total: Decimal
    tax_rate: Decimal

    def solve(
        self,
        target_profit: Decimal,
        product_cost: Decimal,
        input_tax: Decimal,
    ) -> Optional[Decimal]:
        """
        Selling price that earns target_profit under this regime, or None.

        profit = SP*(1 - Σ%/100 - r) - Σflat - cost + (SP*r - input_tax)

        Output tax is deducted from net realisation and credited back through
        the tax difference, so r cancels and
        SP = (target + Σflat + cost + input_tax) / (1 - Σ%/100).
        """
        denominator = ONE - self.percent_total / HUNDRED
        if denominator <= ZERO:
            return None
        return (target_profit + self.flat_total + product_cost + input_tax) / denominator


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PricingEngine:
    """Pure pricing engine - no side effects, deterministic, re-entrant"""

    def __init__(self, tax_schedule: TaxSchedule = GST_SCHEDULE):
        self.tax_schedule = tax_schedule

    # --- Validation ---

    def validate(self, request: PricingRequest) -> PricingInputs:
        """
        Reject disabled entities and malformed input before any arithmetic.

        Raises:
            InactiveEntityError: product or marketplace disabled
            InvalidInputError: bad cost rule or negative/non-finite number
        """
        self.ensure_product_active(request.product_enabled, request.product_id)
        self.ensure_marketplace_active(request.marketplace_enabled, request.marketplace_id)

        product_cost = to_decimal(request.product_cost, "productCost")
        if product_cost < ZERO:
            raise InvalidInputError(f"productCost must be >= 0, got {product_cost}.")

        rules = tuple(_coerce_rule(rule) for rule in (request.rules or ()))

        mode = PricingMode.parse(request.mode)
        if mode is PricingMode.SELLING_PRICE:
            value = to_decimal(request.value, "Selling price")
            if value < ZERO:
                raise InvalidInputError(f"Selling price must be >= 0, got {value}.")
        else:
            value = to_decimal(request.value, "Desired profit percentage")
            if value < ZERO:
                raise InvalidInputError(
                    f"Desired profit percentage must be >= 0, got {value}."
                )

        input_tax = to_decimal(
            request.input_tax if request.input_tax is not None else ZERO, "inputGst"
        )
        if input_tax < ZERO:
            raise InvalidInputError(f"inputGst must be >= 0, got {input_tax}.")

        rebate_percent = to_decimal(
            request.rebate_percent if request.rebate_percent is not None else ZERO,
            "commissionRebatePct",
        )
        if rebate_percent < ZERO or rebate_percent > HUNDRED:
            raise InvalidInputError(
                f"commissionRebatePct must be between 0 and 100, got {rebate_percent}."
            )

        return PricingInputs(
            product_cost=product_cost,
            rules=rules,
            mode=mode,
            value=value,
            input_tax=input_tax,
            rebate_percent=rebate_percent,
            rebate_mode=RebateMode.parse(request.rebate_mode),
        )

    @staticmethod
    def ensure_product_active(enabled: bool, product_id: Optional[int] = None) -> None:
        if not enabled:
            raise InactiveEntityError(
                f"Product {_label(product_id)}is not active and cannot be priced."
            )

    @staticmethod
    def ensure_marketplace_active(enabled: bool, marketplace_id: Optional[int] = None) -> None:
        if not enabled:
            raise InactiveEntityError(f"Marketplace {_label(marketplace_id)}is inactive.")

    # --- Forward solver: price -> breakdown ---

    def tax_rate_at(self, selling_price: Decimal) -> Decimal:
        return self.tax_schedule.rate_for(selling_price)

    def breakdown_at(self, inputs: PricingInputs, selling_price: Decimal) -> PriceFigures:
        """Compute every figure for one selling price at full precision"""
        if selling_price < ZERO:
            raise InvalidInputError(f"Selling price must be >= 0, got {selling_price}.")

        commission = category_cost(CostCategory.COMMISSION, inputs.rules, selling_price)
        shipping = category_cost(CostCategory.SHIPPING, inputs.rules, selling_price)
        marketing = category_cost(CostCategory.MARKETING, inputs.rules, selling_price)

        output_tax = selling_price * self.tax_rate_at(selling_price)
        tax_difference = output_tax - inputs.input_tax

        net_realisation = selling_price - commission - shipping - marketing - output_tax
        profit = net_realisation - inputs.product_cost + tax_difference
        profit_percentage = (
            profit / inputs.product_cost * HUNDRED
            if inputs.product_cost > ZERO else ZERO
        )

        return PriceFigures(
            selling_price=selling_price,
            product_cost=inputs.product_cost,
            commission=commission,
            shipping=shipping,
            marketing=marketing,
            output_tax=output_tax,
            input_tax=inputs.input_tax,
            tax_difference=tax_difference,
            net_realisation=net_realisation,
            profit=profit,
            profit_percentage=profit_percentage,
        )

    # --- Inverse solver: profit % -> price ---

    def regime_at(self, inputs: PricingInputs, price: Decimal) -> Regime:
        """Resolve every category's slab and the tax rate at one price"""
        percent_total = ZERO
        flat_total = ZERO
        for category in CostCategory:
            rule = resolve_rule(category, inputs.rules, price)
            if rule is None:
                continue
            if rule.value_type is CostValueType.PERCENT:
                percent_total += rule.value
            else:
                flat_total += rule.value
        return Regime(
            percent_total=percent_total,
            flat_total=flat_total,
            tax_rate=self.tax_rate_at(price),
        )

    def breakpoints(self, inputs: PricingInputs) -> List[Decimal]:
        points = {ZERO}
        points.update(rule_breakpoints(inputs.rules))
        points.update(self.tax_schedule.breakpoints())
        return sorted(point for point in points if point >= ZERO)

    def solve_selling_price(self, inputs: PricingInputs) -> Decimal:
        """
        Find the selling price that yields inputs.value percent profit.

        Raises:
            InvalidInputError: percentage costs leave no feasible price
        """
        target_profit = inputs.product_cost * inputs.value / HUNDRED
        points = self.breakpoints(inputs)

        solvable = False
        fallback: Optional[Decimal] = None
        lowest_percent: Optional[Decimal] = None

        for low, high in zip(points, points[1:]):
            regime = self.regime_at(inputs, (low + high) / 2)
            if lowest_percent is None or regime.percent_total < lowest_percent:
                lowest_percent = regime.percent_total
            price = regime.solve(target_profit, inputs.product_cost, inputs.input_tax)
            if price is None:
                continue
            solvable = True
            fallback = price

            # A price outside the interval is left to the interval it falls in
            if not low <= price <= high:
                continue

            actual = self.regime_at(inputs, price)
            if actual == regime:
                logger.debug(f"Solved SP={price} in interval [{low}, {high}]")
                return price

            # The price sits on a slab or tax boundary: solve again under the
            # regime that really applies there and accept it only if it holds
            corrected = actual.solve(target_profit, inputs.product_cost, inputs.input_tax)
            if corrected is not None and self.regime_at(inputs, corrected) == actual:
                logger.debug(
                    f"Solved SP={corrected} after boundary correction in [{low}, {high}]"
                )
                return corrected

        # Open-ended interval above the last breakpoint
        last = points[-1]
        representative = last * Decimal("1.5") if last > ZERO else ONE
        regime = self.regime_at(inputs, representative)
        if lowest_percent is None or regime.percent_total < lowest_percent:
            lowest_percent = regime.percent_total
        price = regime.solve(target_profit, inputs.product_cost, inputs.input_tax)
        if price is not None:
            solvable = True
            used = regime
            actual = self.regime_at(inputs, price)
            if actual != regime:
                corrected = actual.solve(target_profit, inputs.product_cost, inputs.input_tax)
                if corrected is not None:
                    price, used = corrected, actual
            if price >= last and self.regime_at(inputs, price) == used:
                logger.debug(f"Solved SP={price} in open interval above {last}")
                return price
            fallback = price

        if not solvable:
            raise InvalidInputError(
                f"No feasible price: combined percentage costs ({lowest_percent}%) "
                "consume the entire selling price."
            )
        logger.warning(
            f"No self-consistent slab for {inputs.value}% profit, using fallback SP={fallback}"
        )
        return fallback

    # --- Entry point ---

    def evaluate(self, request: PricingRequest) -> PricingBreakdown:
        """
        Validate, apply the rebate policy, solve and round.

        NET rebates reduce every commission rule before solving; DEFERRED
        rebates solve against nominal commission and report the receivable.
        """
        inputs = self.validate(request)

        solve_inputs = inputs
        rebate_factor = ONE - inputs.rebate_percent / HUNDRED
        if inputs.rebate_applies and inputs.rebate_mode is RebateMode.NET:
            solve_inputs = replace(
                inputs,
                rules=tuple(
                    rule.scaled(rebate_factor)
                    if rule.category is CostCategory.COMMISSION else rule
                    for rule in inputs.rules
                ),
            )

        if inputs.mode is PricingMode.PROFIT_PERCENT:
            selling_price = self.solve_selling_price(solve_inputs)
        else:
            selling_price = inputs.value
        figures = self.breakdown_at(solve_inputs, selling_price)

        breakdown = _round_figures(figures, request)
        if inputs.rebate_applies:
            if inputs.rebate_mode is RebateMode.NET:
                if rebate_factor > ZERO:
                    breakdown.commission_before_rebate = round_money(
                        figures.commission / rebate_factor
                    )
            else:
                breakdown.pending_receivable = round_money(
                    figures.commission * inputs.rebate_percent / HUNDRED
                )

        logger.debug(
            f"Evaluated {inputs.mode.value} value={inputs.value}: "
            f"SP={breakdown.selling_price} profit={breakdown.profit}"
        )
        return breakdown


def _label(entity_id: Optional[int]) -> str:
    return f"{entity_id} " if entity_id is not None else ""


def _coerce_rule(rule: Any) -> CostRule:
    if isinstance(rule, CostRule):
        return rule
    if isinstance(rule, Mapping):
        return CostRule.from_dict(rule)
    raise InvalidInputError(f"Unsupported cost rule: {rule!r}")


def _round_figures(figures: PriceFigures, request: PricingRequest) -> PricingBreakdown:
    return PricingBreakdown(
        selling_price=round_money(figures.selling_price),
        product_cost=round_money(figures.product_cost),
        commission=round_money(figures.commission),
        shipping=round_money(figures.shipping),
        marketing=round_money(figures.marketing),
        total_cost=round_money(figures.product_cost + figures.marketplace_costs),
        output_tax=round_money(figures.output_tax),
        input_tax=round_money(figures.input_tax),
        tax_difference=round_money(figures.tax_difference),
        net_realisation=round_money(figures.net_realisation),
        profit=round_money(figures.profit),
        profit_percentage=round_money(figures.profit_percentage),
        product_id=request.product_id,
        product_name=request.product_name,
        sku_code=request.sku_code,
        marketplace_id=request.marketplace_id,
        marketplace_name=request.marketplace_name,
    )


# --- Module level helper ---

_default_engine = PricingEngine()


def evaluate(request: PricingRequest) -> PricingBreakdown:
    """Thin wrapper evaluating a request against the standard GST schedule"""
    return _default_engine.evaluate(request)
