"""
Scrap Engine

Pure Python pricing logic, framework-agnostic.
This module should have NO Django imports.

Prices are computed as ``floor(percentage * weight * coefficient)`` per
bracket. Inputs are converted through their decimal string form before the
multiplication so that e.g. 20 * 10 * 2.3 floors to 460 rather than to the
459 a binary float product would give.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, InvalidOperation
from typing import Iterable, Mapping, Optional

from core.errors import ValidationError, errmsg

MIN_PERCENTAGE = 14
MAX_PERCENTAGE = 100

# 87 alloy-percentage brackets, 14..100 inclusive
BRACKETS = tuple(range(MIN_PERCENTAGE, MAX_PERCENTAGE + 1))

DEFAULT_COEFFICIENT = 2.3

# Upper bounds keep every line sum well inside a 64-bit integer
MAX_WEIGHT = 1_000_000
MAX_COEFFICIENT = 1_000


@dataclass(frozen=True)
class PricedItem:
    """One bracket's priced contribution, ready to be persisted."""

    percentage: int
    weight: float
    coefficient: float
    sum: int


@dataclass(frozen=True)
class ReceiptTotals:
    total_weight: float
    total_sum: int


def is_valid_bracket(percentage) -> bool:
    """Return True if percentage is one of the fixed integer brackets."""
    if isinstance(percentage, bool) or not isinstance(percentage, int):
        return False
    return MIN_PERCENTAGE <= percentage <= MAX_PERCENTAGE


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _positive(value) -> bool:
    number = _to_decimal(value)
    return number is not None and number > 0


def effective_coefficient(
    bracket: int,
    overrides: Optional[Mapping[int, float]],
    base_coefficient: float,
) -> float:
    """
    Resolve the coefficient applied to a bracket.

    A per-bracket override wins when it is strictly greater than 0; a missing,
    zero, negative or non-numeric override falls back to the base coefficient.

    Args:
        bracket: Alloy percentage bracket
        overrides: Mapping of bracket -> override coefficient (may be None)
        base_coefficient: Current global base coefficient

    Returns:
        The coefficient to use for this bracket

    Raises:
        ValidationError: the override is above MAX_COEFFICIENT
    """
    if overrides:
        override = overrides.get(bracket)
        if _positive(override):
            if _to_decimal(override) > MAX_COEFFICIENT:
                raise ValidationError(errmsg.COEFFICIENT_TOO_LARGE)
            return float(override)
    return base_coefficient


def _check_ceiling(number: Decimal, ceiling: int, message: str) -> None:
    if number > ceiling:
        raise ValidationError(message)


def compute_line_sum(percentage: int, weight, coefficient) -> int:
    """
    Compute the money amount of a single bracket.

    Returns 0 when the weight is absent or not positive; such a bracket
    contributes no line item. Otherwise returns
    ``floor(percentage * weight * coefficient)``.

    Raises:
        ValidationError: weight above MAX_WEIGHT or coefficient above
            MAX_COEFFICIENT
    """
    weight_d = _to_decimal(weight)
    if weight_d is None or weight_d <= 0:
        return 0
    coefficient_d = _to_decimal(coefficient)
    if coefficient_d is None or coefficient_d <= 0:
        return 0
    _check_ceiling(weight_d, MAX_WEIGHT, errmsg.WEIGHT_TOO_LARGE)
    _check_ceiling(coefficient_d, MAX_COEFFICIENT, errmsg.COEFFICIENT_TOO_LARGE)
    product = Decimal(percentage) * weight_d * coefficient_d
    return int(product.to_integral_value(rounding=ROUND_FLOOR))


def compute_receipt_totals(items: Iterable) -> ReceiptTotals:
    """
    Fold line items into receipt totals.

    ``total_sum`` is the sum of the already floored item sums, never the
    floor of the summed raw products.
    """
    total_weight = Decimal(0)
    total_sum = 0
    for item in items:
        total_weight += _to_decimal(item.weight) or Decimal(0)
        total_sum += item.sum
    return ReceiptTotals(total_weight=float(total_weight), total_sum=total_sum)


def price_item(percentage: int, weight, coefficient) -> Optional[PricedItem]:
    """Price one bracket, or return None when it must not be persisted."""
    if not _positive(weight):
        return None
    return PricedItem(
        percentage=percentage,
        weight=float(weight),
        coefficient=float(coefficient),
        sum=compute_line_sum(percentage, weight, coefficient),
    )


def price_items(
    weights: Mapping[int, float],
    overrides: Optional[Mapping[int, float]],
    base_coefficient: float,
) -> list[PricedItem]:
    """
    Price every bracket that carries a positive weight.

    Brackets are walked in ascending order so the result is already ordered
    the way receipts store their items.
    """
    items = []
    for bracket in BRACKETS:
        coefficient = effective_coefficient(bracket, overrides, base_coefficient)
        item = price_item(bracket, weights.get(bracket), coefficient)
        if item is not None:
            items.append(item)
    return items
