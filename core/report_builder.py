"""
Daily report aggregation.

Folds the receipts of one calendar day into totals and per
(percentage, coefficient) groups. Framework-agnostic: receipts are any
objects exposing ``total_weight`` and ``total_sum``, and line items are any
objects exposing ``percentage``, ``weight``, ``coefficient`` and ``sum``.
"""
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, Sequence


@dataclass(frozen=True)
class Transaction:
    weight: float
    sum: int


@dataclass
class ReportGroup:
    """All line items of a day sharing one percentage and one coefficient."""

    percentage: int
    coefficient: float
    total_weight: float = 0.0
    total_sum: int = 0
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def key(self) -> tuple[int, float]:
        return (self.percentage, self.coefficient)

    @property
    def count(self) -> int:
        return len(self.transactions)

    def add(self, weight: float, amount: int) -> None:
        self.total_weight += weight
        self.total_sum += amount
        self.transactions.append(Transaction(weight=weight, sum=amount))


@dataclass
class DailyReport:
    date: date
    receipts: Sequence[Any]
    total_weight: float
    total_sum: int
    groups: list[ReportGroup]

    @property
    def count(self) -> int:
        return len(self.receipts)


def group_line_items(items: Iterable) -> list[ReportGroup]:
    """
    Group line items by (percentage, coefficient).

    Items with the same percentage but a different coefficient land in
    separate groups. Transactions keep the iteration order of ``items``.
    Groups are sorted by percentage, then by coefficient.
    """
    groups: dict[tuple[int, float], ReportGroup] = {}
    for item in items:
        key = (int(item.percentage), float(item.coefficient))
        group = groups.get(key)
        if group is None:
            group = groups[key] = ReportGroup(percentage=key[0], coefficient=key[1])
        group.add(float(item.weight), int(item.sum))
    return sorted(groups.values(), key=lambda g: g.key)


def build_report(
    day: date,
    receipts: Sequence[Any],
    line_items: Callable[[Any], Iterable] = lambda receipt: receipt.items,
) -> DailyReport:
    """
    Build the report for ``day`` from receipts already filtered to that day.

    Totals fold the receipts' stored ``total_weight``/``total_sum`` rather
    than recomputing them from the line items; receipts are immutable so the
    stored snapshot is authoritative.

    Args:
        day: Calendar date of the report
        receipts: Receipts in ascending creation order
        line_items: Returns the line items of one receipt

    Returns:
        DailyReport with zero totals and no groups when receipts is empty
    """
    total_weight = math.fsum(receipt.total_weight or 0 for receipt in receipts)
    total_sum = sum(receipt.total_sum or 0 for receipt in receipts)
    flattened = (item for receipt in receipts for item in line_items(receipt))
    return DailyReport(
        date=day,
        receipts=receipts,
        total_weight=total_weight,
        total_sum=total_sum,
        groups=group_line_items(flattened),
    )
