"""
Receipts Service Layer

Business logic for receipts, settings and daily reports, separated from
views for better testability. Pricing and report folding live in the
framework-agnostic core module; this layer owns persistence.

Every read goes back to the database: nothing is cached between calls, so a
coefficient update is visible to the very next pricing computation.
"""
import logging
import math
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from django.db import DatabaseError, connection, transaction
from django.db.models import Prefetch

from core.errors import NotFoundError, StoreError, ValidationError, errmsg
from core.report_builder import DailyReport, build_report
from core.scrap_engine import (
    DEFAULT_COEFFICIENT,
    MAX_COEFFICIENT,
    PricedItem,
    ReceiptTotals,
    compute_receipt_totals,
    effective_coefficient,
    price_item,
    price_items,
)
from .forms import CoefficientForm, ReceiptForm, ReceiptItemForm, first_error
from .models import Receipt, ReceiptItem, Setting

logger = logging.getLogger(__name__)


def _with_items(queryset):
    return queryset.prefetch_related(
        Prefetch("items", queryset=ReceiptItem.objects.order_by("percentage", "id"))
    )


# ── Settings ─────────────────────────────────────────────

def get_base_coefficient() -> float:
    """
    Return the current base coefficient.

    Falls back to the default when the setting is missing or does not hold
    a positive number within MAX_COEFFICIENT.
    """
    try:
        setting = Setting.objects.filter(key=Setting.COEFFICIENT).first()
    except DatabaseError as e:
        logger.exception("Failed to read base coefficient")
        raise StoreError(f"Failed to read base coefficient: {e}") from e

    if setting is None:
        return DEFAULT_COEFFICIENT
    try:
        value = float(setting.value)
    except (TypeError, ValueError):
        logger.warning(f"Stored coefficient {setting.value!r} is not a number, using default")
        return DEFAULT_COEFFICIENT
    if not math.isfinite(value) or value <= 0 or value > MAX_COEFFICIENT:
        return DEFAULT_COEFFICIENT
    return value


def set_base_coefficient(value) -> float:
    """
    Persist a new base coefficient.

    Args:
        value: New coefficient, must be a number greater than 0

    Returns:
        The stored coefficient

    Raises:
        ValidationError: value is absent, zero, negative, too large or not a number
        StoreError: the database write failed
    """
    form = CoefficientForm(data={"coefficient": value})
    if not form.is_valid():
        raise ValidationError(first_error(form))
    coefficient = form.cleaned_data["coefficient"]

    try:
        Setting.objects.update_or_create(
            key=Setting.COEFFICIENT, defaults={"value": str(coefficient)}
        )
    except DatabaseError as e:
        logger.exception("Failed to update base coefficient")
        raise StoreError(f"Failed to update base coefficient: {e}") from e

    logger.info(f"Base coefficient set to {coefficient}")
    return coefficient


# ── Pricing ──────────────────────────────────────────────

def quote_weights(
    weights: Mapping[Any, Any],
    overrides: Optional[Mapping[Any, Any]] = None,
) -> tuple[float, list[PricedItem], ReceiptTotals]:
    """
    Price a bracket -> weight mapping with the current base coefficient.

    Keys may be ints or their string form (as they arrive from JSON).
    Nothing is persisted.
    """
    base_coefficient = get_base_coefficient()
    items = price_items(
        _bracket_keys(weights, errmsg.INVALID_WEIGHTS),
        _bracket_keys(overrides or {}, errmsg.INVALID_COEFFICIENTS),
        base_coefficient,
    )
    return base_coefficient, items, compute_receipt_totals(items)


def _bracket_keys(mapping: Mapping[Any, Any], message: str) -> dict[int, Any]:
    if not isinstance(mapping, Mapping):
        raise ValidationError(message)
    result = {}
    for key, value in mapping.items():
        form = ReceiptItemForm(data={"percentage": key})
        if not form.is_valid():
            raise ValidationError(errmsg.INVALID_PERCENTAGE)
        result[form.cleaned_data["percentage"]] = value
    return result


def _price_submitted_items(items: Iterable[Mapping[str, Any]]) -> list[PricedItem]:
    """Validate submitted items and recompute their sums."""
    base_coefficient = get_base_coefficient()
    priced = []
    for raw in items:
        if not isinstance(raw, Mapping):
            raise ValidationError(errmsg.INVALID_ITEMS)
        form = ReceiptItemForm(data=raw)
        if not form.is_valid():
            raise ValidationError(first_error(form))

        percentage = form.cleaned_data["percentage"]
        # Missing or non-positive coefficient means "no override"
        coefficient = effective_coefficient(
            percentage, {percentage: form.cleaned_data["coefficient"]}, base_coefficient
        )
        item = price_item(percentage, form.cleaned_data["weight"], coefficient)
        if item is not None:
            priced.append(item)
    return priced


# ── Receipts ─────────────────────────────────────────────

def create_receipt(receipt_number: Optional[str] = None, items=None) -> Receipt:
    """
    Save a receipt together with its line items.

    Item sums are recomputed from percentage, weight and coefficient; items
    with a weight that is not positive are dropped. Header and items are
    written in a single transaction.

    Args:
        receipt_number: Optional external reference, not checked for uniqueness
        items: Sequence of mappings with percentage, weight and coefficient

    Returns:
        The created Receipt instance

    Raises:
        ValidationError: no items left after validation, or an item is invalid
        StoreError: the database write failed; nothing was saved
    """
    if items is not None and not isinstance(items, (list, tuple)):
        raise ValidationError(errmsg.INVALID_ITEMS)

    header = ReceiptForm(data={"receipt_number": receipt_number})
    if not header.is_valid():
        raise ValidationError(first_error(header))

    priced = _price_submitted_items(items or [])
    if not priced:
        raise ValidationError(errmsg.NO_ITEMS)

    totals = compute_receipt_totals(priced)

    try:
        with transaction.atomic():
            receipt = Receipt.objects.create(
                receipt_number=header.cleaned_data["receipt_number"],
                total_weight=totals.total_weight,
                total_sum=totals.total_sum,
            )
            ReceiptItem.objects.bulk_create([
                ReceiptItem(
                    receipt=receipt,
                    percentage=item.percentage,
                    weight=item.weight,
                    coefficient=item.coefficient,
                    sum=item.sum,
                )
                for item in priced
            ])
    except DatabaseError as e:
        logger.exception("Failed to save receipt")
        raise StoreError(f"Failed to save receipt: {e}") from e

    logger.info(f"Saved {receipt} with {len(priced)} items")
    return receipt


def get_receipt(receipt_id: int) -> Receipt:
    """Return one receipt with its items, or raise NotFoundError."""
    try:
        return _with_items(Receipt.objects.all()).get(pk=receipt_id)
    except Receipt.DoesNotExist:
        raise NotFoundError(errmsg.RECEIPT_NOT_FOUND)
    except DatabaseError as e:
        logger.exception(f"Failed to load receipt {receipt_id}")
        raise StoreError(f"Failed to load receipt: {e}") from e


def list_receipts() -> list[Receipt]:
    """All receipts, newest first, each with items by percentage."""
    try:
        return list(_with_items(Receipt.objects.order_by("-created_at", "-id")))
    except DatabaseError as e:
        logger.exception("Failed to list receipts")
        raise StoreError(f"Failed to list receipts: {e}") from e


def list_receipts_by_date(day: date) -> list[Receipt]:
    """Receipts created on the given calendar day, oldest first."""
    try:
        queryset = Receipt.objects.filter(created_at__date=day).order_by("created_at", "id")
        return list(_with_items(queryset))
    except DatabaseError as e:
        logger.exception(f"Failed to list receipts for {day}")
        raise StoreError(f"Failed to list receipts: {e}") from e


def delete_receipt(receipt_id: int) -> None:
    """
    Delete a receipt and, by cascade, its items.

    Raises:
        NotFoundError: no receipt has this id
        StoreError: the database delete failed
    """
    try:
        deleted, _ = Receipt.objects.filter(pk=receipt_id).delete()
    except DatabaseError as e:
        logger.exception(f"Failed to delete receipt {receipt_id}")
        raise StoreError(f"Failed to delete receipt: {e}") from e

    if not deleted:
        raise NotFoundError(errmsg.RECEIPT_NOT_FOUND)
    logger.info(f"Deleted receipt {receipt_id}")


# ── Reports ──────────────────────────────────────────────

def build_daily_report(day: date) -> DailyReport:
    """Aggregate every receipt of ``day`` into totals and bracket groups."""
    receipts = list_receipts_by_date(day)
    return build_report(day, receipts, line_items=lambda receipt: receipt.items.all())


def check_database() -> None:
    """Run a trivial query; raise StoreError if the database is unreachable."""
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as e:
        logger.exception("Database connectivity check failed")
        raise StoreError(f"Database connection failed: {e}") from e
