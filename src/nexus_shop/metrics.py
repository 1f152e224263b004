"""Financial and inventory figures derived from the ledger and catalog.

All functions are pure: they take lists of rows and return fresh values, and
nothing they produce is stored. Two recognition rules apply everywhere:

* revenue is cash-basis, so a sale contributes its ``paid_amount``;
* profit is realized-only, so a sale contributes
  ``total_amount - sum(buying_price * quantity)`` once it is fully paid and
  nothing while any due remains.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .constants import DEFAULT_LOW_STOCK_THRESHOLD, MONTHS, PaymentStatus, StockStatus
from .data_manager import ProductRow, SaleRow


ZERO = Decimal("0")


@dataclass
class SalesMetric:
    """Per-month summary shown on the dashboard."""

    month: str
    total_sales: int = 0
    total_profit: Decimal = ZERO
    total_orders: int = 0
    revenue: Decimal = ZERO


@dataclass(frozen=True)
class FilteredTotals:
    revenue: Decimal
    profit: Decimal


@dataclass(frozen=True)
class DailyStats:
    total_sales: int
    total_profit: Decimal
    revenue: Decimal


@dataclass(frozen=True)
class SoldItem:
    name: str
    brand: str
    category: str
    quantity: int


@dataclass
class CategoryStock:
    name: str
    total: int = 0
    brands: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class InventorySummary:
    total_items: int
    total_stock_value: Decimal
    out_of_stock_count: int
    product_count: int


# ---------------------------------------------------------------------------
# Per-sale rules
# ---------------------------------------------------------------------------


def is_fully_paid(sale: SaleRow) -> bool:
    return sale.due_amount <= 0


def units_sold(sale: SaleRow) -> int:
    return sum(item.quantity for item in sale.items)


def sale_cost(sale: SaleRow) -> Decimal:
    return sum((item.buying_price * item.quantity for item in sale.items), ZERO)


def realized_profit(sale: SaleRow) -> Decimal:
    """Profit counted for ``sale``: zero until every due is settled."""

    if not is_fully_paid(sale):
        return ZERO
    return sale.total_amount - sale_cost(sale)


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


def compute_monthly_metrics(sales: Iterable[SaleRow], *, year: Optional[int] = None) -> Dict[str, SalesMetric]:
    """Bucket sales into the twelve calendar months of their ``sale_date``.

    Every month is present, zeroed when it has no sales. With ``year`` left
    as ``None`` all years share the same twelve buckets, which is how the
    dashboard chart reads.

    Args:
        sales (Iterable[SaleRow]): Ledger entries to aggregate.
        year (int | None): Restrict to sales dated in this year.

    Returns:
        dict[str, SalesMetric]: Month name to metric, January first.
    """

    metrics = {month: SalesMetric(month=month) for month in MONTHS}
    for sale in sales:
        if year is not None and sale.sale_date.year != year:
            continue
        metric = metrics[MONTHS[sale.sale_date.month - 1]]
        metric.total_sales += units_sold(sale)
        metric.total_orders += 1
        metric.revenue += sale.paid_amount
        metric.total_profit += realized_profit(sale)
    return metrics


def metric_for_month(metrics: Dict[str, SalesMetric], month: str) -> Optional[SalesMetric]:
    return metrics.get(month)


def compute_filtered_totals(sales: Iterable[SaleRow]) -> FilteredTotals:
    """Revenue collected and profit realized across ``sales``."""

    revenue = ZERO
    profit = ZERO
    for sale in sales:
        revenue += sale.paid_amount
        profit += realized_profit(sale)
    return FilteredTotals(revenue=revenue, profit=profit)


def compute_daily_stats(sales: Iterable[SaleRow], day: date) -> DailyStats:
    """Units sold, revenue, and realized profit for sales dated ``day``."""

    day_sales = [sale for sale in sales if sale.sale_date == day]
    totals = compute_filtered_totals(day_sales)
    return DailyStats(
        total_sales=sum(units_sold(sale) for sale in day_sales),
        total_profit=totals.profit,
        revenue=totals.revenue,
    )


def sold_items_breakdown(sales: Iterable[SaleRow]) -> List[SoldItem]:
    """Units sold grouped by product name and brand, best sellers first."""

    grouped: Dict[tuple[str, str], SoldItem] = {}
    for sale in sales:
        for item in sale.items:
            key = (item.product_name, item.brand)
            current = grouped.get(key)
            quantity = item.quantity + (current.quantity if current else 0)
            grouped[key] = SoldItem(
                name=item.product_name,
                brand=item.brand,
                category=current.category if current else item.category,
                quantity=quantity,
            )
    return sorted(grouped.values(), key=lambda entry: entry.quantity, reverse=True)


def category_stock(products: Iterable[ProductRow]) -> List[CategoryStock]:
    """Stock on hand per category with a per-brand breakdown, largest first."""

    stats: Dict[str, CategoryStock] = {}
    for product in products:
        name = product.category or "Uncategorized"
        entry = stats.setdefault(name, CategoryStock(name=name))
        entry.total += product.quantity
        brand = product.brand or "Unknown"
        entry.brands[brand] = entry.brands.get(brand, 0) + product.quantity
    return sorted(stats.values(), key=lambda entry: entry.total, reverse=True)


def summarize_inventory(products: Iterable[ProductRow]) -> InventorySummary:
    """Unit count, valuation at buying price, and out-of-stock count."""

    products = list(products)
    return InventorySummary(
        total_items=sum(product.quantity for product in products),
        total_stock_value=sum((product.price * product.quantity for product in products), ZERO),
        out_of_stock_count=sum(1 for product in products if product.quantity == 0),
        product_count=len(products),
    )


def stock_status(quantity: int, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> StockStatus:
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity < threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def filter_products(
    products: Iterable[ProductRow],
    *,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    status: Optional[StockStatus] = None,
    search: Optional[str] = None,
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> List[ProductRow]:
    """Products matching every supplied filter; ``None`` means "All".

    ``search`` is a case-insensitive substring match on model name or brand.
    """

    needle = search.lower() if search else None
    result = []
    for product in products:
        if category is not None and product.category != category:
            continue
        if brand is not None and product.brand != brand:
            continue
        if status is not None and stock_status(product.quantity, low_stock_threshold) is not status:
            continue
        if needle and needle not in product.model_name.lower() and needle not in product.brand.lower():
            continue
        result.append(product)
    return result


def filter_sales(
    sales: Iterable[SaleRow],
    *,
    day: Optional[date] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    status: Optional[PaymentStatus] = None,
) -> List[SaleRow]:
    """Sale history matching every supplied filter, newest first.

    A sale matches ``category`` or ``brand`` when any of its items does.
    """

    result = []
    for sale in sales:
        if day is not None and sale.sale_date != day:
            continue
        if category is not None and not any(item.category == category for item in sale.items):
            continue
        if brand is not None and not any(item.brand == brand for item in sale.items):
            continue
        if status is PaymentStatus.PAID and not is_fully_paid(sale):
            continue
        if status is PaymentStatus.DUE and is_fully_paid(sale):
            continue
        result.append(sale)
    return sorted(result, key=lambda sale: sale.timestamp, reverse=True)


def current_month_sales(sales: Iterable[SaleRow], today: date) -> List[SaleRow]:
    return [
        sale
        for sale in sales
        if sale.sale_date.year == today.year and sale.sale_date.month == today.month
    ]


def outstanding(sales: Sequence[SaleRow]) -> List[SaleRow]:
    """Sales with money still owed, earliest commitment date first."""

    owing = [sale for sale in sales if not is_fully_paid(sale)]
    return sorted(owing, key=lambda sale: (sale.commitment_date or date.max, sale.timestamp))
