"""Unit tests for the metrics aggregator and report filters."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

from nexus_shop import metrics
from nexus_shop.constants import MONTHS, PaymentStatus, StockStatus

from conftest import make_item, make_product, make_sale


def test_monthly_metrics_has_every_month_zeroed():
    result = metrics.compute_monthly_metrics([])

    assert list(result) == list(MONTHS)
    assert all(metric.total_orders == 0 and metric.revenue == 0 for metric in result.values())


def test_profit_only_counts_fully_paid_sales():
    """A partially paid sale contributes its paid amount but no profit."""

    items = (make_item("P1", quantity=1, unit_price="300", buying_price="200"),
             make_item("P2", quantity=1, unit_price="150", buying_price="100"))
    due_sale = make_sale("S1", items=items, paid="200", due="250", sale_date=date(2024, 3, 5))

    march = metrics.compute_monthly_metrics([due_sale])["March"]

    assert march.revenue == Decimal("200")
    assert march.total_profit == Decimal("0")
    assert march.total_orders == 1
    assert march.total_sales == 2


def test_profit_appears_once_the_due_is_settled():
    items = (make_item("P1", quantity=1, unit_price="300", buying_price="200"),
             make_item("P2", quantity=1, unit_price="150", buying_price="100"))
    settled = make_sale("S1", items=items, sale_date=date(2024, 3, 5))

    march = metrics.compute_monthly_metrics([settled])["March"]

    assert march.revenue == Decimal("450")
    assert march.total_profit == Decimal("150")


def test_monthly_metrics_pool_years_unless_one_is_given():
    sales = [
        make_sale("S1", sale_date=date(2023, 5, 1)),
        make_sale("S2", sale_date=date(2024, 5, 1)),
    ]

    assert metrics.compute_monthly_metrics(sales)["May"].total_orders == 2
    assert metrics.compute_monthly_metrics(sales, year=2024)["May"].total_orders == 1


def test_metric_for_month_lookup():
    result = metrics.compute_monthly_metrics([make_sale("S1", sale_date=date(2024, 1, 9))])

    assert metrics.metric_for_month(result, "January").total_orders == 1
    assert metrics.metric_for_month(result, "Smarch") is None


def test_filtered_totals_and_daily_stats():
    day = date(2024, 3, 1)
    sales = [
        make_sale("S1", items=(make_item(quantity=2),), sale_date=day),
        make_sale("S2", paid="50", due="100", sale_date=day),
        make_sale("S3", sale_date=date(2024, 3, 2)),
    ]

    totals = metrics.compute_filtered_totals(sales[:2])
    daily = metrics.compute_daily_stats(sales, day)

    assert totals == metrics.FilteredTotals(revenue=Decimal("350"), profit=Decimal("100"))
    assert daily.total_sales == 3
    assert daily.revenue == Decimal("350")
    assert daily.total_profit == Decimal("100")


def test_sold_items_breakdown_groups_by_name_and_brand():
    sales = [
        make_sale("S1", items=(make_item("P1", quantity=1), make_item("P2", name="B2", brand="Bolt", quantity=4))),
        make_sale("S2", items=(make_item("P1", quantity=2),)),
    ]

    breakdown = metrics.sold_items_breakdown(sales)

    assert [(entry.name, entry.quantity) for entry in breakdown] == [("B2", 4), ("A1", 3)]


def test_category_stock_breaks_down_by_brand():
    products = [
        make_product("P1", category="Phones", brand="Acme", quantity=3),
        make_product("P2", category="Phones", brand="Bolt", quantity=4),
        make_product("P3", category="", brand="", quantity=10),
    ]

    stats = metrics.category_stock(products)

    assert [(entry.name, entry.total) for entry in stats] == [("Uncategorized", 10), ("Phones", 7)]
    assert stats[0].brands == {"Unknown": 10}
    assert stats[1].brands == {"Acme": 3, "Bolt": 4}


def test_summarize_inventory_values_stock_at_buying_price():
    products = [make_product("P1", price="100", quantity=3), make_product("P2", price="5", quantity=0)]

    summary = metrics.summarize_inventory(products)

    assert summary.total_items == 3
    assert summary.total_stock_value == Decimal("300")
    assert summary.out_of_stock_count == 1
    assert summary.product_count == 2


def test_stock_status_thresholds():
    assert metrics.stock_status(0) is StockStatus.OUT_OF_STOCK
    assert metrics.stock_status(19) is StockStatus.LOW_STOCK
    assert metrics.stock_status(20) is StockStatus.IN_STOCK
    assert metrics.stock_status(4, threshold=5) is StockStatus.LOW_STOCK


def test_filter_products_combines_filters():
    products = [
        make_product("P1", brand="Acme", model_name="Galaxy", quantity=30),
        make_product("P2", brand="Bolt", model_name="Volt", quantity=3),
        make_product("P3", category="Accessories", brand="Acme", model_name="Cable", quantity=0),
    ]

    assert [p.product_id for p in metrics.filter_products(products, category="Phones")] == ["P1", "P2"]
    assert [p.product_id for p in metrics.filter_products(products, status=StockStatus.LOW_STOCK)] == ["P2"]
    assert [p.product_id for p in metrics.filter_products(products, search="acm")] == ["P1", "P3"]
    assert [p.product_id for p in metrics.filter_products(products, brand="Acme", search="cab")] == ["P3"]


def test_filter_sales_by_item_and_status_newest_first():
    early = datetime(2024, 3, 1, 9, tzinfo=UTC)
    late = datetime(2024, 3, 1, 17, tzinfo=UTC)
    sales = [
        make_sale("S1", timestamp=early),
        make_sale("S2", items=(make_item(brand="Bolt"),), paid="100", due="50", timestamp=late),
    ]

    assert [s.sale_id for s in metrics.filter_sales(sales)] == ["S2", "S1"]
    assert [s.sale_id for s in metrics.filter_sales(sales, brand="Bolt")] == ["S2"]
    assert [s.sale_id for s in metrics.filter_sales(sales, status=PaymentStatus.PAID)] == ["S1"]
    assert [s.sale_id for s in metrics.filter_sales(sales, status=PaymentStatus.DUE)] == ["S2"]
    assert metrics.filter_sales(sales, day=date(2024, 3, 2)) == []


def test_current_month_sales_and_outstanding():
    sales = [
        make_sale("S1", sale_date=date(2024, 3, 1), paid="0", due="150", commitment_date=date(2024, 5, 1)),
        make_sale("S2", sale_date=date(2024, 3, 9), paid="100", due="50", commitment_date=date(2024, 4, 1)),
        make_sale("S3", sale_date=date(2023, 3, 9)),
    ]

    assert [s.sale_id for s in metrics.current_month_sales(sales, date(2024, 3, 20))] == ["S1", "S2"]
    assert [s.sale_id for s in metrics.outstanding(sales)] == ["S2", "S1"]
