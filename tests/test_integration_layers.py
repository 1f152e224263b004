"""Integration tests describing the end-to-end Nexus Shop workflows.

Every scenario runs against a real workbook on disk, so each mutation goes
through the lock, the fresh load, and the atomic save before the next step
reads it back.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from nexus_shop import core_logic, data_manager, metrics
from nexus_shop.constants import Role, TaxonomyKind
from nexus_shop.exceptions import (
    AmountExceedsDueError,
    AuthenticationError,
    InsufficientStockError,
    PermissionDeniedError,
    StockConflictError,
    StorageError,
)

from conftest import ADMIN_PASSWORD, product_id_for


@pytest.fixture
def shop(runtime_context):
    """Admin context with product ``A1``: stock 10, buying price 100."""

    core_logic.add_product(
        runtime_context,
        core_logic.ProductCommand("Phones", "Acme", "A1", Decimal("100"), quantity=10),
    )
    return runtime_context


def _cart_with(context, quantity=3, price="150"):
    cart = core_logic.new_cart(context)
    cart.add_line(product_id_for(context, "A1"), quantity, Decimal(price))
    return cart


def _stock(context, model_name="A1") -> int:
    return core_logic.get_product(context, product_id_for(context, model_name)).quantity


def test_full_payment_sale_decrements_stock(shop):
    sale = core_logic.record_sale(
        shop,
        core_logic.SaleCommand("Alice", date(2024, 3, 1), _cart_with(shop).lines),
    )

    assert (sale.total_amount, sale.paid_amount, sale.due_amount) == (Decimal("450"), Decimal("450"), Decimal("0"))
    assert _stock(shop) == 7
    assert core_logic.get_sale(shop, sale.sale_id).items[0].buying_price == Decimal("100")


def test_due_sale_then_settlement_moves_profit_into_the_month(shop):
    sale = core_logic.record_sale(
        shop,
        core_logic.SaleCommand(
            "Alice",
            date(2024, 3, 1),
            _cart_with(shop).lines,
            customer_phone="555-0101",
            paid_amount=Decimal("200"),
            commitment_date=date(2025, 1, 1),
        ),
    )

    assert sale.due_amount == Decimal("250")
    march = core_logic.monthly_metrics(shop)["March"]
    assert march.revenue == Decimal("200")
    assert march.total_profit == Decimal("0")

    settled = core_logic.apply_payment(shop, sale.sale_id, Decimal("250"))

    assert (settled.paid_amount, settled.due_amount, settled.commitment_date) == (Decimal("450"), Decimal("0"), None)
    assert core_logic.get_sale(shop, sale.sale_id) == settled
    on_disk = data_manager.find_sale(data_manager.open_workbook(shop.settings.data_file), sale.sale_id)
    assert on_disk.commitment_date is None
    march = core_logic.monthly_metrics(shop)["March"]
    assert march.revenue == Decimal("450")
    assert march.total_profit == Decimal("150")
    assert core_logic.outstanding_dues(shop) == []


def test_partial_payment_needs_and_stores_new_commitment(shop):
    sale = core_logic.record_sale(
        shop,
        core_logic.SaleCommand(
            "Alice",
            date(2024, 3, 1),
            _cart_with(shop).lines,
            customer_phone="555",
            paid_amount=Decimal("0"),
            commitment_date=date(2024, 4, 1),
        ),
    )

    updated = core_logic.apply_payment(shop, sale.sale_id, Decimal("100"), date(2024, 5, 1))

    stored = core_logic.get_sale(shop, sale.sale_id)
    assert stored == updated
    assert stored.paid_amount + stored.due_amount == stored.total_amount
    assert stored.commitment_date == date(2024, 5, 1)


def test_cart_rejects_more_than_stock(shop):
    cart = core_logic.new_cart(shop)

    with pytest.raises(InsufficientStockError):
        cart.add_line(product_id_for(shop, "A1"), 11, Decimal("150"))
    assert cart.is_empty()
    assert _stock(shop) == 10


def test_overpayment_leaves_sale_unchanged(shop):
    sale = core_logic.record_sale(
        shop,
        core_logic.SaleCommand(
            "Alice",
            date(2024, 3, 1),
            _cart_with(shop).lines,
            customer_phone="555",
            paid_amount=Decimal("200"),
            commitment_date=date(2025, 1, 1),
        ),
    )

    with pytest.raises(AmountExceedsDueError):
        core_logic.apply_payment(shop, sale.sale_id, Decimal("251"))

    assert core_logic.get_sale(shop, sale.sale_id) == sale


def test_concurrent_session_sale_causes_stock_conflict(shop, config_file):
    """Two sessions build carts from the same snapshot; the second commit loses."""

    other = core_logic.load_runtime_context(config_file)
    core_logic.login(other, "admin@example.com", ADMIN_PASSWORD)

    mine = _cart_with(shop, quantity=6)
    theirs = _cart_with(other, quantity=6)

    core_logic.record_sale(other, core_logic.SaleCommand("Bob", date(2024, 3, 1), theirs.lines))

    with pytest.raises(StockConflictError):
        core_logic.record_sale(shop, core_logic.SaleCommand("Alice", date(2024, 3, 1), mine.lines))

    core_logic.refresh_context(shop)
    assert _stock(shop) == 4
    assert len(core_logic.list_sales(shop)) == 1


def test_sale_survives_a_failed_reload_after_commit(shop, monkeypatch):
    def broken_reload(data_file):
        raise StorageError(f"Unable to read workbook {data_file}")

    monkeypatch.setattr(data_manager, "refresh_workbook", broken_reload)

    sale = core_logic.record_sale(shop, core_logic.SaleCommand("Alice", date(2024, 3, 1), _cart_with(shop).lines))

    assert _stock(shop) == 7
    assert [stored.sale_id for stored in core_logic.list_sales(shop)] == [sale.sale_id]
    on_disk = data_manager.open_workbook(shop.settings.data_file)
    assert [stored.sale_id for stored in data_manager.iter_sales(on_disk)] == [sale.sale_id]


def test_deleting_a_product_keeps_sale_history(shop):
    sale = core_logic.record_sale(shop, core_logic.SaleCommand("Alice", date(2024, 3, 1), _cart_with(shop).lines))

    core_logic.delete_product(shop, product_id_for(shop, "A1"))

    assert core_logic.list_products(shop) == []
    assert core_logic.get_sale(shop, sale.sale_id).items[0].product_name == "A1"
    assert core_logic.monthly_metrics(shop)["March"].total_profit == Decimal("150")


def test_update_product_changes_stock_and_taxonomy(shop):
    product_id = product_id_for(shop, "A1")

    core_logic.update_product(
        shop,
        product_id,
        core_logic.ProductCommand("Phones", "Bolt", "A1", Decimal("110"), quantity=25),
    )

    product = core_logic.get_product(shop, product_id)
    assert (product.brand, product.price, product.quantity) == ("Bolt", Decimal("110"), 25)
    assert core_logic.get_taxonomy(shop).brands == ["Bolt"]


def test_update_product_clears_description(shop):
    product_id = product_id_for(shop, "A1")
    core_logic.update_product(
        shop, product_id, core_logic.ProductCommand("Phones", "Acme", "A1", Decimal("100"), 10, "blue")
    )
    assert core_logic.get_product(shop, product_id).description == "blue"

    core_logic.update_product(shop, product_id, core_logic.ProductCommand("Phones", "Acme", "A1", Decimal("100"), 10))

    assert core_logic.get_product(shop, product_id).description is None


def test_taxonomy_removal_is_not_persisted(shop):
    core_logic.remove_taxonomy_value(shop, TaxonomyKind.CATEGORY, "Phones")
    assert core_logic.get_taxonomy(shop).categories == []

    core_logic.add_product(shop, core_logic.ProductCommand("Cases", "Acme", "C1", Decimal("5")))

    assert core_logic.get_taxonomy(shop).categories == ["Cases", "Phones"]


def test_employee_can_sell_but_not_edit_catalog(shop):
    core_logic.add_employee(shop, name="Clerk", email="clerk@example.com", password="clerk-pass")
    core_logic.logout(shop)

    with pytest.raises(AuthenticationError):
        core_logic.login(shop, "clerk@example.com", "clerk-pass", required_role=Role.ADMIN)
    session = core_logic.login(shop, "clerk@example.com", "clerk-pass", required_role=Role.EMPLOYEE)
    assert session.role is Role.EMPLOYEE

    core_logic.record_sale(shop, core_logic.SaleCommand("Alice", date(2024, 3, 1), _cart_with(shop, 1).lines))
    with pytest.raises(PermissionDeniedError):
        core_logic.add_product(shop, core_logic.ProductCommand("Cases", "Acme", "C1", Decimal("5")))
    with pytest.raises(PermissionDeniedError):
        core_logic.list_employees(shop)


def test_ledger_invariants_hold_after_mixed_activity(shop):
    core_logic.add_product(shop, core_logic.ProductCommand("Accessories", "Acme", "Cable", Decimal("2"), quantity=40))
    cable = product_id_for(shop, "Cable")

    cart = _cart_with(shop, quantity=2)
    cart.add_line(cable, 5, Decimal("4"))
    cart.add_line(cable, 5, Decimal("4"))
    first = core_logic.record_sale(
        shop,
        core_logic.SaleCommand(
            "Alice", date(2024, 3, 1), cart.lines,
            customer_phone="555", due_amount=Decimal("40"), commitment_date=date(2024, 3, 30),
        ),
    )
    core_logic.record_sale(shop, core_logic.SaleCommand("Bob", date(2024, 4, 2), _cart_with(shop, 1).lines))
    core_logic.apply_payment(shop, first.sale_id, Decimal("15"), date(2024, 4, 15))

    for sale in core_logic.list_sales(shop):
        assert sale.paid_amount + sale.due_amount == sale.total_amount
        assert sale.due_amount >= 0
        assert (sale.commitment_date is not None) == (sale.due_amount > 0)
        assert sale.total_amount == sum(item.total for item in sale.items)
    assert all(product.quantity >= 0 for product in core_logic.list_products(shop))
    assert _stock(shop) == 7
    assert _stock(shop, "Cable") == 30

    summary = metrics.summarize_inventory(core_logic.list_products(shop))
    assert summary.total_items == 37

    # Reading the file directly agrees with the refreshed context.
    on_disk = data_manager.open_workbook(shop.settings.data_file)
    assert len(list(data_manager.iter_sales(on_disk))) == 2
