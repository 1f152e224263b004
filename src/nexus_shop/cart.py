"""Session-local cart used to build a sale before it is committed.

The cart never touches storage. Stock is only provisionally reserved: each
new line is checked against the product's on-hand quantity minus what the
cart already holds for that product. The authoritative check happens again
inside the sale procedure at commit time.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import List, Mapping, Optional

from . import log
from .data_manager import ProductRow, SaleItemRow
from .exceptions import (
    InsufficientStockError,
    InvalidPriceError,
    InvalidQuantityError,
    PriceBelowCostError,
    PriceRequiredError,
    ProductNotFoundError,
)


class Cart:
    """Accumulates line items against a snapshot of the catalog.

    Args:
        products (Mapping[str, ProductRow]): Catalog snapshot keyed by id.
        enforce_cost_floor (bool): Reject unit prices below the product's
            buying price. On by default.
    """

    def __init__(self, products: Mapping[str, ProductRow], *, enforce_cost_floor: bool = True) -> None:
        self._products = dict(products)
        self._lines: List[SaleItemRow] = []
        self.enforce_cost_floor = enforce_cost_floor

    @property
    def lines(self) -> tuple[SaleItemRow, ...]:
        return tuple(self._lines)

    @property
    def total(self) -> Decimal:
        return sum((line.total for line in self._lines), Decimal("0"))

    def __len__(self) -> int:
        return len(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def reserved_quantity(self, product_id: str) -> int:
        """Units of ``product_id`` already held by the cart."""

        return sum(line.quantity for line in self._lines if line.product_id == product_id)

    def available_stock(self, product_id: str) -> int:
        product = self._products.get(product_id)
        if product is None:
            return 0
        return product.quantity - self.reserved_quantity(product_id)

    def add_line(self, product_id: str, quantity: int, unit_price: Optional[Decimal]) -> SaleItemRow:
        """Validate and add a line, merging with an identical-price line.

        Checks run in a fixed order and stop at the first failure: the
        product exists, the quantity is at least one, enough unreserved stock
        remains, a non-negative price was given, and (when the cost floor is
        enforced) the price is not below the buying price.

        Args:
            product_id (str): Catalog identifier.
            quantity (int): Units to add.
            unit_price (Decimal | None): Selling price per unit.

        Returns:
            SaleItemRow: The new or merged line as it now sits in the cart.

        Raises:
            ProductNotFoundError, InvalidQuantityError, InsufficientStockError,
            PriceRequiredError, InvalidPriceError, PriceBelowCostError: When
                the corresponding precondition fails. The cart is unchanged.
        """

        product = self._products.get(product_id)
        if product is None:
            log.warning("Cart rejected unknown product '%s'", product_id)
            raise ProductNotFoundError(f"Unknown product id: {product_id}")

        if quantity < 1:
            raise InvalidQuantityError("Quantity must be at least 1")

        available = self.available_stock(product_id)
        if quantity > available:
            raise InsufficientStockError(f"Only {available} units remaining")

        if unit_price is None:
            raise PriceRequiredError("Price is required")
        unit_price = Decimal(unit_price)
        if unit_price < 0:
            raise InvalidPriceError("Price cannot be negative")
        if self.enforce_cost_floor and unit_price < product.price:
            raise PriceBelowCostError(f"Price is lower than buying price ({product.price})")

        for index, line in enumerate(self._lines):
            if line.product_id == product_id and line.unit_price == unit_price:
                merged_quantity = line.quantity + quantity
                merged = replace(line, quantity=merged_quantity, total=merged_quantity * line.unit_price)
                self._lines[index] = merged
                log.debug("Merged %d x '%s' into cart line %d", quantity, product_id, index)
                return merged

        line = SaleItemRow(
            product_id=product.product_id,
            product_name=product.model_name,
            category=product.category,
            brand=product.brand,
            quantity=quantity,
            unit_price=unit_price,
            buying_price=product.price,
            total=quantity * unit_price,
        )
        self._lines.append(line)
        log.debug("Added %d x '%s' @ %s to cart", quantity, product_id, unit_price)
        return line

    def remove_line(self, index: int) -> SaleItemRow:
        """Drop the line at ``index``; raises ``IndexError`` when out of range."""

        if not 0 <= index < len(self._lines):
            raise IndexError(f"No cart line at index {index}")
        return self._lines.pop(index)

    def clear(self) -> None:
        self._lines.clear()
