"""Exception hierarchy for Nexus Shop.

Three families matter to callers:

* :class:`ValidationError` - user input failed a precondition. Raised before
  any storage call, so nothing has changed. ``field`` names the offending
  input for inline display.
* :class:`StorageError` - the workbook could not be read, locked, or written.
  The operation was abandoned and the file on disk is untouched.
* :class:`ConsistencyError` - stored state contradicts the request, for
  example stock sold out by another session between cart building and
  commit. Callers should refresh before resubmitting.
"""

from __future__ import annotations

from typing import Optional


class ShopError(Exception):
    """Base class for every error raised by the package."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ShopError):
    """Raised when user input fails a precondition."""

    field: Optional[str] = None

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        if field is not None:
            self.field = field


class ProductNotFoundError(ValidationError):
    field = "product"


class InvalidProductError(ValidationError):
    """Raised when product details are missing or malformed."""


class InvalidQuantityError(ValidationError):
    field = "quantity"


class InsufficientStockError(ValidationError):
    field = "quantity"


class PriceRequiredError(ValidationError):
    field = "price"


class InvalidPriceError(ValidationError):
    field = "price"


class PriceBelowCostError(ValidationError):
    field = "price"


class CustomerNameRequiredError(ValidationError):
    field = "customer_name"


class EmptyCartError(ValidationError):
    field = "cart"


class PhoneRequiredForDueError(ValidationError):
    field = "customer_phone"


class InvalidPaidAmountError(ValidationError):
    field = "paid_amount"


class CommitmentDateRequiredError(ValidationError):
    field = "commitment_date"


class SaleNotFoundError(ValidationError):
    field = "sale"


class InvalidAmountError(ValidationError):
    field = "amount"


class AmountExceedsDueError(ValidationError):
    field = "amount"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(ShopError):
    """Raised when the workbook cannot be read, locked, or written."""


class ConsistencyError(StorageError):
    """Raised when stored state no longer satisfies the request."""


class CommitFailedError(StorageError):
    """Raised when a sale could not be committed; nothing was applied."""


class StockConflictError(CommitFailedError, ConsistencyError):
    """Raised when stock ran out between cart building and commit."""


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class AuthenticationError(ShopError):
    """Raised when credentials do not match an account."""


class PermissionDeniedError(ShopError):
    """Raised when the current session may not perform an operation."""


__all__ = [
    "ShopError",
    "ValidationError",
    "ProductNotFoundError",
    "InvalidProductError",
    "InvalidQuantityError",
    "InsufficientStockError",
    "PriceRequiredError",
    "InvalidPriceError",
    "PriceBelowCostError",
    "CustomerNameRequiredError",
    "EmptyCartError",
    "PhoneRequiredForDueError",
    "InvalidPaidAmountError",
    "CommitmentDateRequiredError",
    "SaleNotFoundError",
    "InvalidAmountError",
    "AmountExceedsDueError",
    "StorageError",
    "ConsistencyError",
    "CommitFailedError",
    "StockConflictError",
    "AuthenticationError",
    "PermissionDeniedError",
]
