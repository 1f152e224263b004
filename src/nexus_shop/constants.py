"""Enumerations and fixed values shared across Nexus Shop modules.

The storage layer, the business rules, and the CLI all key off these names,
so sheet titles, roles, and report labels live in one place.
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Products below this many units are reported as "Low Stock".
DEFAULT_LOW_STOCK_THRESHOLD = 20

# Seconds to wait for the workbook lock before giving up.
DEFAULT_LOCK_TIMEOUT = 10.0

# A lock file older than this many seconds is left over from a crashed writer.
DEFAULT_LOCK_STALE_AFTER = 300.0

MONTHS: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class Role(str, Enum):
    """Enumerate the user roles known to the authentication layer."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


class StockStatus(str, Enum):
    """Enumerate the stock levels shown on inventory reports."""

    OUT_OF_STOCK = "Out of Stock"
    LOW_STOCK = "Low Stock"
    IN_STOCK = "In Stock"


class PaymentStatus(str, Enum):
    """Enumerate the settlement states used to filter sale history."""

    PAID = "Paid"
    DUE = "Due"


class TaxonomyKind(str, Enum):
    """Enumerate the derived taxonomy sets built from the catalog."""

    CATEGORY = "category"
    BRAND = "brand"
    MODEL = "model"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    PRODUCTS = "Products"
    SALES = "Sales"
    SALE_ITEMS = "SaleItems"
    EMPLOYEES = "Employees"


SHEET_COLUMNS: dict[str, tuple[str, ...]] = {
    SheetName.PRODUCTS.value: (
        "ProductID",
        "Category",
        "Brand",
        "ModelName",
        "Price",
        "Quantity",
        "Description",
    ),
    SheetName.SALES.value: (
        "SaleID",
        "CustomerName",
        "CustomerPhone",
        "Date",
        "TotalAmount",
        "PaidAmount",
        "DueAmount",
        "CommitmentDate",
        "Timestamp",
    ),
    SheetName.SALE_ITEMS.value: (
        "SaleID",
        "ProductID",
        "ProductName",
        "Category",
        "Brand",
        "Quantity",
        "UnitPrice",
        "BuyingPrice",
        "Total",
    ),
    SheetName.EMPLOYEES.value: (
        "EmployeeID",
        "Name",
        "Email",
        "PasswordHash",
        "Role",
        "CreatedAt",
    ),
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_LOW_STOCK_THRESHOLD",
    "DEFAULT_LOCK_TIMEOUT",
    "DEFAULT_LOCK_STALE_AFTER",
    "MONTHS",
    "Role",
    "StockStatus",
    "PaymentStatus",
    "TaxonomyKind",
    "SheetName",
    "SHEET_COLUMNS",
]
