"""Data access layer for Nexus Shop.

This module reads from and writes to the shop workbook, which plays the role
of the hosted database: one sheet per table, row-level helpers for each, and
one all-or-nothing procedure that records a sale. Business rules belong
elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, locking, and atomically persisting the file.
3. Sheet operations: loading structured records and appending, updating, or
   deleting individual rows.
4. The sale procedure: :func:`record_sale_transaction`, which re-validates
   stock and applies every write of a sale as a single unit of work.
"""


from __future__ import annotations

import configparser
import os
import time
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook import Workbook

from . import log
from .constants import DEFAULT_LOCK_STALE_AFTER, DEFAULT_LOCK_TIMEOUT, DEFAULT_LOW_STOCK_THRESHOLD, SheetName
from .exceptions import ConsistencyError, StorageError


CONFIG_FILE_NAME = "config.ini"
PRODUCTS_SHEET = SheetName.PRODUCTS.value
SALES_SHEET = SheetName.SALES.value
SALE_ITEMS_SHEET = SheetName.SALE_ITEMS.value
EMPLOYEES_SHEET = SheetName.EMPLOYEES.value


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    shop_name: str
    schema_version: str
    enforce_cost_floor: bool = True
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    admin_email: Optional[str] = None
    admin_name: Optional[str] = None


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    category: str
    brand: str
    model_name: str
    price: Decimal
    quantity: int
    description: Optional[str] = None


@dataclass(frozen=True)
class SaleItemRow:
    """One line of a sale, snapshotted from the product at sale time."""

    product_id: str
    product_name: str
    category: str
    brand: str
    quantity: int
    unit_price: Decimal
    buying_price: Decimal
    total: Decimal


@dataclass(frozen=True)
class SaleRow:
    """In-memory view of a ``Sales`` row joined with its ``SaleItems``."""

    sale_id: str
    customer_name: str
    customer_phone: Optional[str]
    sale_date: date
    timestamp: datetime
    items: tuple[SaleItemRow, ...]
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    commitment_date: Optional[date] = None


@dataclass(frozen=True)
class EmployeeRow:
    """In-memory view of a row from the ``Employees`` sheet."""

    employee_id: str
    name: str
    email: str
    password_hash: str
    role: str
    created_at: str


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification, which allows the caller to deliberately target a
    non-standard location. When no explicit path is given the function walks up
    from the current working directory toward the filesystem root looking for a
    file named ``CONFIG_FILE_NAME``. The first match that exists on disk is
    considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Parser containing the raw configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` entries are mandatory. ``[Policy]`` and ``[Defaults]`` are
    optional and fall back to the package defaults. Relative ``DataFile``
    paths are anchored to ``base_path`` (or the current working directory) and
    resolved to an absolute path.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to anchor a relative
            ``DataFile`` entry.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If a policy option cannot be converted to its type.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        shop_name = parser.get("System", "ShopName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    try:
        enforce_cost_floor = parser.getboolean("Policy", "EnforceCostFloor", fallback=True)
        low_stock_threshold = parser.getint(
            "Policy", "LowStockThreshold", fallback=DEFAULT_LOW_STOCK_THRESHOLD)
        lock_timeout = parser.getfloat("Policy", "LockTimeout", fallback=DEFAULT_LOCK_TIMEOUT)
    except ValueError as exc:
        raise ValueError(f"Invalid [Policy] configuration value: {exc}") from exc

    data_file_path = Path(data_file_raw).expanduser()
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        shop_name=shop_name,
        schema_version=schema_version,
        enforce_cost_floor=enforce_cost_floor,
        low_stock_threshold=low_stock_threshold,
        lock_timeout=lock_timeout,
        admin_email=parser.get("Defaults", "AdminEmail", fallback=None),
        admin_name=parser.get("Defaults", "AdminName", fallback=None),
    )


# ---------------------------------------------------------------------------
# Workbook lifecycle
# ---------------------------------------------------------------------------


def open_workbook(data_file: Path) -> Workbook:
    """Open the shop workbook and return a live ``openpyxl`` workbook.

    Args:
        data_file (Path): Filesystem path to the workbook.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist.
        StorageError: If the file exists but cannot be parsed as a workbook.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    try:
        return openpyxl.load_workbook(data_file)
    except (OSError, InvalidFileException, zipfile.BadZipFile) as exc:
        log.error("Unable to read workbook '%s': %s", data_file, exc)
        raise StorageError(f"Unable to read workbook {data_file}: {exc}") from exc


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook so that readers never observe a half-written file.

    The workbook is first serialized into a sibling temporary file and then
    moved over ``destination`` with :func:`os.replace`, which is atomic on the
    same volume. A failed save leaves the previous file in place.

    Args:
        workbook (Workbook): Workbook instance to persist.
        destination (Path): Filesystem path that should receive the workbook.

    Raises:
        StorageError: If the temporary file cannot be written or moved.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(f".{dest.stem}.tmp{dest.suffix}")
    try:
        workbook.save(tmp)
        os.replace(tmp, dest)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        log.error("Unable to save workbook '%s': %s", dest, exc)
        raise StorageError(f"Unable to save workbook {dest}: {exc}") from exc


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any in-memory changes."""

    return open_workbook(data_file)


def _lock_is_stale(lock_path: Path, stale_after: float) -> bool:
    """Tell whether ``lock_path`` was left behind by a writer that is gone.

    A lock is stale when its owner PID no longer exists or when the file is
    older than ``stale_after`` seconds. A lock whose PID is not written yet is
    only judged by its age.
    """

    try:
        owner = lock_path.read_text(encoding="ascii").strip()
        age = time.time() - lock_path.stat().st_mtime
    except (OSError, UnicodeDecodeError):
        return False
    if age > stale_after:
        return True
    if not owner.isdigit() or os.name != "posix":
        return False
    pid = int(owner)
    if pid == os.getpid():
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    except OSError:
        # alive, owned by another user
        return False
    return False


@contextmanager
def workbook_lock(
    data_file: Path,
    *,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    poll_interval: float = 0.05,
    stale_after: float = DEFAULT_LOCK_STALE_AFTER,
) -> Iterator[Path]:
    """Hold an exclusive lock on ``data_file`` for the duration of the block.

    The lock is a sibling ``.lock`` file created with ``O_EXCL``, so only one
    process at a time can hold it. Writers from other sessions wait until the
    lock is released or ``timeout`` seconds have elapsed. A lock left behind
    by a dead process, or older than ``stale_after`` seconds, is removed and
    acquisition is retried.

    Args:
        data_file (Path): Workbook whose writers should be serialized.
        timeout (float): Maximum number of seconds to wait for the lock.
        poll_interval (float): Delay between acquisition attempts.
        stale_after (float): Age in seconds after which a lock is abandoned.

    Yields:
        Path: Location of the lock file while it is held.

    Raises:
        StorageError: If the lock cannot be acquired in time.
    """

    target = Path(data_file).expanduser().resolve()
    lock_path = target.with_name(f"{target.name}.lock")
    deadline = time.monotonic() + timeout
    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            break
        except FileExistsError:
            if _lock_is_stale(lock_path, stale_after):
                log.warning("Removing stale workbook lock '%s'", lock_path)
                lock_path.unlink(missing_ok=True)
                continue
            if time.monotonic() >= deadline:
                log.error("Timed out waiting for workbook lock '%s'", lock_path)
                raise StorageError(f"Timed out waiting for workbook lock: {lock_path}")
            time.sleep(poll_interval)
        except OSError as exc:
            raise StorageError(f"Unable to create workbook lock {lock_path}: {exc}") from exc

    try:
        os.write(fd, str(os.getpid()).encode("ascii"))
    finally:
        os.close(fd)

    try:
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)


@contextmanager
def workbook_transaction(data_file: Path, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[Workbook]:
    """Run a unit of work against the latest on-disk workbook.

    The lock is taken, a fresh workbook is loaded, the caller mutates it, and
    the result is saved atomically. If the block raises, nothing is saved and
    the exception propagates, so a transaction either fully applies or leaves
    the file exactly as it was.

    Args:
        data_file (Path): Workbook to operate on.
        lock_timeout (float): Seconds to wait for competing writers.

    Yields:
        Workbook: Freshly loaded workbook to mutate.
    """

    with workbook_lock(data_file, timeout=lock_timeout):
        workbook = open_workbook(data_file)
        yield workbook
        save_workbook(workbook, data_file)


# ---------------------------------------------------------------------------
# Sheet readers
# ---------------------------------------------------------------------------


def _iter_raw_rows(workbook: Workbook, sheet_name: str) -> Iterator[tuple]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over product records stored on the ``Products`` worksheet.

    Args:
        workbook (Workbook): Workbook containing the ``Products`` sheet.

    Yields:
        ProductRow: One structured row for each non-empty record.
    """

    for raw in _iter_raw_rows(workbook, PRODUCTS_SHEET):
        yield deserialize_product(raw)


def iter_sale_items(workbook: Workbook) -> Iterable[tuple[str, SaleItemRow]]:
    """Yield ``(sale_id, item)`` pairs from the ``SaleItems`` worksheet."""

    for raw in _iter_raw_rows(workbook, SALE_ITEMS_SHEET):
        yield str(raw[0]), deserialize_sale_item(raw)


def iter_sales(workbook: Workbook) -> Iterable[SaleRow]:
    """Stream sale records with their line items attached.

    Items are grouped by sale id first, then every ``Sales`` row is
    deserialized together with its items in the order they were written.

    Args:
        workbook (Workbook): Workbook containing the sales sheets.

    Yields:
        SaleRow: Sale header joined with its items, in sheet order.
    """

    items_by_sale: Dict[str, List[SaleItemRow]] = {}
    for sale_id, item in iter_sale_items(workbook):
        items_by_sale.setdefault(sale_id, []).append(item)

    for raw in _iter_raw_rows(workbook, SALES_SHEET):
        sale_id = str(raw[0])
        yield deserialize_sale(raw, items_by_sale.get(sale_id, ()))


def iter_employees(workbook: Workbook) -> Iterable[EmployeeRow]:
    """Iterate over the ``Employees`` worksheet and yield typed records."""

    for raw in _iter_raw_rows(workbook, EMPLOYEES_SHEET):
        yield deserialize_employee(raw)


def find_product(workbook: Workbook, product_id: str) -> Optional[ProductRow]:
    """Return the product with ``product_id`` or ``None`` when absent."""

    for product in iter_products(workbook):
        if product.product_id == product_id:
            return product
    return None


def find_sale(workbook: Workbook, sale_id: str) -> Optional[SaleRow]:
    """Return the sale with ``sale_id`` (items included) or ``None``."""

    for sale in iter_sales(workbook):
        if sale.sale_id == sale_id:
            return sale
    return None


# ---------------------------------------------------------------------------
# Sheet writers
# ---------------------------------------------------------------------------


def append_product(workbook: Workbook, record: ProductRow) -> None:
    """Append a product record to the ``Products`` worksheet."""

    workbook[PRODUCTS_SHEET].append(serialize_product(record))


def append_sale(workbook: Workbook, record: SaleRow) -> None:
    """Append a sale header and one ``SaleItems`` row per line item.

    Args:
        workbook (Workbook): Workbook containing the sales sheets.
        record (SaleRow): Sale to persist.
    """

    workbook[SALES_SHEET].append(serialize_sale(record))
    items_sheet = workbook[SALE_ITEMS_SHEET]
    for item in record.items:
        items_sheet.append(serialize_sale_item(record.sale_id, item))


def append_employee(workbook: Workbook, record: EmployeeRow) -> None:
    """Append an employee record to the ``Employees`` worksheet."""

    workbook[EMPLOYEES_SHEET].append(serialize_employee(record))


def update_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str, *, field_values: dict[str, Any]) -> None:
    """Update selected columns for the row whose key matches ``key_value``.

    The function locates the row, validates that each requested field exists
    in the header row, and writes the provided values into the corresponding
    cells. Only the specified fields are modified.

    Args:
        workbook (Workbook): Workbook containing ``sheet_name``.
        sheet_name (str): Worksheet to modify.
        key_column (str): Header title of the identifier column.
        key_value (str): Identifier of the row to update.
        field_values (dict[str, Any]): Mapping of column names to replacement
            values.

    Raises:
        KeyError: If the row or any referenced column cannot be found.
    """

    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"{sheet_name} row not found: {key_value}")

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)
    for field, value in field_values.items():
        if field not in header_map:
            raise KeyError(f"Unknown {sheet_name} field: {field}")
        sheet.cell(row=row_index, column=header_map[field]).value = value


def update_product(workbook: Workbook, product_id: str, *, field_values: dict[str, Any]) -> None:
    """Update selected ``Products`` columns for ``product_id``."""

    update_row(workbook, PRODUCTS_SHEET, "ProductID", product_id, field_values=field_values)


def update_sale_payment(
    workbook: Workbook,
    sale_id: str,
    *,
    paid_amount: Decimal,
    due_amount: Decimal,
    commitment_date: Optional[date],
) -> None:
    """Overwrite the payment columns of a sale; all other columns are frozen."""

    update_row(
        workbook,
        SALES_SHEET,
        "SaleID",
        sale_id,
        field_values={
            "PaidAmount": paid_amount,
            "DueAmount": due_amount,
            "CommitmentDate": _format_date(commitment_date),
        },
    )


def delete_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> None:
    """Remove the row whose key matches ``key_value``.

    Raises:
        KeyError: If no row matches.
    """

    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"{sheet_name} row not found: {key_value}")
    workbook[sheet_name].delete_rows(row_index)


def delete_product(workbook: Workbook, product_id: str) -> None:
    """Remove a product row. Sale items keep their own snapshot."""

    delete_row(workbook, PRODUCTS_SHEET, "ProductID", product_id)


def delete_employee(workbook: Workbook, employee_id: str) -> None:
    """Remove an employee row."""

    delete_row(workbook, EMPLOYEES_SHEET, "EmployeeID", employee_id)


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the key column.
        key_value (str): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]
    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        cell_value = row[key_col_index - 1]
        if cell_value is not None and str(cell_value) == key_value:
            return row_idx

    return None


def _header_map(sheet) -> Dict[str, int]:
    return {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}


# ---------------------------------------------------------------------------
# Atomic sale procedure
# ---------------------------------------------------------------------------


def record_sale_transaction(
    workbook: Workbook,
    *,
    sale_id: str,
    customer_name: str,
    customer_phone: Optional[str],
    sale_date: date,
    paid_amount: Decimal,
    due_amount: Decimal,
    commitment_date: Optional[date],
    timestamp: datetime,
    items: Sequence[SaleItemRow],
) -> SaleRow:
    """Insert a sale with its items and decrement stock as one unit of work.

    Every check runs against ``workbook`` before the first write: each
    referenced product must still exist and the quantity requested across all
    lines for that product must not exceed its stock. Only then are stock
    levels decremented and the header and item rows appended. Callers run
    this inside :func:`workbook_transaction` so that a failure discards the
    in-memory workbook instead of saving it.

    Args:
        workbook (Workbook): Freshly loaded workbook, normally the one yielded
            by :func:`workbook_transaction`.
        sale_id (str): Identifier for the new sale.
        customer_name (str): Buyer name.
        customer_phone (str | None): Buyer phone, required upstream for dues.
        sale_date (date): Calendar day of the sale.
        paid_amount (Decimal): Amount collected at the counter.
        due_amount (Decimal): Outstanding amount.
        commitment_date (date | None): Promised settlement date for the due.
        timestamp (datetime): Creation instant.
        items (Sequence[SaleItemRow]): Line items with snapshotted fields.

    Returns:
        SaleRow: The sale exactly as persisted.

    Raises:
        ConsistencyError: If a product vanished, stock would go negative, or
            ``sale_id`` already exists.
        ValueError: If ``paid_amount + due_amount`` differs from the item
            total.
    """

    products = {product.product_id: product for product in iter_products(workbook)}
    requested: Dict[str, int] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    for product_id, quantity in requested.items():
        product = products.get(product_id)
        if product is None:
            log.warning("Sale rejected: product '%s' no longer exists", product_id)
            raise ConsistencyError(f"Product '{product_id}' no longer exists")
        if quantity > product.quantity:
            log.warning(
                "Sale rejected: product '%s' has %d in stock, %d requested",
                product_id,
                product.quantity,
                quantity,
            )
            raise ConsistencyError(
                f"Only {product.quantity} units of '{product.model_name}' remain, {quantity} requested"
            )

    if locate_row(workbook, SALES_SHEET, "SaleID", sale_id) is not None:
        raise ConsistencyError(f"Sale id already exists: {sale_id}")

    total_amount = sum((item.total for item in items), Decimal("0"))
    if paid_amount + due_amount != total_amount:
        raise ValueError(
            f"Paid ({paid_amount}) and due ({due_amount}) do not add up to total {total_amount}"
        )

    for product_id, quantity in requested.items():
        update_product(
            workbook,
            product_id,
            field_values={"Quantity": products[product_id].quantity - quantity},
        )

    record = SaleRow(
        sale_id=sale_id,
        customer_name=customer_name,
        customer_phone=customer_phone,
        sale_date=sale_date,
        timestamp=timestamp,
        items=tuple(items),
        total_amount=total_amount,
        paid_amount=paid_amount,
        due_amount=due_amount,
        commitment_date=commitment_date,
    )
    append_sale(workbook, record)
    return record


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_product(record: ProductRow) -> list[object]:
    """Convert a product dataclass into the worksheet column ordering.

    Returns:
        list[object]: ``[ProductID, Category, Brand, ModelName, Price,
        Quantity, Description]``.
    """

    return [
        record.product_id,
        record.category,
        record.brand,
        record.model_name,
        record.price,
        record.quantity,
        record.description,
    ]


def serialize_sale(record: SaleRow) -> list[object]:
    """Convert a sale header into the ``Sales`` column order."""

    return [
        record.sale_id,
        record.customer_name,
        record.customer_phone,
        _format_date(record.sale_date),
        record.total_amount,
        record.paid_amount,
        record.due_amount,
        _format_date(record.commitment_date),
        record.timestamp.isoformat(),
    ]


def serialize_sale_item(sale_id: str, item: SaleItemRow) -> list[object]:
    """Convert a line item into the ``SaleItems`` column order."""

    return [
        sale_id,
        item.product_id,
        item.product_name,
        item.category,
        item.brand,
        item.quantity,
        item.unit_price,
        item.buying_price,
        item.total,
    ]


def serialize_employee(record: EmployeeRow) -> list[object]:
    return [
        record.employee_id,
        record.name,
        record.email,
        record.password_hash,
        record.role,
        record.created_at,
    ]


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record.

    Numeric cells come back from Excel as ``int`` or ``float``; they are
    normalized into :class:`~decimal.Decimal` prices and ``int`` quantities.
    Text columns are coerced to ``str`` so numeric-looking ids stay strings.
    """

    product_id, category, brand, model_name, price_raw, quantity_raw, description = _pad(raw_row, 7)
    return ProductRow(
        product_id=str(product_id),
        category=_to_text(category),
        brand=_to_text(brand),
        model_name=_to_text(model_name),
        price=_to_decimal(price_raw),
        quantity=_to_int(quantity_raw),
        description=(str(description) if description not in (None, "") else None),
    )


def deserialize_sale_item(raw_row: Sequence[object]) -> SaleItemRow:
    """Convert a raw ``SaleItems`` row (sale id first) into a line item."""

    (
        _sale_id,
        product_id,
        product_name,
        category,
        brand,
        quantity_raw,
        unit_price_raw,
        buying_price_raw,
        total_raw,
    ) = _pad(raw_row, 9)
    return SaleItemRow(
        product_id=str(product_id),
        product_name=_to_text(product_name),
        category=_to_text(category),
        brand=_to_text(brand),
        quantity=_to_int(quantity_raw),
        unit_price=_to_decimal(unit_price_raw),
        buying_price=_to_decimal(buying_price_raw),
        total=_to_decimal(total_raw),
    )


def deserialize_sale(raw_row: Sequence[object], items: Iterable[SaleItemRow]) -> SaleRow:
    """Convert a raw ``Sales`` row plus its items into a :class:`SaleRow`.

    Missing monetary cells default to zero and a blank commitment date stays
    ``None``. Timestamps without an offset are treated as UTC.
    """

    (
        sale_id,
        customer_name,
        customer_phone,
        sale_date_raw,
        total_raw,
        paid_raw,
        due_raw,
        commitment_raw,
        timestamp_raw,
    ) = _pad(raw_row, 9)
    return SaleRow(
        sale_id=str(sale_id),
        customer_name=_to_text(customer_name),
        customer_phone=(str(customer_phone) if customer_phone not in (None, "") else None),
        sale_date=_to_date(sale_date_raw),
        timestamp=_to_datetime(timestamp_raw),
        items=tuple(items),
        total_amount=_to_decimal(total_raw),
        paid_amount=_to_decimal(paid_raw),
        due_amount=_to_decimal(due_raw),
        commitment_date=_to_optional_date(commitment_raw),
    )


def deserialize_employee(raw_row: Sequence[object]) -> EmployeeRow:
    employee_id, name, email, password_hash, role, created_at = _pad(raw_row, 6)
    return EmployeeRow(
        employee_id=str(employee_id),
        name=_to_text(name),
        email=_to_text(email),
        password_hash=_to_text(password_hash),
        role=_to_text(role),
        created_at=_to_text(created_at),
    )


def _pad(raw_row: Sequence[object], width: int) -> tuple:
    values = tuple(raw_row[:width])
    return values + (None,) * (width - len(values))


def _to_text(value: object) -> str:
    return str(value) if value is not None else ""


def _to_decimal(value: object) -> Decimal:
    return Decimal(str(value)) if value not in (None, "") else Decimal("0")


def _to_int(value: object) -> int:
    return int(Decimal(str(value))) if value not in (None, "") else 0


def _to_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _to_optional_date(value: object) -> Optional[date]:
    if value in (None, ""):
        return None
    return _to_date(value)


def _to_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.fromisoformat(str(value))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment


def _format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
