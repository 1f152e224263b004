"""Business logic layer for Nexus Shop.

This module owns the application state container and every operation that
changes the shop: catalog maintenance, the sale commit protocol, and due
payments. It consumes the Data Access Layer (DAL) for all I/O and follows
one consistency rule throughout: validate locally first, apply the change as
a single storage transaction, then reload everything derived from the
workbook. No local state is patched in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from openpyxl.workbook import Workbook

from . import data_manager, log, metrics
from .auth import CATALOG_ROLES, SALES_ROLES, Session, authenticate, hash_password, require_role
from .cart import Cart
from .constants import EXPECTED_SCHEMA_VERSION, Role, TaxonomyKind
from .exceptions import (
    AmountExceedsDueError,
    CommitFailedError,
    CommitmentDateRequiredError,
    ConsistencyError,
    CustomerNameRequiredError,
    EmptyCartError,
    InvalidAmountError,
    InvalidPaidAmountError,
    InvalidPriceError,
    InvalidProductError,
    InvalidQuantityError,
    PhoneRequiredForDueError,
    ProductNotFoundError,
    SaleNotFoundError,
    StockConflictError,
    StorageError,
    ValidationError,
)
from .taxonomy import Taxonomy


T = TypeVar("T")
ZERO = Decimal("0")


@dataclass
class RuntimeContext:
    """Application state: settings, the loaded workbook, the session, and caches.

    Operations receive the context explicitly. After every successful
    mutation :func:`refresh_context` swaps in a freshly loaded workbook and
    drops the caches, so reads never see stale catalog or ledger data.
    """

    settings: data_manager.ConfigSettings
    workbook: Workbook
    session: Optional[Session] = None
    _cache: Dict[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class ProductCommand:
    """User intent for creating or replacing a catalog entry."""

    category: str
    brand: str
    model_name: str
    price: Decimal
    quantity: int = 0
    description: Optional[str] = None


@dataclass(frozen=True)
class SaleCommand:
    """User intent for committing a cart as a sale.

    Leave ``paid_amount`` and ``due_amount`` unset for a fully paid sale.
    """

    customer_name: str
    sale_date: date
    lines: Sequence[data_manager.SaleItemRow]
    customer_phone: Optional[str] = None
    paid_amount: Optional[Decimal] = None
    due_amount: Optional[Decimal] = None
    commitment_date: Optional[date] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class PaymentTerms:
    paid_amount: Decimal
    due_amount: Decimal
    commitment_date: Optional[date]


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or, when ``None``, the current UTC time."""

    return candidate if candidate is not None else datetime.now(UTC)


def _get_cache_bucket(context: RuntimeContext, name: str) -> Dict[str, Any]:
    """Return a mutable cache bucket dedicated to the supplied name.

    The business logic layer keeps in-memory caches keyed by domain area
    (products, sales, employees, taxonomy). Buckets are plain dictionaries
    that store query results so repeated reads do not rescan the workbook.

    Args:
        context (RuntimeContext): Runtime state carrying the shared cache.
        name (str): Logical bucket name to fetch or create.

    Returns:
        dict[str, Any]: Mutable mapping for the named bucket.
    """

    bucket = context._cache.get(name)
    if bucket is None:
        log.debug("Initializing cache bucket '%s'", name)
        bucket = {}
        context._cache[name] = bucket
    return bucket


def _ensure_products_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the product bucket with ``all`` (by category) and ``by_id``."""

    bucket = _get_cache_bucket(context, "products")
    if "all" not in bucket:
        all_products = sorted(data_manager.iter_products(context.workbook), key=lambda product: product.category)
        bucket["all"] = all_products
        bucket["by_id"] = {product.product_id: product for product in all_products}
        log.debug("Populated products cache with %d entries", len(all_products))
    return bucket


def _ensure_sales_cache(context: RuntimeContext) -> Dict[str, Any]:
    """Populate the sales bucket with ``all`` (newest first) and ``by_id``.

    Sales are immutable apart from their payment columns, and those only
    change through a transaction that refreshes the context, so the cached
    list stays valid until the next refresh.
    """

    bucket = _get_cache_bucket(context, "sales")
    if "all" not in bucket:
        all_sales = sorted(data_manager.iter_sales(context.workbook), key=lambda sale: sale.timestamp, reverse=True)
        bucket["all"] = all_sales
        bucket["by_id"] = {sale.sale_id: sale for sale in all_sales}
        log.debug("Populated sales cache with %d entries", len(all_sales))
    return bucket


def _ensure_employees_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "employees")
    if "all" not in bucket:
        bucket["all"] = list(data_manager.iter_employees(context.workbook))
    return bucket


def _run_transaction(context: RuntimeContext, work: Callable[[Workbook], T]) -> T:
    """Apply ``work`` to the latest workbook atomically, then refresh.

    The refresh only happens when the transaction committed; a failure
    leaves both the file and the context untouched. Once the save succeeded
    the change is final: if the reload fails, the context adopts the
    committed workbook instead of raising.
    """

    with data_manager.workbook_transaction(
        context.settings.data_file,
        lock_timeout=context.settings.lock_timeout,
    ) as workbook:
        result = work(workbook)
    try:
        refresh_context(context)
    except (StorageError, OSError) as exc:
        log.error("Committed to '%s' but could not reload it: %s", context.settings.data_file, exc)
        context.workbook = workbook
        context._cache.clear()
    return result


# ---------------------------------------------------------------------------
# Context lifecycle
# ---------------------------------------------------------------------------


def load_runtime_context(config_path: Optional[Path] = None, *, session: Optional[Session] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook.

    Args:
        config_path (Path | None): Optional override path for the
            configuration file. When omitted the data layer searches upward
            from the current working directory.
        session (Session | None): Already authenticated user, if any.

    Returns:
        RuntimeContext: Context ready for orchestration functions.

    Raises:
        FileNotFoundError: If the configuration file or workbook is missing.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook, session=session)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Refuse to operate on a workbook declared with another schema version.

    Raises:
        RuntimeError: If ``config.ini`` declares a different schema version.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook from disk and drop every derived cache.

    The context is updated in place and returned for convenience. Catalog,
    ledger, taxonomy, and metrics are all recomputed lazily on next access.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    context.workbook = data_manager.refresh_workbook(context.settings.data_file)
    context._cache.clear()
    log.debug("Reloaded workbook '%s'", context.settings.data_file)
    return context


def login(context: RuntimeContext, email: str, password: str, *, required_role: Optional[Role] = None) -> Session:
    """Authenticate against the ``Employees`` sheet and attach the session."""

    session = authenticate(
        _ensure_employees_cache(context)["all"],
        email,
        password,
        required_role=required_role,
    )
    context.session = session
    return session


def logout(context: RuntimeContext) -> None:
    context.session = None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def list_products(context: RuntimeContext) -> List[data_manager.ProductRow]:
    """Return the catalog ordered by category.

    The returned list is a copy, so callers may sort or filter it freely.
    """
    return list(_ensure_products_cache(context)["all"])


def get_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Resolve a product record by its identifier.

    Raises:
        ProductNotFoundError: If ``product_id`` is absent from the catalog.
    """
    try:
        return _ensure_products_cache(context)["by_id"][product_id]
    except KeyError as exc:
        log.warning("Product lookup failed for id '%s'", product_id)
        raise ProductNotFoundError(f"Unknown product id: {product_id}") from exc


def list_sales(context: RuntimeContext) -> List[data_manager.SaleRow]:
    """Return the ledger, newest sale first."""
    return list(_ensure_sales_cache(context)["all"])


def get_sale(context: RuntimeContext, sale_id: str) -> data_manager.SaleRow:
    """Resolve a sale by its identifier.

    Raises:
        SaleNotFoundError: If the ledger lacks ``sale_id``.
    """
    try:
        return _ensure_sales_cache(context)["by_id"][sale_id]
    except KeyError as exc:
        log.warning("Sale lookup failed for id '%s'", sale_id)
        raise SaleNotFoundError(f"Unknown sale id: {sale_id}") from exc


def list_employees(context: RuntimeContext) -> List[data_manager.EmployeeRow]:
    require_role(context.session, Role.ADMIN)
    return list(_ensure_employees_cache(context)["all"])


def get_taxonomy(context: RuntimeContext) -> Taxonomy:
    """Return the session's taxonomy, rebuilding it after each refresh."""

    bucket = _get_cache_bucket(context, "taxonomy")
    if "registry" not in bucket:
        bucket["registry"] = Taxonomy.rebuild(list_products(context))
    return bucket["registry"]


def remove_taxonomy_value(context: RuntimeContext, kind: TaxonomyKind, value: str) -> Taxonomy:
    """Hide a suggestion until the next reload. Products keep the value."""

    taxonomy = get_taxonomy(context)
    taxonomy.remove(kind, value)
    return taxonomy


def monthly_metrics(context: RuntimeContext, *, year: Optional[int] = None) -> Dict[str, metrics.SalesMetric]:
    return metrics.compute_monthly_metrics(list_sales(context), year=year)


def outstanding_dues(context: RuntimeContext) -> List[data_manager.SaleRow]:
    return metrics.outstanding(list_sales(context))


def new_cart(context: RuntimeContext) -> Cart:
    """Start an empty cart against the current catalog snapshot."""

    return Cart(
        _ensure_products_cache(context)["by_id"],
        enforce_cost_floor=context.settings.enforce_cost_floor,
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def validate_product_command(command: ProductCommand) -> None:
    """Check that a product has its descriptive fields and sane numbers.

    Raises:
        InvalidProductError: If category, brand, or model name is blank.
        InvalidPriceError: If the price is negative.
        InvalidQuantityError: If the quantity is negative.
    """
    for field_name in ("category", "brand", "model_name"):
        if not str(getattr(command, field_name) or "").strip():
            raise InvalidProductError(f"Product {field_name.replace('_', ' ')} is required", field=field_name)
    require_nonnegative_money(command.price)
    if command.quantity < 0:
        log.error("Quantity validation failed: %s", command.quantity)
        raise InvalidQuantityError("Quantity cannot be negative")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        InvalidPriceError: If ``amount`` is less than zero.
    """
    if amount < ZERO:
        log.error("Monetary value validation failed: %s", amount)
        raise InvalidPriceError("Amount must be zero or positive")


def _build_product(product_id: str, command: ProductCommand) -> data_manager.ProductRow:
    return data_manager.ProductRow(
        product_id=product_id,
        category=command.category.strip(),
        brand=command.brand.strip(),
        model_name=command.model_name.strip(),
        price=Decimal(command.price),
        quantity=int(command.quantity),
        description=command.description or None,
    )


def add_product(context: RuntimeContext, command: ProductCommand) -> data_manager.ProductRow:
    """Validate and append a product to the catalog (admin only).

    Returns:
        data_manager.ProductRow: The stored product with its generated id.

    Raises:
        PermissionDeniedError: If the session is not an admin.
        ValidationError: If the command fails :func:`validate_product_command`.
        StorageError: If the workbook cannot be written.
    """
    require_role(context.session, *CATALOG_ROLES)
    validate_product_command(command)
    product = _build_product(generate_id("P"), command)

    def work(workbook: Workbook) -> data_manager.ProductRow:
        data_manager.append_product(workbook, product)
        return product

    result = _run_transaction(context, work)
    log.info("Added product '%s' (%s %s)", product.product_id, product.brand, product.model_name)
    return result


def update_product(context: RuntimeContext, product_id: str, command: ProductCommand) -> data_manager.ProductRow:
    """Replace the editable fields of an existing product (admin only).

    Raises:
        ProductNotFoundError: If ``product_id`` is unknown locally.
        ConsistencyError: If the product was deleted by another session.
    """
    require_role(context.session, *CATALOG_ROLES)
    get_product(context, product_id)
    validate_product_command(command)
    product = _build_product(product_id, command)

    def work(workbook: Workbook) -> data_manager.ProductRow:
        if data_manager.find_product(workbook, product_id) is None:
            raise ConsistencyError(f"Product '{product_id}' no longer exists")
        data_manager.update_product(
            workbook,
            product_id,
            field_values={
                "Category": product.category,
                "Brand": product.brand,
                "ModelName": product.model_name,
                "Price": product.price,
                "Quantity": product.quantity,
                "Description": product.description,
            },
        )
        return product

    result = _run_transaction(context, work)
    log.info("Updated product '%s'", product_id)
    return result


def delete_product(context: RuntimeContext, product_id: str) -> None:
    """Remove a product from the catalog (admin only).

    Past sales keep their item snapshots, so history and profit figures are
    unaffected.
    """
    require_role(context.session, *CATALOG_ROLES)
    get_product(context, product_id)

    def work(workbook: Workbook) -> None:
        if data_manager.find_product(workbook, product_id) is None:
            raise ConsistencyError(f"Product '{product_id}' no longer exists")
        data_manager.delete_product(workbook, product_id)

    _run_transaction(context, work)
    log.info("Deleted product '%s'", product_id)


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def resolve_payment_terms(command: SaleCommand, total: Decimal) -> PaymentTerms:
    """Work out paid, due, and commitment date for a new sale.

    A due is requested when ``due_amount`` is positive or a ``paid_amount``
    other than the total is supplied. Without a due the sale is fully paid
    and carries no commitment date. With one, the checks run in order: a
    phone number is present, the paid amount lies within ``[0, total]`` (and
    agrees with ``due_amount`` when both are given), and a commitment date
    is present whenever money remains owed.

    Raises:
        PhoneRequiredForDueError, InvalidPaidAmountError,
        CommitmentDateRequiredError: When the corresponding check fails.
    """
    paid = command.paid_amount
    due = command.due_amount
    if due is not None and due < ZERO:
        raise InvalidPaidAmountError("Due amount cannot be negative")
    due_requested = (due is not None and due > 0) or (paid is not None and paid != total)
    if not due_requested:
        return PaymentTerms(paid_amount=total, due_amount=ZERO, commitment_date=None)

    if not (command.customer_phone or "").strip():
        raise PhoneRequiredForDueError("Phone number is required for due")

    if paid is None:
        paid = total - due
    if paid < ZERO or paid > total:
        raise InvalidPaidAmountError("Paid amount must be between 0 and the sale total")
    remaining = total - paid
    if due is not None and due != remaining:
        raise InvalidPaidAmountError("Paid and due amounts must add up to the sale total")

    if remaining > ZERO and command.commitment_date is None:
        raise CommitmentDateRequiredError("Commitment date is required")

    return PaymentTerms(
        paid_amount=paid,
        due_amount=remaining,
        commitment_date=command.commitment_date if remaining > ZERO else None,
    )


def record_sale(context: RuntimeContext, command: SaleCommand) -> data_manager.SaleRow:
    """Commit a cart as one sale, decrementing stock atomically.

    Local validation runs first and raises before any storage call. The
    sale procedure then re-checks stock against the on-disk workbook under
    the write lock and applies every decrement plus the ledger rows as a
    single transaction. On success the context is refreshed.

    Args:
        context (RuntimeContext): Runtime context; the session must be an
            admin or employee.
        command (SaleCommand): Customer, date, lines, and payment terms.

    Returns:
        data_manager.SaleRow: The persisted sale with generated id and
            timestamp.

    Raises:
        CustomerNameRequiredError, EmptyCartError, PhoneRequiredForDueError,
        InvalidPaidAmountError, CommitmentDateRequiredError: On invalid input.
        StockConflictError: If stock ran out or a product vanished since the
            cart was built. Nothing was applied.
        CommitFailedError: If storage failed. Nothing was applied.
    """
    require_role(context.session, *SALES_ROLES)
    customer_name = (command.customer_name or "").strip()
    if not customer_name:
        raise CustomerNameRequiredError("Customer name is required")
    lines = tuple(command.lines)
    if not lines:
        raise EmptyCartError("Cart is empty")
    for line in lines:
        if line.quantity < 1:
            raise InvalidQuantityError(f"Line for '{line.product_id}' has no units")

    total = sum((line.total for line in lines), ZERO)
    terms = resolve_payment_terms(command, total)
    timestamp = _resolve_timestamp(command.timestamp)
    customer_phone = (command.customer_phone or "").strip() or None

    def work(workbook: Workbook) -> data_manager.SaleRow:
        return data_manager.record_sale_transaction(
            workbook,
            sale_id=generate_id("S", when=timestamp),
            customer_name=customer_name,
            customer_phone=customer_phone,
            sale_date=command.sale_date,
            paid_amount=terms.paid_amount,
            due_amount=terms.due_amount,
            commitment_date=terms.commitment_date,
            timestamp=timestamp,
            items=lines,
        )

    try:
        sale = _run_transaction(context, work)
    except ConsistencyError as exc:
        log.warning("Sale for '%s' rejected: %s", customer_name, exc)
        raise StockConflictError(str(exc)) from exc
    except (StorageError, OSError) as exc:
        log.error("Sale for '%s' failed: %s", customer_name, exc)
        raise CommitFailedError(f"Failed to record transaction: {exc}") from exc

    log.info(
        "Recorded sale '%s' for '%s' (total=%s, paid=%s, due=%s)",
        sale.sale_id,
        customer_name,
        sale.total_amount,
        sale.paid_amount,
        sale.due_amount,
    )
    return sale


def validate_payment(sale: data_manager.SaleRow, amount: Decimal, new_commitment_date: Optional[date]) -> PaymentTerms:
    """Compute a sale's payment fields after collecting ``amount``.

    A partial payment always needs a new commitment date, even when one is
    already on file; paying the exact remaining due clears it.

    Raises:
        InvalidAmountError: If ``amount`` is not positive.
        AmountExceedsDueError: If ``amount`` is larger than the current due.
        CommitmentDateRequiredError: If money remains owed and no date was
            given.
    """
    if amount <= ZERO:
        raise InvalidAmountError("Amount must be greater than 0")
    if amount > sale.due_amount:
        raise AmountExceedsDueError("Amount cannot exceed due amount")
    if sale.due_amount - amount > ZERO and new_commitment_date is None:
        raise CommitmentDateRequiredError("Please provide a new commitment date for remaining due")

    new_paid = sale.paid_amount + amount
    new_due = max(ZERO, sale.total_amount - new_paid)
    return PaymentTerms(
        paid_amount=new_paid,
        due_amount=new_due,
        commitment_date=new_commitment_date if new_due > ZERO else None,
    )


def apply_payment(
    context: RuntimeContext,
    sale_id: str,
    amount: Decimal,
    new_commitment_date: Optional[date] = None,
) -> data_manager.SaleRow:
    """Collect part or all of a sale's outstanding due.

    The payment is validated against the cached ledger and again against
    the freshly loaded row inside the transaction, so a concurrent payment
    from another session cannot push the sale past its total.

    Returns:
        data_manager.SaleRow: The sale with updated payment fields.

    Raises:
        SaleNotFoundError: If ``sale_id`` is unknown.
        ValidationError: See :func:`validate_payment`.
        ConsistencyError: If the sale disappeared from storage.
    """
    require_role(context.session, *SALES_ROLES)
    validate_payment(get_sale(context, sale_id), amount, new_commitment_date)

    def work(workbook: Workbook) -> data_manager.SaleRow:
        current = data_manager.find_sale(workbook, sale_id)
        if current is None:
            raise ConsistencyError(f"Sale '{sale_id}' no longer exists")
        terms = validate_payment(current, amount, new_commitment_date)
        data_manager.update_sale_payment(
            workbook,
            sale_id,
            paid_amount=terms.paid_amount,
            due_amount=terms.due_amount,
            commitment_date=terms.commitment_date,
        )
        return replace(
            current,
            paid_amount=terms.paid_amount,
            due_amount=terms.due_amount,
            commitment_date=terms.commitment_date,
        )

    updated = _run_transaction(context, work)
    log.info(
        "Collected %s on sale '%s' (paid=%s, due=%s)",
        amount,
        sale_id,
        updated.paid_amount,
        updated.due_amount,
    )
    return updated


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


def add_employee(
    context: RuntimeContext,
    *,
    name: str,
    email: str,
    password: str,
    role: Role = Role.EMPLOYEE,
) -> data_manager.EmployeeRow:
    """Create a staff account (admin only); emails are unique."""

    require_role(context.session, Role.ADMIN)
    if not name.strip() or not email.strip() or not password:
        raise ValidationError("Name, email, and password are required", field="employee")
    wanted = email.strip().lower()
    if any(employee.email.lower() == wanted for employee in _ensure_employees_cache(context)["all"]):
        raise ValidationError(f"Email already registered: {email}", field="email")

    timestamp = _resolve_timestamp(None)
    employee = data_manager.EmployeeRow(
        employee_id=generate_id("E", when=timestamp),
        name=name.strip(),
        email=email.strip(),
        password_hash=hash_password(password),
        role=role.value,
        created_at=timestamp.isoformat(),
    )

    def work(workbook: Workbook) -> data_manager.EmployeeRow:
        data_manager.append_employee(workbook, employee)
        return employee

    result = _run_transaction(context, work)
    log.info("Added %s account '%s'", role.value, employee.email)
    return result


def delete_employee(context: RuntimeContext, employee_id: str) -> None:
    require_role(context.session, Role.ADMIN)
    if context.session is not None and context.session.user_id == employee_id:
        raise ValidationError("You cannot delete your own account", field="employee")

    def work(workbook: Workbook) -> None:
        try:
            data_manager.delete_employee(workbook, employee_id)
        except KeyError as exc:
            raise ValidationError(f"Unknown employee id: {employee_id}", field="employee") from exc

    _run_transaction(context, work)
    log.info("Deleted employee '%s'", employee_id)


def generate_id(prefix: str, *, when: Optional[datetime] = None) -> str:
    """Generate a sortable identifier from a UTC timestamp.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}``.
    """
    when = when or _resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}"
