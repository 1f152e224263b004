"""Command-line entry points for the Nexus Shop toolkit.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the business
layer, and printing the results. Every mutation is committed by the business
layer itself, so there is no separate save step here.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log, metrics
from .constants import MONTHS, PaymentStatus, Role, StockStatus
from .data_manager import ProductRow, SaleRow
from .exceptions import (
    AuthenticationError,
    ConsistencyError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from .taxonomy import brands_for_category, models_for


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


@dataclass(frozen=True)
class ItemArgument:
    product_id: str
    quantity: int
    unit_price: Optional[Decimal]


def parse_decimal(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"invalid amount: {raw!r}") from exc


def parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date (expected YYYY-MM-DD): {raw!r}") from exc


def parse_item(raw: str) -> ItemArgument:
    """Parse ``PRODUCT_ID:QTY[:PRICE]`` into an :class:`ItemArgument`."""
    parts = raw.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise argparse.ArgumentTypeError(f"expected PRODUCT_ID:QTY:PRICE, got {raw!r}")
    try:
        quantity = int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid quantity in {raw!r}") from exc
    unit_price = parse_decimal(parts[2]) if len(parts) == 3 and parts[2] else None
    return ItemArgument(product_id=parts[0], quantity=quantity, unit_price=unit_price)


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="nexus-cli",
        description="Command-line tools for the Nexus Shop workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the current directory by default).",
    )
    parser.add_argument("--email", default=None, help="Sign in with this account before running the command.")
    parser.add_argument(
        "--password",
        default=os.environ.get("NEXUS_SHOP_PASSWORD"),
        help="Account password (defaults to $NEXUS_SHOP_PASSWORD).",
    )
    parser.add_argument(
        "--login-as",
        choices=[member.value for member in Role],
        default=None,
        help="Entry point to sign in through; admins are accepted by both.",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and catalog edits."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "delete-product": register_delete_product_command(subparsers),
        "sale": register_sale_command(subparsers),
        "pay-due": register_pay_due_command(subparsers),
        "add-employee": register_add_employee_command(subparsers),
        "delete-employee": register_delete_employee_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports."""
    specs = {
        "products": register_products_command(subparsers),
        "sales": register_sales_command(subparsers),
        "metrics": register_metrics_command(subparsers),
        "dashboard": register_dashboard_command(subparsers),
        "dues": register_dues_command(subparsers),
        "taxonomy": register_taxonomy_command(subparsers),
        "employees": register_employees_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_product_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--category", required=required)
    parser.add_argument("--brand", required=required)
    parser.add_argument("--model", dest="model_name", required=required)
    parser.add_argument("--price", type=parse_decimal, required=required, help="Buying price per unit.")
    parser.add_argument("--quantity", type=int, default=None)
    parser.add_argument("--description", default=None)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Add a product to the catalog (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_product_fields(parser, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""
    name = "update-product"
    help_text = "Edit an existing product; omitted fields keep their value (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        _add_product_fields(parser, required=False)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_product)


def register_delete_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-product``."""
    name = "delete-product"
    help_text = "Remove a product from the catalog (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_product)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale of one or more items."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer", dest="customer_name", required=True)
        parser.add_argument("--phone", dest="customer_phone", default=None)
        parser.add_argument("--date", dest="sale_date", type=parse_date, default=None, help="Defaults to today.")
        parser.add_argument(
            "--item",
            dest="items",
            type=parse_item,
            action="append",
            default=[],
            metavar="PRODUCT_ID:QTY:PRICE",
            help="Line item; repeat for several products.",
        )
        parser.add_argument("--paid", dest="paid_amount", type=parse_decimal, default=None)
        parser.add_argument("--due", dest="due_amount", type=parse_decimal, default=None)
        parser.add_argument("--commitment-date", type=parse_date, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_pay_due_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``pay-due``."""
    name = "pay-due"
    help_text = "Collect a payment against a sale's outstanding due."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--sale-id", required=True)
        parser.add_argument("--amount", type=parse_decimal, required=True)
        parser.add_argument("--commitment-date", type=parse_date, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_pay_due)


def register_add_employee_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-employee``."""
    name = "add-employee"
    help_text = "Create a staff account (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", dest="employee_name", required=True)
        parser.add_argument("--employee-email", required=True)
        parser.add_argument("--employee-password", required=True)
        parser.add_argument("--role", choices=[member.value for member in Role], default=Role.EMPLOYEE.value)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_employee)


def register_delete_employee_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete-employee``."""
    name = "delete-employee"
    help_text = "Remove a staff account (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--employee-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_employee)


def register_products_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``products``."""
    name = "products"
    help_text = "List the catalog with stock status."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--category", default=None)
        parser.add_argument("--brand", default=None)
        parser.add_argument("--status", choices=[member.value for member in StockStatus], default=None)
        parser.add_argument("--search", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_products_report)


def register_sales_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sales``."""
    name = "sales"
    help_text = "Display sale history with revenue and profit totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--date", dest="day", type=parse_date, default=None)
        parser.add_argument("--category", default=None)
        parser.add_argument("--brand", default=None)
        parser.add_argument("--status", choices=[member.value for member in PaymentStatus], default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sales_report)


def register_metrics_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``metrics``."""
    name = "metrics"
    help_text = "Display monthly units, orders, revenue, and profit."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--year", type=int, default=None, help="Restrict to one year (default: all years).")
        parser.add_argument("--month", choices=MONTHS, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_metrics_report)


def register_dashboard_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dashboard``."""
    name = "dashboard"
    help_text = "Display today's figures, the current month, and inventory."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--today", type=parse_date, default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_dashboard_report)


def register_dues_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``dues``."""
    name = "dues"
    help_text = "Display sales with money still owed."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_dues_report)


def register_taxonomy_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``taxonomy``."""
    name = "taxonomy"
    help_text = "Display known categories, brands, and models."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--category", default=None, help="Narrow brand and model suggestions.")
        parser.add_argument("--brand", default=None, help="Narrow model suggestions.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_taxonomy_report)


def register_employees_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``employees``."""
    name = "employees"
    help_text = "List staff accounts (admin)."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_employees_report)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    context = core_logic.load_runtime_context(config_path)
    core_logic.ensure_schema_version(context)
    return context


def sign_in(context: core_logic.RuntimeContext, args: argparse.Namespace) -> None:
    """Attach a session when ``--email`` was supplied."""
    email = getattr(args, "email", None)
    if not email:
        return
    password = getattr(args, "password", None)
    if not password:
        raise AuthenticationError("A password is required to sign in")
    login_as = getattr(args, "login_as", None)
    core_logic.login(context, email, password, required_role=Role(login_as) if login_as else None)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_add_product(args: argparse.Namespace) -> core_logic.ProductCommand:
    """Translate CLI args into a product command object."""
    return core_logic.ProductCommand(
        category=args.category,
        brand=args.brand,
        model_name=args.model_name,
        price=args.price,
        quantity=args.quantity if args.quantity is not None else 0,
        description=args.description,
    )


def translate_update_product(args: argparse.Namespace, current: ProductRow) -> core_logic.ProductCommand:
    """Overlay the supplied CLI args on the product's current values."""

    def pick(name: str, fallback: object) -> object:
        value = getattr(args, name, None)
        return fallback if value is None else value

    return core_logic.ProductCommand(
        category=pick("category", current.category),
        brand=pick("brand", current.brand),
        model_name=pick("model_name", current.model_name),
        price=pick("price", current.price),
        quantity=pick("quantity", current.quantity),
        description=pick("description", current.description),
    )


def translate_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> core_logic.SaleCommand:
    """Build a cart from the ``--item`` arguments and wrap it in a sale command.

    Each item goes through the cart's validation, so an unknown product, a
    bad quantity, or a price below cost fails before anything is committed.
    """
    cart = core_logic.new_cart(context)
    for item in args.items:
        cart.add_line(item.product_id, item.quantity, item.unit_price)
    return core_logic.SaleCommand(
        customer_name=args.customer_name,
        customer_phone=args.customer_phone,
        sale_date=args.sale_date or date.today(),
        lines=cart.lines,
        paid_amount=args.paid_amount,
        due_amount=args.due_amount,
        commitment_date=args.commitment_date,
    )


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow in the BLL."""
    product = core_logic.add_product(context, translate_add_product(args))
    print(f"Added product {product.product_id}: {product.brand} {product.model_name}")
    return 0


def run_update_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow in the BLL."""
    current = core_logic.get_product(context, args.product_id)
    product = core_logic.update_product(context, args.product_id, translate_update_product(args, current))
    print(f"Updated product {product.product_id}")
    return 0


def run_delete_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_product(context, args.product_id)
    print(f"Deleted product {args.product_id}")
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow via the BLL."""
    sale = core_logic.record_sale(context, translate_sale(context, args))
    print(
        f"Recorded sale {sale.sale_id}: total {sale.total_amount}, "
        f"paid {sale.paid_amount}, due {sale.due_amount}"
    )
    return 0


def run_pay_due(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the due payment workflow via the BLL."""
    sale = core_logic.apply_payment(context, args.sale_id, args.amount, args.commitment_date)
    print(f"Sale {sale.sale_id}: paid {sale.paid_amount}, due {sale.due_amount}")
    return 0


def run_add_employee(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    employee = core_logic.add_employee(
        context,
        name=args.employee_name,
        email=args.employee_email,
        password=args.employee_password,
        role=Role(args.role),
    )
    print(f"Added {employee.role} {employee.employee_id}: {employee.email}")
    return 0


def run_delete_employee(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_employee(context, args.employee_id)
    print(f"Deleted employee {args.employee_id}")
    return 0


def run_products_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the filtered catalog and an inventory summary."""
    threshold = context.settings.low_stock_threshold
    products = metrics.filter_products(
        core_logic.list_products(context),
        category=args.category,
        brand=args.brand,
        status=StockStatus(args.status) if args.status else None,
        search=args.search,
        low_stock_threshold=threshold,
    )
    for product in products:
        status = metrics.stock_status(product.quantity, threshold)
        print(
            f"{product.product_id}\t{product.category}\t{product.brand}\t{product.model_name}\t"
            f"{product.price}\t{product.quantity}\t{status.value}"
        )
    summary = metrics.summarize_inventory(products)
    print(
        f"{summary.product_count} products, {summary.total_items} units, "
        f"stock value {summary.total_stock_value}, {summary.out_of_stock_count} out of stock"
    )
    return 0


def _print_sale(sale: SaleRow) -> None:
    state = PaymentStatus.PAID if metrics.is_fully_paid(sale) else PaymentStatus.DUE
    print(
        f"{sale.sale_id}\t{sale.sale_date.isoformat()}\t{sale.customer_name}\t"
        f"{sale.total_amount}\t{sale.paid_amount}\t{sale.due_amount}\t{state.value}"
    )
    for item in sale.items:
        print(f"    {item.quantity} x {item.brand} {item.product_name} @ {item.unit_price}")


def run_sales_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the filtered sale history with revenue and profit totals."""
    sales = metrics.filter_sales(
        core_logic.list_sales(context),
        day=args.day,
        category=args.category,
        brand=args.brand,
        status=PaymentStatus(args.status) if args.status else None,
    )
    for sale in sales:
        _print_sale(sale)
    totals = metrics.compute_filtered_totals(sales)
    print(f"{len(sales)} sales, revenue {totals.revenue}, profit {totals.profit}")
    return 0


def run_metrics_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print monthly metrics, optionally for a single month."""
    monthly = core_logic.monthly_metrics(context, year=args.year)
    selected = [metrics.metric_for_month(monthly, args.month)] if args.month else list(monthly.values())
    print("Month\tUnits\tOrders\tRevenue\tProfit")
    for metric in selected:
        print(
            f"{metric.month}\t{metric.total_sales}\t{metric.total_orders}\t"
            f"{metric.revenue}\t{metric.total_profit}"
        )
    return 0


def run_dashboard_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the day's figures, month-to-date totals, and stock overview."""
    today = args.today or date.today()
    sales = core_logic.list_sales(context)
    products = core_logic.list_products(context)

    daily = metrics.compute_daily_stats(sales, today)
    print(f"{today.isoformat()}: {daily.total_sales} units, revenue {daily.revenue}, profit {daily.total_profit}")

    month = metrics.compute_filtered_totals(metrics.current_month_sales(sales, today))
    print(f"{MONTHS[today.month - 1]} {today.year}: revenue {month.revenue}, profit {month.profit}")

    summary = metrics.summarize_inventory(products)
    print(f"Inventory: {summary.total_items} units in {summary.product_count} products")

    print("Top sellers:")
    for entry in metrics.sold_items_breakdown(sales)[:10]:
        print(f"    {entry.quantity}\t{entry.brand} {entry.name} ({entry.category})")

    print("Stock by category:")
    for entry in metrics.category_stock(products):
        brands = ", ".join(f"{brand} {count}" for brand, count in entry.brands.items())
        print(f"    {entry.name}\t{entry.total}\t{brands}")
    return 0


def run_dues_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print outstanding dues, earliest commitment date first."""
    dues = core_logic.outstanding_dues(context)
    for sale in dues:
        promised = sale.commitment_date.isoformat() if sale.commitment_date else "-"
        print(f"{sale.sale_id}\t{sale.customer_name}\t{sale.customer_phone or '-'}\t{sale.due_amount}\t{promised}")
    total = sum((sale.due_amount for sale in dues), Decimal("0"))
    print(f"{len(dues)} sales owing {total}")
    return 0


def run_taxonomy_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    taxonomy = core_logic.get_taxonomy(context)
    products = core_logic.list_products(context)
    print("Categories: " + ", ".join(taxonomy.categories))
    print("Brands: " + ", ".join(brands_for_category(products, args.category, taxonomy.brands)))
    print("Models: " + ", ".join(models_for(products, args.category, args.brand, taxonomy.models)))
    return 0


def run_employees_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for employee in core_logic.list_employees(context):
        print(f"{employee.employee_id}\t{employee.name}\t{employee.email}\t{employee.role}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, ValidationError):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    if isinstance(error, ConsistencyError):
        log.error("%s", error)
        return 4
    if isinstance(error, StorageError):
        log.error("%s", error)
        return 5
    if isinstance(error, (AuthenticationError, PermissionDeniedError)):
        log.error("%s", error)
        return 6
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        sign_in(context, args)
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
