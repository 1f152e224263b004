"""Shared pytest fixtures and utilities for Nexus Shop tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator
from unittest.mock import Mock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from nexus_shop import auth, cli, constants, core_logic, data_manager  # noqa: E402
from nexus_shop.auth import Session  # noqa: E402
from nexus_shop.constants import Role  # noqa: E402
from nexus_shop.setup_excel import create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-secret"
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "ShopName = {shop_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Policy]\n"
    "EnforceCostFloor = {enforce_cost_floor}\n"
    "LockTimeout = 2\n\n"
    "[Defaults]\n"
    "AdminEmail = {admin_email}\n"
    "AdminName = Test Admin\n"
)

ADMIN_SESSION = Session(user_id="E-ADMIN", name="Admin", email=ADMIN_EMAIL, role=Role.ADMIN)
EMPLOYEE_SESSION = Session(user_id="E-STAFF", name="Staff", email="staff@example.com", role=Role.EMPLOYEE)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    schema_version: str
    shop_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(autouse=True)
def _cheap_password_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep bcrypt at its minimum cost so seeded logins stay fast."""

    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized master workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        filename: str = "master_workbook.xlsx",
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(
            workbook_path,
            admin_email=ADMIN_EMAIL,
            admin_name="Test Admin",
            admin_password=ADMIN_PASSWORD,
            overwrite=True,
        )
        return workbook_path

    return _create_workbook


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        shop_name: str = "Test Shop",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        enforce_cost_floor: bool = True,
    ) -> ConfigBundle:
        bundle_dir_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_dir_name
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(subdir=bundle_dir_name)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                shop_name=shop_name,
                schema_version=schema_version,
                enforce_cost_floor="true" if enforce_cost_floor else "false",
                admin_email=ADMIN_EMAIL,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            schema_version=schema_version,
            shop_name=shop_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load a real runtime context signed in as the seeded admin."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    core_logic.login(context, ADMIN_EMAIL, ADMIN_PASSWORD)
    return context


def product_id_for(context: core_logic.RuntimeContext, model_name: str) -> str:
    return next(product.product_id for product in core_logic.list_products(context) if product.model_name == model_name)


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="nexus-cli", description="Nexus CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "master_workbook.xlsx",
        shop_name="Test Shop",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
    )


@pytest.fixture
def workbook() -> Mock:
    """Return a mock workbook object for business logic tests."""

    return Mock(name="workbook")


@pytest.fixture
def context(settings: data_manager.ConfigSettings, workbook: Mock) -> core_logic.RuntimeContext:
    """Assemble an admin runtime context from injected settings and workbook mocks."""

    return core_logic.RuntimeContext(settings=settings, workbook=workbook, session=ADMIN_SESSION)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


def make_product(
    product_id: str = "P1",
    *,
    category: str = "Phones",
    brand: str = "Acme",
    model_name: str = "A1",
    price: str = "100",
    quantity: int = 5,
) -> data_manager.ProductRow:
    return data_manager.ProductRow(
        product_id=product_id,
        category=category,
        brand=brand,
        model_name=model_name,
        price=Decimal(price),
        quantity=quantity,
    )


def make_item(
    product_id: str = "P1",
    *,
    quantity: int = 1,
    unit_price: str = "150",
    buying_price: str = "100",
    name: str = "A1",
    category: str = "Phones",
    brand: str = "Acme",
) -> data_manager.SaleItemRow:
    return data_manager.SaleItemRow(
        product_id=product_id,
        product_name=name,
        category=category,
        brand=brand,
        quantity=quantity,
        unit_price=Decimal(unit_price),
        buying_price=Decimal(buying_price),
        total=quantity * Decimal(unit_price),
    )


def make_sale(
    sale_id: str = "S1",
    *,
    items: tuple[data_manager.SaleItemRow, ...] | None = None,
    paid: str | None = None,
    due: str = "0",
    sale_date: date = date(2024, 3, 1),
    timestamp: datetime | None = None,
    commitment_date: date | None = None,
    customer_phone: str | None = None,
) -> data_manager.SaleRow:
    items = items if items is not None else (make_item(),)
    total = sum((item.total for item in items), Decimal("0"))
    due_amount = Decimal(due)
    paid_amount = Decimal(paid) if paid is not None else total - due_amount
    return data_manager.SaleRow(
        sale_id=sale_id,
        customer_name="Customer",
        customer_phone=customer_phone,
        sale_date=sale_date,
        timestamp=timestamp or datetime(sale_date.year, sale_date.month, sale_date.day, 12, tzinfo=UTC),
        items=items,
        total_amount=total,
        paid_amount=paid_amount,
        due_amount=due_amount,
        commitment_date=commitment_date,
    )
