"""Utility for initializing the Nexus Shop master workbook.

The module doubles as a script (``nexus-setup``) and as a library used by
tests or other tooling. It writes the four sheets with bold headers and seeds
the first admin account so somebody can sign in and build the catalog.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence

import openpyxl
from openpyxl.styles import Font

from . import data_manager, log
from .auth import hash_password
from .constants import EXPECTED_SCHEMA_VERSION, SHEET_COLUMNS, Role, SheetName
from .exceptions import StorageError

CONFIG_FILE = "config.ini"

DEFAULT_ADMIN_EMAIL = "admin@nexus.local"
DEFAULT_ADMIN_NAME = "Administrator"


@dataclass(frozen=True)
class SetupSettings:
    """Type-safe representation of configuration values used during setup."""

    data_file: Path
    admin_email: str
    admin_name: str


def load_settings(config_path: Path) -> SetupSettings:
    """Read ``config.ini`` and produce :class:`SetupSettings`.

    Relative paths inside the config file are resolved against the config
    file's directory. ``[Defaults]`` entries are optional.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        KeyError: If a ``[System]`` entry is missing.
    """

    parser = data_manager.read_config(config_path)
    settings = data_manager.parse_settings(parser, base_path=config_path.expanduser().resolve().parent)
    if settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.warning(
            "config.ini declares schema %s; the workbook is created as %s",
            settings.schema_version,
            EXPECTED_SCHEMA_VERSION,
        )
    return SetupSettings(
        data_file=settings.data_file,
        admin_email=settings.admin_email or DEFAULT_ADMIN_EMAIL,
        admin_name=settings.admin_name or DEFAULT_ADMIN_NAME,
    )


def create_master_workbook(
    destination: Path,
    *,
    admin_email: str,
    admin_name: str,
    admin_password: str,
    sheet_columns: Mapping[str, Sequence[str]] = SHEET_COLUMNS,
    overwrite: bool = False,
    created_at: Optional[datetime] = None,
) -> Path:
    """Create the Nexus Shop master workbook at ``destination``.

    When ``overwrite`` is ``False`` (the default) this function raises
    ``FileExistsError`` if the target already exists.

    Args:
        destination (Path): Where to write the workbook.
        admin_email (str): Login of the seeded admin account.
        admin_name (str): Display name of the seeded admin account.
        admin_password (str): Plain-text password, stored hashed.
        sheet_columns (Mapping[str, Sequence[str]]): Sheet layout.
        overwrite (bool): Replace an existing file.
        created_at (datetime | None): Creation instant for the admin row.

    Returns:
        Path: The resolved destination.

    Raises:
        FileExistsError: If the file exists and ``overwrite`` is ``False``.
        ValueError: If ``admin_password`` is empty.
    """

    if not admin_password:
        raise ValueError("An admin password is required")

    destination = destination.expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing master workbook: {destination}"
        )

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()

    # Drop the default sheet openpyxl generates.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)

    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font

    created_at = created_at or datetime.now(UTC)
    admin = data_manager.EmployeeRow(
        employee_id=f"E{created_at.strftime('%Y%m%d%H%M%S%f')}",
        name=admin_name,
        email=admin_email,
        password_hash=hash_password(admin_password),
        role=Role.ADMIN.value,
        created_at=created_at.isoformat(),
    )
    workbook[SheetName.EMPLOYEES.value].append(data_manager.serialize_employee(admin))

    data_manager.save_workbook(workbook, destination)
    log.info("Created master workbook '%s' with admin '%s'", destination, admin_email)
    return destination


def run_from_config(config_path: Path, *, admin_password: str, overwrite: bool = False) -> Path:
    """Create the workbook named by ``config.ini``."""

    settings = load_settings(config_path)
    return create_master_workbook(
        settings.data_file,
        admin_email=settings.admin_email,
        admin_name=settings.admin_name,
        admin_password=admin_password,
        overwrite=overwrite,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(prog="nexus-setup", description="Initialize the Nexus Shop data file")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--admin-password",
        required=True,
        help="Password for the initial admin account.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Nexus Shop Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, admin_password=args.admin_password, overwrite=args.force)
    except FileNotFoundError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except (KeyError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (PermissionError, OSError, StorageError) as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created master workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
