"""Credential checks and role gating.

Accounts live on the ``Employees`` sheet. Admins manage the catalog and
staff; employees may only record sales and collect dues.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import bcrypt

from . import log
from .constants import Role
from .data_manager import EmployeeRow
from .exceptions import AuthenticationError, PermissionDeniedError


BCRYPT_ROUNDS = 12

CATALOG_ROLES: tuple[Role, ...] = (Role.ADMIN,)
SALES_ROLES: tuple[Role, ...] = (Role.ADMIN, Role.EMPLOYEE)


@dataclass(frozen=True)
class Session:
    """The authenticated user attached to a runtime context."""

    user_id: str
    name: str
    email: str
    role: Role


def hash_password(password: str, *, rounds: Optional[int] = None) -> str:
    """Return the bcrypt hash of ``password`` as text for the workbook."""

    salt = bcrypt.gensalt(rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, stored: str) -> bool:
    if not stored:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash
        return False


def authenticate(
    employees: Iterable[EmployeeRow],
    email: str,
    password: str,
    *,
    required_role: Optional[Role] = None,
) -> Session:
    """Match credentials against the employee list and open a session.

    When ``required_role`` is given the account must hold that role, except
    that admins are accepted everywhere.

    Args:
        employees (Iterable[EmployeeRow]): Known accounts.
        email (str): Login email, compared case-insensitively.
        password (str): Plain-text password to verify.
        required_role (Role | None): Role demanded by the entry point.

    Returns:
        Session: The authenticated user.

    Raises:
        AuthenticationError: If no account matches or the role is refused.
    """

    wanted = email.strip().lower()
    for employee in employees:
        if employee.email.strip().lower() != wanted:
            continue
        if not verify_password(password, employee.password_hash):
            break
        try:
            role = Role(employee.role)
        except ValueError as exc:
            raise AuthenticationError(f"Account '{email}' has an unknown role") from exc
        if required_role is not None and role not in (required_role, Role.ADMIN):
            log.warning("Login refused for '%s': role '%s' is not '%s'", email, role.value, required_role.value)
            raise AuthenticationError(f"Account '{email}' is not allowed to sign in as {required_role.value}")
        log.info("User '%s' signed in as %s", email, role.value)
        return Session(user_id=employee.employee_id, name=employee.name, email=employee.email, role=role)

    log.warning("Login failed for '%s'", email)
    raise AuthenticationError("Invalid email or password")


def require_role(session: Optional[Session], *roles: Role) -> Session:
    """Return ``session`` when it holds one of ``roles``.

    Raises:
        PermissionDeniedError: If nobody is signed in or the role is refused.
    """

    if session is None:
        raise PermissionDeniedError("Sign in required")
    if session.role not in roles:
        log.warning("Permission denied for '%s' (role %s)", session.email, session.role.value)
        raise PermissionDeniedError(
            f"Role '{session.role.value}' may not perform this operation"
        )
    return session
