"""Unit tests for credential checks and role gating."""

from __future__ import annotations

import bcrypt
import pytest

from nexus_shop import auth
from nexus_shop.constants import Role
from nexus_shop.data_manager import EmployeeRow
from nexus_shop.exceptions import AuthenticationError, PermissionDeniedError


def _employee(employee_id: str, email: str, password: str, role: Role) -> EmployeeRow:
    return EmployeeRow(
        employee_id=employee_id,
        name=email.split("@")[0],
        email=email,
        password_hash=auth.hash_password(password, rounds=4),
        role=role.value,
        created_at="2024-01-01T00:00:00+00:00",
    )


@pytest.fixture
def employees():
    return [
        _employee("E1", "boss@shop.test", "boss-pass", Role.ADMIN),
        _employee("E2", "clerk@shop.test", "clerk-pass", Role.EMPLOYEE),
    ]


def test_hash_password_is_salted_and_verifiable():
    first = auth.hash_password("secret")
    second = auth.hash_password("secret")

    assert first != second
    assert auth.verify_password("secret", first)
    assert not auth.verify_password("wrong", first)
    assert not auth.verify_password("secret", "not-a-hash")
    assert not auth.verify_password("secret", "")


def test_hash_password_stores_bcrypt_text_at_configured_cost():
    stored = auth.hash_password("secret", rounds=5)

    assert stored.startswith("$2b$05$")
    assert bcrypt.checkpw(b"secret", stored.encode("utf-8"))


def test_authenticate_matches_email_case_insensitively(employees):
    session = auth.authenticate(employees, "Clerk@Shop.test", "clerk-pass")

    assert session.user_id == "E2"
    assert session.role is Role.EMPLOYEE


def test_authenticate_rejects_bad_password(employees):
    with pytest.raises(AuthenticationError):
        auth.authenticate(employees, "clerk@shop.test", "nope")


def test_admin_is_accepted_through_the_employee_entry_point(employees):
    session = auth.authenticate(employees, "boss@shop.test", "boss-pass", required_role=Role.EMPLOYEE)

    assert session.role is Role.ADMIN


def test_employee_is_refused_through_the_admin_entry_point(employees):
    with pytest.raises(AuthenticationError):
        auth.authenticate(employees, "clerk@shop.test", "clerk-pass", required_role=Role.ADMIN)


def test_require_role_gates_operations(employees):
    clerk = auth.authenticate(employees, "clerk@shop.test", "clerk-pass")

    assert auth.require_role(clerk, *auth.SALES_ROLES) is clerk
    with pytest.raises(PermissionDeniedError):
        auth.require_role(clerk, *auth.CATALOG_ROLES)
    with pytest.raises(PermissionDeniedError):
        auth.require_role(None, *auth.SALES_ROLES)
