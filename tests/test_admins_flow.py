from concurrent.futures import ThreadPoolExecutor

import pytest

from oppboard.admins import AdminRegistry
from oppboard.db import Database
from oppboard.errors import AuthorizationError, NotFoundError, ValidationError


@pytest.fixture()
def registry(database: Database) -> AdminRegistry:
    return AdminRegistry(database)


def test_add_registers_active_admin(registry) -> None:
    admin_id = registry.add("Curator@Example.com", "Curator")

    assert registry.is_admin("curator@example.com")
    [admin] = registry.list()
    assert admin.id == admin_id
    assert admin.email == "curator@example.com"
    assert admin.role == "admin"
    assert admin.is_active is True
    assert admin.last_login is None


def test_unknown_email_is_not_admin(registry) -> None:
    assert not registry.is_admin("nobody@example.com")
    with pytest.raises(AuthorizationError):
        registry.authorize("nobody@example.com")


def test_deactivate_is_soft_and_readd_reactivates(registry, database: Database) -> None:
    admin_id = registry.add("curator@example.com", "Curator")

    registry.deactivate(admin_id)
    assert not registry.is_admin("curator@example.com")
    assert database.count("admins") == 1

    assert registry.add("curator@example.com", "Someone Else") == admin_id
    assert registry.is_admin("curator@example.com")
    assert database.count("admins") == 1
    assert registry.list()[0].name == "Curator"


def test_deactivate_unknown_admin_raises(registry) -> None:
    with pytest.raises(NotFoundError):
        registry.deactivate("missing")


def test_add_validates_email_and_role(registry) -> None:
    with pytest.raises(ValidationError):
        registry.add("not-an-email", "X")
    with pytest.raises(ValidationError):
        registry.add("x@example.com", "X", role="owner")


def test_record_login_stamps_last_login(registry) -> None:
    registry.add("curator@example.com", "Curator", role="editor")

    registry.record_login("curator@example.com")
    registry.record_login("stranger@example.com")

    admin = registry.get_by_email("curator@example.com")
    assert admin.last_login is not None
    assert admin.role == "editor"


def test_concurrent_adds_share_one_record(registry, database: Database) -> None:
    with ThreadPoolExecutor(max_workers=4) as pool:
        ids = list(pool.map(lambda _: registry.add("curator@example.com", "Curator"), range(8)))

    assert len(set(ids)) == 1
    assert database.count("admins") == 1
    assert registry.is_admin("curator@example.com")
