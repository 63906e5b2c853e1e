import pytest

from conftest import build_user
from library_borrowing.errors import EntityNotFound
from library_borrowing.models import User, UserRole, UserStatus


def test_create_and_find_by_id(user_dao, make_user):
    user = make_user(full_name="Siti Rahma", role=UserRole.LIBRARIAN)

    assert user.user_id is not None
    assert user.created_at is not None
    assert user.updated_at is not None

    found = user_dao.find_by_id(user.user_id)
    assert found == user
    assert found.role is UserRole.LIBRARIAN
    assert found.status is UserStatus.ACTIVE


def test_find_by_username_and_email(user_dao, make_user):
    user = make_user()
    assert user_dao.find_by_username(user.username).user_id == user.user_id
    assert user_dao.find_by_email(user.email).user_id == user.user_id
    assert user_dao.find_by_username("nobody") is None


def test_find_by_id_not_found(user_dao):
    assert user_dao.find_by_id(999999) is None


def test_find_all(user_dao, make_user):
    first = make_user()
    second = make_user()
    assert [u.user_id for u in user_dao.find_all()] == [first.user_id, second.user_id]


def test_update(user_dao, make_user):
    user = make_user()
    user.full_name = "Nama Baru"
    user.status = UserStatus.INACTIVE

    updated = user_dao.update(user)
    assert updated.full_name == "Nama Baru"
    assert updated.status is UserStatus.INACTIVE
    assert user_dao.find_by_id(user.user_id).full_name == "Nama Baru"


def test_update_missing_user(user_dao):
    ghost = build_user()
    ghost.user_id = 999999
    with pytest.raises(EntityNotFound):
        user_dao.update(ghost)


def test_update_requires_id(user_dao):
    with pytest.raises(ValueError):
        user_dao.update(User(username="x", email="x@example.com"))


def test_delete(user_dao):
    user = user_dao.create(build_user())
    assert user_dao.delete(user.user_id) is True
    assert user_dao.find_by_id(user.user_id) is None
    assert user_dao.delete(user.user_id) is False
