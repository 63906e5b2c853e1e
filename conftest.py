import itertools
import os

import pytest

from library_borrowing import database
from library_borrowing.dao import BookDAO, BorrowingDAO, UserDAO
from library_borrowing.models import Book, BookStatus, User, UserRole, UserStatus
from library_borrowing.services.borrowing_service import BorrowingService

_sequence = itertools.count(1)


@pytest.fixture
def db_file(tmp_path, request):
    # A fresh database file for every test
    path = str(tmp_path / f"test_{request.node.name}.db")
    database.initialize_database(path)
    yield path
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.remove(path + suffix)


@pytest.fixture
def user_dao(db_file):
    return UserDAO(db_file)


@pytest.fixture
def book_dao(db_file):
    return BookDAO(db_file)


@pytest.fixture
def borrowing_dao(db_file):
    return BorrowingDAO(db_file)


@pytest.fixture
def service(user_dao, book_dao, borrowing_dao, db_file):
    return BorrowingService(user_dao, book_dao, borrowing_dao, db_file=db_file, max_active_borrowings=5)


def build_user(**overrides) -> User:
    n = next(_sequence)
    fields = dict(
        username=f"user.{n}",
        email=f"user{n}@perpustakaan.test",
        full_name=f"Anggota Uji {n}",
        phone=f"0812{n:08d}",
        role=UserRole.MEMBER,
        status=UserStatus.ACTIVE,
    )
    fields.update(overrides)
    return User(**fields)


def build_book(total_copies: int = 5, **overrides) -> Book:
    n = next(_sequence)
    fields = dict(
        isbn=f"978id{n:08d}",
        title=f"Buku Uji {n}",
        author_id=1,
        publisher_id=1,
        category_id=1,
        publication_year=2023,
        pages=300,
        language="Indonesia",
        description="Buku untuk pengujian",
        total_copies=total_copies,
        available_copies=total_copies,
        location="Rak Uji",
        status=BookStatus.AVAILABLE,
    )
    fields.update(overrides)
    return Book(**fields)


@pytest.fixture
def make_user(user_dao, make_book):
    """Create users in the database; the fixture deletes them (and their borrowings) afterwards.

    Depends on make_book so that users are torn down first and no borrowing
    still references a book when the books go.
    """
    created = []

    def _make(**overrides) -> User:
        user = user_dao.create(build_user(**overrides))
        created.append(user.user_id)
        return user

    yield _make
    for user_id in created:
        user_dao.delete(user_id)


@pytest.fixture
def make_book(book_dao):
    """Create books in the database; the fixture deletes them afterwards."""
    created = []

    def _make(total_copies: int = 5, **overrides) -> Book:
        book = book_dao.create(build_book(total_copies, **overrides))
        created.append(book.book_id)
        return book

    yield _make
    for book_id in created:
        book_dao.delete(book_id)
