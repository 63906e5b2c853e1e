from decimal import Decimal

import pytest

from conftest import build_book
from library_borrowing.errors import ConstraintKind, ConstraintViolation, EntityNotFound
from library_borrowing.models import BookStatus


def test_create_and_find(book_dao, make_book):
    book = make_book(3, price=Decimal("75000.00"))

    assert book.book_id is not None
    assert book.total_copies == 3
    assert book.available_copies == 3
    assert book.price == Decimal("75000")

    assert book_dao.find_by_id(book.book_id) == book
    assert book_dao.find_by_isbn(book.isbn).book_id == book.book_id
    assert book_dao.find_by_id(999999) is None


def test_find_all_and_search_by_title(book_dao, make_book):
    make_book(title="Bumi Manusia")
    make_book(title="Anak Semua Bangsa")
    make_book(title="Cantik Itu Luka")

    assert [b.title for b in book_dao.find_all()] == ["Anak Semua Bangsa", "Bumi Manusia", "Cantik Itu Luka"]
    assert [b.title for b in book_dao.search_by_title("Manusia")] == ["Bumi Manusia"]
    assert book_dao.search_by_title("Tidak Ada") == []


def test_update(book_dao, make_book):
    book = make_book()
    book.title = "Judul Baru"
    book.status = BookStatus.DAMAGED

    updated = book_dao.update(book)
    assert updated.title == "Judul Baru"
    assert updated.status is BookStatus.DAMAGED


def test_update_missing_book(book_dao):
    ghost = build_book()
    ghost.book_id = 999999
    with pytest.raises(EntityNotFound):
        book_dao.update(ghost)


def test_decrease_and_increase_available_copies(book_dao, make_book):
    book = make_book(2)

    assert book_dao.decrease_available_copies(book.book_id) is True
    assert book_dao.decrease_available_copies(book.book_id) is True
    assert book_dao.find_by_id(book.book_id).available_copies == 0

    # Guarded: never goes below zero
    assert book_dao.decrease_available_copies(book.book_id) is False
    assert book_dao.find_by_id(book.book_id).available_copies == 0

    assert book_dao.increase_available_copies(book.book_id) is True
    assert book_dao.find_by_id(book.book_id).available_copies == 1


def test_increase_beyond_total_is_rejected(book_dao, make_book):
    book = make_book(1)
    with pytest.raises(ConstraintViolation) as excinfo:
        book_dao.increase_available_copies(book.book_id)
    assert excinfo.value.rule == "check_available_copies"
    assert book_dao.find_by_id(book.book_id).available_copies == 1


def test_copy_counters_on_missing_book(book_dao):
    assert book_dao.decrease_available_copies(999999) is False
    assert book_dao.increase_available_copies(999999) is False
    assert book_dao.update_available_copies(999999, 1) is False


def test_update_available_copies(book_dao, make_book):
    book = make_book(5)
    assert book_dao.update_available_copies(book.book_id, 3) is True
    assert book_dao.find_by_id(book.book_id).available_copies == 3


def test_delete_unreferenced_book(book_dao):
    book = book_dao.create(build_book())
    assert book_dao.delete(book.book_id) is True
    assert book_dao.find_by_id(book.book_id) is None
    assert book_dao.delete(book.book_id) is False


def test_delete_referenced_by_returned_borrowing_is_still_rejected(book_dao, service, make_user, make_book):
    user = make_user()
    book = make_book(1)
    borrowing = service.borrow_book(user.user_id, book.book_id, 7)
    service.return_book(borrowing.borrowing_id)

    with pytest.raises(ConstraintViolation) as excinfo:
        book_dao.delete(book.book_id)
    assert excinfo.value.kind is ConstraintKind.FOREIGN_KEY
    assert excinfo.value.rule == "borrowings.book_id"
