"""Racing borrowers on the same book must never push the copy counter below zero."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from library_borrowing.errors import ValidationStateError
from library_borrowing.services.borrowing_service import BorrowingService

pytestmark = pytest.mark.integration


def test_last_copy_goes_to_exactly_one_borrower(db_file, book_dao, borrowing_dao, make_user, make_book):
    book = make_book(2)
    users = [make_user() for _ in range(6)]

    def attempt(user_id):
        # A service per thread; every call opens its own connection
        service = BorrowingService(db_file=db_file)
        try:
            service.borrow_book(user_id, book.book_id, 14)
            return "ok"
        except ValidationStateError:
            return "rejected"

    with ThreadPoolExecutor(max_workers=len(users)) as pool:
        outcomes = list(pool.map(attempt, [u.user_id for u in users]))

    assert outcomes.count("ok") == 2
    assert outcomes.count("rejected") == 4
    assert book_dao.find_by_id(book.book_id).available_copies == 0
    assert sum(borrowing_dao.count_active_borrowings_by_user(u.user_id) for u in users) == 2
