import logging
import sqlite3
from datetime import timedelta
from typing import Optional

from library_borrowing.config import settings
from library_borrowing.dao import BookDAO, BorrowingDAO, UserDAO
from library_borrowing.database import transaction
from library_borrowing.errors import ConstraintViolation, EntityNotFound, TransactionFailure, ValidationStateError
from library_borrowing.models import Borrowing, BorrowingStatus, utcnow


# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

USER_NOT_ACTIVE = "User account tidak active"
NO_COPIES_AVAILABLE = "Tidak ada kopi yang tersedia"
ALREADY_RETURNED = "Buku sudah dikembalikan"

# Upper bound on a single loan, in days
MAX_LOAN_DAYS = 3650


class BorrowingService:
    """Borrow and return books.

    Each call is one unit of work: the precondition checks, the copy counter
    update and the borrowing row write share a single write transaction, so
    either all of them become visible or none do. Failed preconditions raise
    ``ValidationStateError`` before anything is written.
    """

    def __init__(self, user_dao: Optional[UserDAO] = None, book_dao: Optional[BookDAO] = None,
                 borrowing_dao: Optional[BorrowingDAO] = None, db_file: Optional[str] = None,
                 max_active_borrowings: Optional[int] = None) -> None:
        self.user_dao = user_dao or UserDAO(db_file)
        self.book_dao = book_dao or BookDAO(db_file)
        self.borrowing_dao = borrowing_dao or BorrowingDAO(db_file)
        self.db_file = db_file if db_file is not None else self.book_dao.db_file
        if max_active_borrowings is None:
            max_active_borrowings = settings.max_active_borrowings
        self.max_active_borrowings = max_active_borrowings

    def borrow_book(self, user_id: int, book_id: int, days: Optional[int] = None) -> Borrowing:
        """Lend one copy of ``book_id`` to ``user_id`` for ``days`` days."""
        if days is None:
            days = settings.default_loan_days
        if days <= 0:
            raise ValueError("Loan duration must be a positive number of days.")
        if days > MAX_LOAN_DAYS:
            raise ValueError(f"Loan duration cannot exceed {MAX_LOAN_DAYS} days.")

        with transaction(self.db_file) as conn:
            user = self.user_dao.find_by_id(user_id, conn=conn)
            if user is None:
                raise EntityNotFound(f"User {user_id} tidak ditemukan")
            if not user.is_active:
                logger.warning(f"Borrow rejected: user {user_id} is {user.status.value}")
                raise ValidationStateError(USER_NOT_ACTIVE)

            book = self.book_dao.find_by_id(book_id, conn=conn)
            if book is None:
                raise EntityNotFound(f"Buku {book_id} tidak ditemukan")
            if book.available_copies <= 0:
                logger.warning(f"Borrow rejected: book {book_id} has no available copies")
                raise ValidationStateError(NO_COPIES_AVAILABLE)

            active = self.borrowing_dao.count_active_borrowings_by_user(user_id, conn=conn)
            if active >= self.max_active_borrowings:
                logger.warning(f"Borrow rejected: user {user_id} has {active} active borrowings")
                raise ValidationStateError(
                    f"User sudah mencapai batas peminjaman: {self.max_active_borrowings}"
                )

            # The write lock is held, so the count read above cannot change underneath us
            if not self.book_dao.decrease_available_copies(book_id, conn=conn):
                raise ValidationStateError(NO_COPIES_AVAILABLE)

            now = utcnow()
            try:
                borrowing = self.borrowing_dao.create(
                    Borrowing(
                        user_id=user_id,
                        book_id=book_id,
                        borrow_date=now,
                        due_date=now + timedelta(days=days),
                        status=BorrowingStatus.BORROWED,
                    ),
                    conn=conn,
                )
            except (sqlite3.Error, ConstraintViolation) as e:
                logger.error(f"Borrow of book {book_id} by user {user_id} failed, rolling back: {e}")
                raise TransactionFailure(f"Peminjaman gagal dan dibatalkan: {e}") from e

        logger.info(
            f"Book {book_id} borrowed by user {user_id}: borrowing={borrowing.borrowing_id}, "
            f"due={borrowing.due_date}"
        )
        return borrowing

    def return_book(self, borrowing_id: int) -> bool:
        """Close an active borrowing and put the copy back on the shelf."""
        with transaction(self.db_file) as conn:
            borrowing = self.borrowing_dao.find_by_id(borrowing_id, conn=conn)
            if borrowing is None:
                raise EntityNotFound(f"Peminjaman {borrowing_id} tidak ditemukan")
            if borrowing.is_returned:
                logger.warning(f"Return rejected: borrowing {borrowing_id} already returned")
                raise ValidationStateError(ALREADY_RETURNED)

            try:
                if not self.borrowing_dao.mark_returned(borrowing_id, utcnow(), conn=conn):
                    raise ValidationStateError(ALREADY_RETURNED)
                if not self.book_dao.increase_available_copies(borrowing.book_id, conn=conn):
                    raise EntityNotFound(f"Buku {borrowing.book_id} tidak ditemukan")
            except (sqlite3.Error, ConstraintViolation) as e:
                logger.error(f"Return of borrowing {borrowing_id} failed, rolling back: {e}")
                raise TransactionFailure(f"Pengembalian gagal dan dibatalkan: {e}") from e

        logger.info(f"Borrowing {borrowing_id} returned, book {borrowing.book_id} back on the shelf")
        return True
