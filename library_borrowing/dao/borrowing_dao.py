import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

from library_borrowing.dao.base import BaseDAO
from library_borrowing.errors import ConstraintKind, ConstraintViolation, from_integrity_error
from library_borrowing.models import (
    Borrowing,
    BorrowingStatus,
    enum_value,
    format_timestamp,
    utcnow,
)

logger = logging.getLogger(__name__)

_COLUMNS = """
    borrowing_id, user_id, book_id, borrow_date, due_date, return_date, status,
    created_at, updated_at
"""


class BorrowingDAO(BaseDAO):
    """CRUD over the ``borrowings`` table.

    Creating a borrowing row does not touch the book's copy counter; that is
    the job of ``BorrowingService``, which wraps both writes in one
    transaction.
    """

    def create(self, borrowing: Borrowing, conn: Optional[sqlite3.Connection] = None) -> Borrowing:
        borrow_date = borrowing.borrow_date or utcnow()
        with self._session(conn) as db:
            try:
                cursor = db.execute(
                    """
                    INSERT INTO borrowings (user_id, book_id, borrow_date, due_date, return_date, status)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (borrowing.user_id, borrowing.book_id, format_timestamp(borrow_date),
                     format_timestamp(borrowing.due_date), format_timestamp(borrowing.return_date),
                     enum_value(borrowing.status))
                )
            except sqlite3.IntegrityError as e:
                raise self._explain(e, borrowing, db) from e
            created = self.find_by_id(cursor.lastrowid, conn=db)
        logger.debug(f"Borrowing created: id={created.borrowing_id} user={created.user_id} book={created.book_id}")
        return created

    @staticmethod
    def _explain(exc: sqlite3.IntegrityError, borrowing: Borrowing, db: sqlite3.Connection) -> ConstraintViolation:
        """Name the missing parent row; SQLite only says that some foreign key failed."""
        violation = from_integrity_error(exc)
        if violation.kind is not ConstraintKind.FOREIGN_KEY:
            return violation
        if db.execute("SELECT 1 FROM users WHERE user_id = ?", (borrowing.user_id,)).fetchone() is None:
            return from_integrity_error(exc, rule="borrowings.user_id")
        return from_integrity_error(exc, rule="borrowings.book_id")

    def find_by_id(self, borrowing_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Borrowing]:
        with self._session(conn) as db:
            row = db.execute(
                f"SELECT {_COLUMNS} FROM borrowings WHERE borrowing_id = ?", (borrowing_id,)
            ).fetchone()
            return Borrowing.from_row(row) if row else None

    def find_by_user(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> List[Borrowing]:
        with self._session(conn) as db:
            rows = db.execute(
                f"SELECT {_COLUMNS} FROM borrowings WHERE user_id = ? ORDER BY borrow_date DESC, borrowing_id DESC",
                (user_id,)
            ).fetchall()
            return [Borrowing.from_row(row) for row in rows]

    def find_active_by_user(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> List[Borrowing]:
        with self._session(conn) as db:
            rows = db.execute(
                f"SELECT {_COLUMNS} FROM borrowings WHERE user_id = ? AND status = ? ORDER BY due_date",
                (user_id, BorrowingStatus.BORROWED.value)
            ).fetchall()
            return [Borrowing.from_row(row) for row in rows]

    def find_overdue(self, now: Optional[datetime] = None,
                     conn: Optional[sqlite3.Connection] = None) -> List[Borrowing]:
        """Active borrowings whose due date has passed."""
        with self._session(conn) as db:
            rows = db.execute(
                f"SELECT {_COLUMNS} FROM borrowings WHERE status = ? AND due_date < ? ORDER BY due_date",
                (BorrowingStatus.BORROWED.value, format_timestamp(now or utcnow()))
            ).fetchall()
            return [Borrowing.from_row(row) for row in rows]

    def count_active_borrowings_by_user(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> int:
        with self._session(conn) as db:
            row = db.execute(
                "SELECT COUNT(*) FROM borrowings WHERE user_id = ? AND status = ?",
                (user_id, BorrowingStatus.BORROWED.value)
            ).fetchone()
            return row[0]

    def mark_returned(self, borrowing_id: int, return_date: Optional[datetime] = None,
                      conn: Optional[sqlite3.Connection] = None) -> bool:
        """Close an active borrowing. False if it does not exist or was already returned."""
        with self._session(conn) as db:
            cursor = db.execute(
                "UPDATE borrowings SET return_date = ?, status = ? WHERE borrowing_id = ? AND status = ?",
                (format_timestamp(return_date or utcnow()), BorrowingStatus.RETURNED.value,
                 borrowing_id, BorrowingStatus.BORROWED.value)
            )
            return cursor.rowcount > 0

    def delete(self, borrowing_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        with self._session(conn) as db:
            cursor = db.execute("DELETE FROM borrowings WHERE borrowing_id = ?", (borrowing_id,))
            return cursor.rowcount > 0
