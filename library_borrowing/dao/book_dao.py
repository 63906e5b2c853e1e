import logging
import sqlite3
from typing import List, Optional

from library_borrowing.dao.base import BaseDAO
from library_borrowing.errors import ConstraintKind, ConstraintViolation, EntityNotFound
from library_borrowing.models import Book, enum_value

logger = logging.getLogger(__name__)

_COLUMNS = """
    book_id, isbn, title, author_id, publisher_id, category_id, publication_year,
    pages, language, description, total_copies, available_copies, price, location,
    status, created_at, updated_at
"""


def _price(book: Book) -> Optional[str]:
    return str(book.price) if book.price is not None else None


class BookDAO(BaseDAO):
    """CRUD over the ``books`` table plus the copy counters."""

    def create(self, book: Book, conn: Optional[sqlite3.Connection] = None) -> Book:
        with self._session(conn) as db:
            cursor = db.execute(
                """
                INSERT INTO books (
                    isbn, title, author_id, publisher_id, category_id, publication_year,
                    pages, language, description, total_copies, available_copies,
                    price, location, status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (book.isbn, book.title, book.author_id, book.publisher_id, book.category_id,
                 book.publication_year, book.pages, book.language, book.description,
                 book.total_copies, book.available_copies, _price(book), book.location,
                 enum_value(book.status))
            )
            created = self.find_by_id(cursor.lastrowid, conn=db)
        logger.debug(f"Book created: id={created.book_id} isbn={created.isbn}")
        return created

    def find_by_id(self, book_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Book]:
        with self._session(conn) as db:
            row = db.execute(f"SELECT {_COLUMNS} FROM books WHERE book_id = ?", (book_id,)).fetchone()
            return Book.from_row(row) if row else None

    def find_by_isbn(self, isbn: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Book]:
        with self._session(conn) as db:
            row = db.execute(f"SELECT {_COLUMNS} FROM books WHERE isbn = ?", (isbn,)).fetchone()
            return Book.from_row(row) if row else None

    def find_all(self, conn: Optional[sqlite3.Connection] = None) -> List[Book]:
        with self._session(conn) as db:
            rows = db.execute(f"SELECT {_COLUMNS} FROM books ORDER BY title").fetchall()
            return [Book.from_row(row) for row in rows]

    def search_by_title(self, query: str, conn: Optional[sqlite3.Connection] = None) -> List[Book]:
        with self._session(conn) as db:
            rows = db.execute(
                f"SELECT {_COLUMNS} FROM books WHERE title LIKE ? ORDER BY title",
                (f"%{query}%",)
            ).fetchall()
            return [Book.from_row(row) for row in rows]

    def update(self, book: Book, conn: Optional[sqlite3.Connection] = None) -> Book:
        if book.book_id is None:
            raise ValueError("Cannot update a book without book_id.")
        with self._session(conn) as db:
            cursor = db.execute(
                """
                UPDATE books
                SET isbn = ?, title = ?, author_id = ?, publisher_id = ?, category_id = ?,
                    publication_year = ?, pages = ?, language = ?, description = ?,
                    total_copies = ?, available_copies = ?, price = ?, location = ?, status = ?
                WHERE book_id = ?
                """,
                (book.isbn, book.title, book.author_id, book.publisher_id, book.category_id,
                 book.publication_year, book.pages, book.language, book.description,
                 book.total_copies, book.available_copies, _price(book), book.location,
                 enum_value(book.status), book.book_id)
            )
            if cursor.rowcount == 0:
                raise EntityNotFound(f"Book {book.book_id} not found.")
            return self.find_by_id(book.book_id, conn=db)

    def update_available_copies(self, book_id: int, available_copies: int,
                                conn: Optional[sqlite3.Connection] = None) -> bool:
        with self._session(conn) as db:
            cursor = db.execute(
                "UPDATE books SET available_copies = ? WHERE book_id = ?",
                (available_copies, book_id)
            )
            return cursor.rowcount > 0

    def decrease_available_copies(self, book_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Take one copy off the shelf. False when the book is missing or has none left."""
        with self._session(conn) as db:
            cursor = db.execute(
                "UPDATE books SET available_copies = available_copies - 1 "
                "WHERE book_id = ? AND available_copies > 0",
                (book_id,)
            )
            return cursor.rowcount > 0

    def increase_available_copies(self, book_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Put one copy back. Raises ConstraintViolation if that would exceed total_copies."""
        with self._session(conn) as db:
            cursor = db.execute(
                "UPDATE books SET available_copies = available_copies + 1 WHERE book_id = ?",
                (book_id,)
            )
            return cursor.rowcount > 0

    def delete(self, book_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Delete a book. Rejected while any borrowing still references it (ON DELETE RESTRICT)."""
        try:
            with self._session(conn) as db:
                cursor = db.execute("DELETE FROM books WHERE book_id = ?", (book_id,))
                deleted = cursor.rowcount > 0
        except ConstraintViolation as e:
            if e.kind is ConstraintKind.FOREIGN_KEY:
                raise ConstraintViolation(ConstraintKind.FOREIGN_KEY, "borrowings.book_id", e.detail) from e
            raise
        if deleted:
            logger.info(f"Book {book_id} deleted")
        return deleted
