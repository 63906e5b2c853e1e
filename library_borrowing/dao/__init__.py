"""Data access objects, one per table.

- UserDAO: users
- BookDAO: books and their copy counters
- BorrowingDAO: borrowings
"""

from library_borrowing.dao.book_dao import BookDAO
from library_borrowing.dao.borrowing_dao import BorrowingDAO
from library_borrowing.dao.user_dao import UserDAO

__all__ = ["UserDAO", "BookDAO", "BorrowingDAO"]
