import logging
import sqlite3
from typing import List, Optional

from library_borrowing.dao.base import BaseDAO
from library_borrowing.errors import EntityNotFound
from library_borrowing.models import User, enum_value

logger = logging.getLogger(__name__)

_COLUMNS = "user_id, username, email, full_name, phone, role, status, created_at, updated_at"


class UserDAO(BaseDAO):
    """CRUD over the ``users`` table."""

    def create(self, user: User, conn: Optional[sqlite3.Connection] = None) -> User:
        with self._session(conn) as db:
            cursor = db.execute(
                """
                INSERT INTO users (username, email, full_name, phone, role, status)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user.username, user.email, user.full_name, user.phone,
                 enum_value(user.role), enum_value(user.status))
            )
            created = self.find_by_id(cursor.lastrowid, conn=db)
        logger.debug(f"User created: id={created.user_id} username={created.username}")
        return created

    def find_by_id(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[User]:
        with self._session(conn) as db:
            row = db.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id = ?", (user_id,)).fetchone()
            return User.from_row(row) if row else None

    def find_by_username(self, username: str, conn: Optional[sqlite3.Connection] = None) -> Optional[User]:
        with self._session(conn) as db:
            row = db.execute(f"SELECT {_COLUMNS} FROM users WHERE username = ?", (username,)).fetchone()
            return User.from_row(row) if row else None

    def find_by_email(self, email: str, conn: Optional[sqlite3.Connection] = None) -> Optional[User]:
        with self._session(conn) as db:
            row = db.execute(f"SELECT {_COLUMNS} FROM users WHERE email = ?", (email,)).fetchone()
            return User.from_row(row) if row else None

    def find_all(self, conn: Optional[sqlite3.Connection] = None) -> List[User]:
        with self._session(conn) as db:
            rows = db.execute(f"SELECT {_COLUMNS} FROM users ORDER BY user_id").fetchall()
            return [User.from_row(row) for row in rows]

    def update(self, user: User, conn: Optional[sqlite3.Connection] = None) -> User:
        """Write every mutable field of ``user``; ``updated_at`` is refreshed by the schema."""
        if user.user_id is None:
            raise ValueError("Cannot update a user without user_id.")
        with self._session(conn) as db:
            cursor = db.execute(
                """
                UPDATE users
                SET username = ?, email = ?, full_name = ?, phone = ?, role = ?, status = ?
                WHERE user_id = ?
                """,
                (user.username, user.email, user.full_name, user.phone,
                 enum_value(user.role), enum_value(user.status), user.user_id)
            )
            if cursor.rowcount == 0:
                raise EntityNotFound(f"User {user.user_id} not found.")
            return self.find_by_id(user.user_id, conn=db)

    def delete(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Delete a user. Their borrowings go with them (ON DELETE CASCADE)."""
        with self._session(conn) as db:
            cursor = db.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"User {user_id} deleted")
        return deleted
