import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from library_borrowing.database import transaction
from library_borrowing.errors import from_integrity_error


class BaseDAO:
    """Connection handling shared by the table DAOs.

    Every public DAO method accepts an optional ``conn``. When given, the
    call joins the caller's transaction and leaves commit/rollback to it.
    Otherwise the call runs in a transaction of its own.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    @contextmanager
    def _session(self, conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
        try:
            if conn is not None:
                yield conn
            else:
                with transaction(self.db_file) as own:
                    yield own
        except sqlite3.IntegrityError as e:
            raise from_integrity_error(e) from e
