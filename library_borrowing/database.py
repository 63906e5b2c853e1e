import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from library_borrowing.config import settings

logger = logging.getLogger(__name__)

# Default database file. Tests (and callers) may point the module-level
# helpers at another file by assigning DATABASE_FILE before use, or pass
# db_file explicitly.
DATABASE_FILE = settings.database_file

# Millisecond UTC timestamps, the same text format models.format_timestamp writes
_NOW = "(strftime('%Y-%m-%d %H:%M:%f', 'now'))"


def _resolve(db_file: Optional[str]) -> str:
    return db_file or DATABASE_FILE


def get_db_connection(db_file: Optional[str] = None, autocommit: bool = False) -> sqlite3.Connection:
    """Open a connection with foreign keys enforced and rows addressable by name.

    With ``autocommit=True`` the sqlite3 module issues no implicit BEGIN, so
    the caller controls transaction boundaries itself (see ``transaction``).
    """
    conn = sqlite3.connect(
        _resolve(db_file),
        timeout=settings.database_timeout,
        isolation_level=None if autocommit else "",
    )
    conn.row_factory = sqlite3.Row
    # Off by default in SQLite and scoped to the connection
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def transaction(db_file: Optional[str] = None) -> Iterator[sqlite3.Connection]:
    """Run the enclosed block as one write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock before the first read,
    so concurrent units of work that check and then update the same rows are
    serialized. Commits on normal exit, rolls back on any exception.
    """
    conn = get_db_connection(db_file, autocommit=True)
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            # Some errors make SQLite abort the transaction on its own
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables, constraints and triggers if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()

        # Lookup tables referenced by books
        for table, key in (("authors", "author_id"), ("publishers", "publisher_id"), ("categories", "category_id")):
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    {key} INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT UNIQUE NOT NULL,
                    created_at TEXT NOT NULL DEFAULT {_NOW}
                )
            """)

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                email TEXT NOT NULL UNIQUE,
                full_name TEXT,
                phone TEXT,
                role TEXT NOT NULL DEFAULT 'member'
                    CONSTRAINT check_user_role CHECK (role IN ('member', 'librarian', 'admin')),
                status TEXT NOT NULL DEFAULT 'active'
                    CONSTRAINT check_user_status CHECK (status IN ('active', 'inactive')),
                created_at TEXT NOT NULL DEFAULT {_NOW},
                updated_at TEXT NOT NULL DEFAULT {_NOW}
            )
        """)

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS books (
                book_id INTEGER PRIMARY KEY AUTOINCREMENT,
                isbn TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                author_id INTEGER REFERENCES authors(author_id) ON DELETE SET NULL,
                publisher_id INTEGER REFERENCES publishers(publisher_id) ON DELETE SET NULL,
                category_id INTEGER REFERENCES categories(category_id) ON DELETE SET NULL,
                publication_year INTEGER
                    CONSTRAINT check_publication_year CHECK (publication_year >= 1000),
                pages INTEGER,
                language TEXT,
                description TEXT,
                total_copies INTEGER NOT NULL DEFAULT 1
                    CONSTRAINT check_total_copies CHECK (total_copies >= 0),
                available_copies INTEGER NOT NULL DEFAULT 1,
                price NUMERIC,
                location TEXT,
                status TEXT NOT NULL DEFAULT 'available'
                    CONSTRAINT check_book_status CHECK (status IN ('available', 'unavailable', 'damaged', 'lost')),
                created_at TEXT NOT NULL DEFAULT {_NOW},
                updated_at TEXT NOT NULL DEFAULT {_NOW},
                CONSTRAINT check_available_copies
                    CHECK (available_copies >= 0 AND available_copies <= total_copies)
            )
        """)

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS borrowings (
                borrowing_id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
                book_id INTEGER NOT NULL REFERENCES books(book_id) ON DELETE RESTRICT,
                borrow_date TEXT NOT NULL DEFAULT {_NOW},
                due_date TEXT NOT NULL,
                return_date TEXT,
                status TEXT NOT NULL DEFAULT 'borrowed'
                    CONSTRAINT check_borrowing_status CHECK (status IN ('borrowed', 'returned')),
                created_at TEXT NOT NULL DEFAULT {_NOW},
                updated_at TEXT NOT NULL DEFAULT {_NOW},
                CONSTRAINT check_due_date CHECK (due_date > borrow_date),
                CONSTRAINT check_return_state CHECK ((status = 'returned') = (return_date IS NOT NULL))
            )
        """)

        # updated_at refresh; the WHEN clause skips updates that set it explicitly
        for table, key in (("users", "user_id"), ("books", "book_id"), ("borrowings", "borrowing_id")):
            cursor.execute(f"""
                CREATE TRIGGER IF NOT EXISTS trg_{table}_updated_at
                AFTER UPDATE ON {table}
                FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
                BEGIN
                    UPDATE {table} SET updated_at = {_NOW} WHERE {key} = NEW.{key};
                END
            """)

        # A returned borrowing is final
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS trg_borrowings_status_transition
            BEFORE UPDATE OF status ON borrowings
            FOR EACH ROW WHEN OLD.status = 'returned' AND NEW.status <> 'returned'
            BEGIN
                SELECT RAISE(ABORT, 'check_borrowing_transition');
            END
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrowings_user_status ON borrowings(user_id, status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrowings_book_id ON borrowings(book_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrowings_due_date ON borrowings(due_date)")

        # Default lookup rows so books can reference id 1 out of the box
        for table in ("authors", "publishers", "categories"):
            cursor.execute(f"INSERT OR IGNORE INTO {table} (name) VALUES (?)", ("Unknown",))

        conn.commit()
        logger.debug(f"Schema ready in {_resolve(db_file)}")
    finally:
        conn.close()


def enable_wal(db_file: Optional[str] = None) -> None:
    """Switch the database file to WAL journaling (persistent per file)."""
    conn = get_db_connection(db_file, autocommit=True)
    try:
        mode = conn.execute("PRAGMA journal_mode=WAL;").fetchone()[0]
        logger.debug(f"Journal mode: {mode}")
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database: journal mode, then tables, constraints and triggers."""
    if settings.database_wal:
        enable_wal(db_file)
    create_tables(db_file)
    logger.info(f"Database initialized: {_resolve(db_file)}")
