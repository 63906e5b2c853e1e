"""Error taxonomy shared by the DAO and service layers."""

import sqlite3
from enum import Enum
from typing import Optional


class ConstraintKind(str, Enum):
    FOREIGN_KEY = "foreign key"
    UNIQUE = "unique"
    NOT_NULL = "not null"
    CHECK = "check"


class LibraryError(Exception):
    """Base class for every error raised by this package."""
    pass


class ValidationStateError(LibraryError):
    """A precondition of a borrowing operation is not met. Nothing was written."""
    pass


class EntityNotFound(LibraryError, LookupError):
    """The referenced user, book or borrowing does not exist."""
    pass


class TransactionFailure(LibraryError):
    """Storage failed halfway through a unit of work; the transaction was rolled back."""
    pass


class ConstraintViolation(LibraryError):
    """The database rejected a write.

    ``kind`` says which family of constraint fired and ``rule`` names it:
    a ``table.column`` for unique/not-null/foreign-key violations, or the
    constraint name for CHECK constraints and triggers.
    """

    def __init__(self, kind: ConstraintKind, rule: str, detail: Optional[str] = None):
        self.kind = kind
        self.rule = rule
        self.detail = detail
        super().__init__(f"{kind.value} constraint violated: {rule}")


# Prefixes of the messages SQLite attaches to SQLITE_CONSTRAINT errors
_MESSAGE_PREFIXES = (
    ("UNIQUE constraint failed:", ConstraintKind.UNIQUE),
    ("NOT NULL constraint failed:", ConstraintKind.NOT_NULL),
    ("CHECK constraint failed:", ConstraintKind.CHECK),
    ("FOREIGN KEY constraint failed", ConstraintKind.FOREIGN_KEY),
)


def from_integrity_error(exc: sqlite3.IntegrityError, rule: Optional[str] = None) -> ConstraintViolation:
    """Translate a raw ``sqlite3.IntegrityError`` into a ``ConstraintViolation``.

    ``rule`` overrides the rule name when the caller knows better than
    SQLite, which is the case for foreign keys (SQLite does not report the
    offending column).
    """
    message = str(exc)
    for prefix, kind in _MESSAGE_PREFIXES:
        if message.startswith(prefix):
            parsed = message[len(prefix):].strip()
            return ConstraintViolation(kind, rule or parsed or kind.value, detail=message)
    # RAISE(ABORT, ...) from a trigger carries only the trigger's message
    return ConstraintViolation(ConstraintKind.CHECK, rule or message, detail=message)
