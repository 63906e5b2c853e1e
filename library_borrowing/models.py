from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union


class UserRole(str, Enum):
    MEMBER = "member"
    LIBRARIAN = "librarian"
    ADMIN = "admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class BookStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    DAMAGED = "damaged"
    LOST = "lost"


class BorrowingStatus(str, Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utcnow() -> datetime:
    """Current UTC time, naive, truncated to the milliseconds the database keeps."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime(TIMESTAMP_FORMAT)[:-3]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def enum_value(value: Union[Enum, str, None]) -> Optional[str]:
    """Column value for an enum field. Plain strings pass through so the schema can judge them."""
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass
class User:
    """A library member or staff account."""
    username: Optional[str]
    email: Optional[str]
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Union[UserRole, str] = UserRole.MEMBER
    status: Union[UserStatus, str] = UserStatus.ACTIVE
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": enum_value(self.role),
            "status": enum_value(self.status),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @staticmethod
    def from_row(row: Any) -> "User":
        data = dict(row)
        return User(
            user_id=data["user_id"],
            username=data["username"],
            email=data["email"],
            full_name=data.get("full_name"),
            phone=data.get("phone"),
            role=UserRole(data["role"]),
            status=UserStatus(data["status"]),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Book:
    """A catalogued title and its copy counters."""
    isbn: Optional[str]
    title: Optional[str]
    author_id: Optional[int] = None
    publisher_id: Optional[int] = None
    category_id: Optional[int] = None
    publication_year: Optional[int] = None
    pages: Optional[int] = None
    language: Optional[str] = None
    description: Optional[str] = None
    total_copies: int = 1
    available_copies: int = 1
    price: Optional[Decimal] = None
    location: Optional[str] = None
    status: Union[BookStatus, str] = BookStatus.AVAILABLE
    book_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} (ISBN: {self.isbn})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "book_id": self.book_id,
            "isbn": self.isbn,
            "title": self.title,
            "author_id": self.author_id,
            "publisher_id": self.publisher_id,
            "category_id": self.category_id,
            "publication_year": self.publication_year,
            "pages": self.pages,
            "language": self.language,
            "description": self.description,
            "total_copies": self.total_copies,
            "available_copies": self.available_copies,
            "price": str(self.price) if self.price is not None else None,
            "location": self.location,
            "status": enum_value(self.status),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @staticmethod
    def from_row(row: Any) -> "Book":
        data = dict(row)
        # NUMERIC affinity hands prices back as int or float
        price = data.get("price")
        return Book(
            book_id=data["book_id"],
            isbn=data["isbn"],
            title=data["title"],
            author_id=data.get("author_id"),
            publisher_id=data.get("publisher_id"),
            category_id=data.get("category_id"),
            publication_year=data.get("publication_year"),
            pages=data.get("pages"),
            language=data.get("language"),
            description=data.get("description"),
            total_copies=data["total_copies"],
            available_copies=data["available_copies"],
            price=Decimal(str(price)) if price is not None else None,
            location=data.get("location"),
            status=BookStatus(data["status"]),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Borrowing:
    """One loan of one book to one user."""
    user_id: Optional[int]
    book_id: Optional[int]
    due_date: Optional[datetime]
    borrow_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    status: Union[BorrowingStatus, str] = BorrowingStatus.BORROWED
    borrowing_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_returned(self) -> bool:
        return self.status == BorrowingStatus.RETURNED or self.return_date is not None

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.is_returned or self.due_date is None:
            return False
        return self.due_date < (now or utcnow())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "borrowing_id": self.borrowing_id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "borrow_date": format_timestamp(self.borrow_date),
            "due_date": format_timestamp(self.due_date),
            "return_date": format_timestamp(self.return_date),
            "status": enum_value(self.status),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @staticmethod
    def from_row(row: Any) -> "Borrowing":
        data = dict(row)
        return Borrowing(
            borrowing_id=data["borrowing_id"],
            user_id=data["user_id"],
            book_id=data["book_id"],
            borrow_date=parse_timestamp(data.get("borrow_date")),
            due_date=parse_timestamp(data.get("due_date")),
            return_date=parse_timestamp(data.get("return_date")),
            status=BorrowingStatus(data["status"]),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )
