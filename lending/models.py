from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

USER_ACTIVE = "active"
USER_INACTIVE = "inactive"
USER_STATUSES = (USER_ACTIVE, USER_INACTIVE)
USER_ROLES = ("member", "librarian", "admin")

BORROWED = "borrowed"
RETURNED = "returned"


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def from_iso(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class User:
    """A library patron. Read-only to the lending service."""

    username: str
    email: str
    full_name: str = ""
    phone: Optional[str] = None
    role: str = "member"
    status: str = USER_ACTIVE
    user_id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == USER_ACTIVE

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "status": self.status,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(
            user_id=data.get("user_id"),
            username=data["username"],
            email=data["email"],
            full_name=data.get("full_name") or "",
            phone=data.get("phone"),
            role=data.get("role") or "member",
            status=data.get("status") or USER_ACTIVE,
            created_at=data.get("created_at"),
        )


@dataclass
class Book:
    """A title with a fixed number of physical copies."""

    isbn: str
    title: str
    total_copies: int
    available_copies: Optional[int] = None
    author: str = ""
    language: Optional[str] = None
    publication_year: Optional[int] = None
    pages: Optional[int] = None
    price: Optional[float] = None
    location: Optional[str] = None
    book_id: Optional[int] = None
    created_at: Optional[str] = None

    def __post_init__(self) -> None:
        self.isbn = self.isbn.strip()
        self.title = self.title.strip()
        # A new title starts fully on the shelf
        if self.available_copies is None:
            self.available_copies = self.total_copies

    def to_dict(self) -> dict:
        return {
            "book_id": self.book_id,
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "language": self.language,
            "publication_year": self.publication_year,
            "pages": self.pages,
            "price": self.price,
            "location": self.location,
            "total_copies": self.total_copies,
            "available_copies": self.available_copies,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            book_id=data.get("book_id"),
            isbn=data["isbn"],
            title=data["title"],
            author=data.get("author") or "",
            language=data.get("language"),
            publication_year=data.get("publication_year"),
            pages=data.get("pages"),
            price=data.get("price"),
            location=data.get("location"),
            total_copies=data["total_copies"],
            available_copies=data.get("available_copies"),
            created_at=data.get("created_at"),
        )


@dataclass
class Borrowing:
    """One loan of one copy. Moves from ``borrowed`` to ``returned`` exactly once."""

    user_id: int
    book_id: int
    borrow_date: datetime
    due_date: datetime
    status: str = BORROWED
    return_date: Optional[datetime] = None
    fine_amount: Optional[float] = None
    borrowing_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status == BORROWED

    def to_dict(self) -> dict:
        return {
            "borrowing_id": self.borrowing_id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "borrow_date": to_iso(self.borrow_date),
            "due_date": to_iso(self.due_date),
            "return_date": to_iso(self.return_date),
            "status": self.status,
            "fine_amount": self.fine_amount,
        }

    @staticmethod
    def from_dict(data: dict) -> "Borrowing":
        return Borrowing(
            borrowing_id=data.get("borrowing_id"),
            user_id=data["user_id"],
            book_id=data["book_id"],
            borrow_date=from_iso(data["borrow_date"]),
            due_date=from_iso(data["due_date"]),
            return_date=from_iso(data.get("return_date")),
            status=data.get("status") or BORROWED,
            fine_amount=data.get("fine_amount"),
        )


@dataclass
class FineQuote:
    """Result of a fine computation, kept for callers that want the breakdown."""

    borrowing_id: int
    overdue_days: int
    per_day: float
    amount: float
    finalized: bool = False
    computed_at: datetime = field(default_factory=datetime.now)
