from __future__ import annotations

import logging
from typing import Optional

from lending.cleanup import CreatedRecords
from lending.database import Database
from lending.errors import BookNotFound, InvalidArgument, UserNotFound
from lending.models import USER_ACTIVE, Book, User
from lending.validators import IdValidator, ISBNValidator, TextValidator

logger = logging.getLogger(__name__)


class Catalog:
    """Registration and maintenance of users and books.

    This is the CRUD side the lending service only reads from. Each call is
    its own short transaction.
    """

    def __init__(self, database: Database, tracker: Optional[CreatedRecords] = None) -> None:
        self.database = database
        self.tracker = tracker

    # ------------------------- Users ------------------------- #
    def add_user(
        self,
        username: str,
        email: str,
        full_name: str = "",
        phone: Optional[str] = None,
        role: str = "member",
        status: str = USER_ACTIVE,
    ) -> User:
        user = User(
            username=TextValidator.require_text(username, "username"),
            email=TextValidator.require_text(email, "email"),
            full_name=(full_name or "").strip(),
            phone=phone,
            role=TextValidator.validate_role(role),
            status=TextValidator.validate_status(status),
        )
        with self.database.transaction() as tx:
            user = tx.users.create(user)
        if self.tracker is not None:
            self.tracker.user_ids.add(user.user_id)
        logger.info(f"Registered user {user.user_id} ({user.username})")
        return user

    def get_user(self, user_id: int) -> User:
        IdValidator.require_id(user_id, "user_id")
        with self.database.transaction(immediate=False) as tx:
            user = tx.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound(f"user {user_id} not found")
        return user

    def set_user_status(self, user_id: int, status: str) -> User:
        IdValidator.require_id(user_id, "user_id")
        status = TextValidator.validate_status(status)
        with self.database.transaction() as tx:
            user = tx.users.find_by_id(user_id)
            if user is None:
                raise UserNotFound(f"user {user_id} not found")
            user.status = status
            tx.users.update(user)
        logger.info(f"User {user_id} is now {status}")
        return user

    def delete_user(self, user_id: int) -> bool:
        IdValidator.require_id(user_id, "user_id")
        with self.database.transaction() as tx:
            return tx.users.delete(user_id)

    # ------------------------- Books ------------------------- #
    def add_book(self, isbn: str, title: str, total_copies: int, author: str = "", **details) -> Book:
        isbn = ISBNValidator.normalize_isbn(isbn)
        if not isbn:
            raise InvalidArgument("ISBN cannot be empty.")
        if not ISBNValidator.is_valid_isbn(isbn):
            raise InvalidArgument(f"invalid ISBN: {isbn}")
        if isinstance(total_copies, bool) or not isinstance(total_copies, int) or total_copies < 0:
            raise InvalidArgument(f"total_copies must be a non-negative integer, got {total_copies!r}")
        book = Book(
            isbn=isbn,
            title=TextValidator.require_text(title, "title"),
            author=(author or "").strip(),
            total_copies=total_copies,
            **details,
        )
        with self.database.transaction() as tx:
            book = tx.books.create(book)
        if self.tracker is not None:
            self.tracker.book_ids.add(book.book_id)
        logger.info(f"Added book {book.book_id} ({book.title}) with {book.total_copies} copies")
        return book

    def get_book(self, book_id: int) -> Book:
        IdValidator.require_id(book_id, "book_id")
        with self.database.transaction(immediate=False) as tx:
            book = tx.books.find_by_id(book_id)
        if book is None:
            raise BookNotFound(f"book {book_id} not found")
        return book

    def set_available_copies(self, book_id: int, count: int) -> Book:
        """Overwrite the shelf count, e.g. after a stock take."""
        IdValidator.require_id(book_id, "book_id")
        with self.database.transaction() as tx:
            if not tx.books.update_available_copies(book_id, count):
                raise BookNotFound(f"book {book_id} not found")
            book = tx.books.find_by_id(book_id)
        logger.info(f"Book {book_id} available copies set to {count}")
        return book

    def delete_book(self, book_id: int) -> bool:
        IdValidator.require_id(book_id, "book_id")
        with self.database.transaction() as tx:
            return tx.books.delete(book_id)
