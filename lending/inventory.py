from __future__ import annotations

import logging

from lending.errors import BookNotFound, InvariantViolation, OutOfStock
from lending.repositories import BookRepository

logger = logging.getLogger(__name__)


class InventoryGuard:
    """Checks and moves a book's available-copy counter.

    Both operations are one conditional UPDATE against the repository's
    connection, so they are atomic within whatever transaction the caller
    has open.
    """

    def __init__(self, books: BookRepository) -> None:
        self.books = books

    def reserve_copy(self, book_id: int) -> int:
        """Take one copy off the shelf and return the remaining count."""
        remaining = self.books.decrement_available(book_id)
        if remaining is None:
            if self.books.find_by_id(book_id) is None:
                raise BookNotFound(f"book {book_id} not found")
            raise OutOfStock()
        logger.debug(f"Reserved copy of book {book_id}, {remaining} left")
        return remaining

    def release_copy(self, book_id: int) -> int:
        """Put one copy back on the shelf and return the new count."""
        available = self.books.increment_available(book_id)
        if available is None:
            book = self.books.find_by_id(book_id)
            if book is None:
                raise BookNotFound(f"book {book_id} not found")
            logger.error(
                f"Release would exceed capacity for book {book_id}: "
                f"{book.available_copies}/{book.total_copies}"
            )
            raise InvariantViolation(
                f"book {book_id} already has all {book.total_copies} copies available"
            )
        logger.debug(f"Released copy of book {book_id}, {available} available")
        return available
