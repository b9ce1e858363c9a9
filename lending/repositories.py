"""SQL repositories for users, books and borrowings.

Each repository works on the connection it is given and never commits on
its own: the caller owns the transaction (see ``lending.database.Transaction``).
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from lending.errors import InvalidArgument
from lending.models import BORROWED, RETURNED, Book, Borrowing, User, to_iso

USER_COLUMNS = "user_id, username, email, full_name, phone, role, status, created_at"
BOOK_COLUMNS = (
    "book_id, isbn, title, author, language, publication_year, pages, price, "
    "location, total_copies, available_copies, created_at"
)
BORROWING_COLUMNS = "borrowing_id, user_id, book_id, borrow_date, due_date, return_date, status, fine_amount"


class UserRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def create(self, user: User) -> User:
        try:
            cursor = self.conn.execute(
                """
                INSERT INTO users (username, email, full_name, phone, role, status)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user.username, user.email, user.full_name, user.phone, user.role, user.status),
            )
        except sqlite3.IntegrityError as e:
            raise InvalidArgument(f"User {user.username!r} could not be created: {e}") from e
        return self.find_by_id(cursor.lastrowid)

    def find_by_id(self, user_id: int) -> Optional[User]:
        row = self.conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,)).fetchone()
        return User.from_dict(dict(row)) if row else None

    def update(self, user: User) -> bool:
        cursor = self.conn.execute(
            """
            UPDATE users SET username = ?, email = ?, full_name = ?, phone = ?, role = ?, status = ?
            WHERE user_id = ?
            """,
            (user.username, user.email, user.full_name, user.phone, user.role, user.status, user.user_id),
        )
        return cursor.rowcount > 0

    def delete(self, user_id: int) -> bool:
        try:
            cursor = self.conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
        except sqlite3.IntegrityError as e:
            raise InvalidArgument(f"user {user_id} still has borrowings") from e
        return cursor.rowcount > 0


class BookRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def create(self, book: Book) -> Book:
        try:
            cursor = self.conn.execute(
                """
                INSERT INTO books (
                    isbn, title, author, language, publication_year, pages, price,
                    location, total_copies, available_copies
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    book.isbn, book.title, book.author, book.language, book.publication_year,
                    book.pages, book.price, book.location, book.total_copies, book.available_copies,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise InvalidArgument(f"Book with ISBN {book.isbn} could not be created: {e}") from e
        return self.find_by_id(cursor.lastrowid)

    def find_by_id(self, book_id: int) -> Optional[Book]:
        row = self.conn.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE book_id = ?", (book_id,)).fetchone()
        return Book.from_dict(dict(row)) if row else None

    def update_available_copies(self, book_id: int, new_count: int) -> bool:
        """Set the counter directly. Administrative use only; lending goes through the guarded methods."""
        try:
            cursor = self.conn.execute(
                "UPDATE books SET available_copies = ? WHERE book_id = ?", (new_count, book_id)
            )
        except sqlite3.IntegrityError as e:
            raise InvalidArgument(f"available copies must be between 0 and total copies, got {new_count}") from e
        return cursor.rowcount > 0

    def decrement_available(self, book_id: int) -> Optional[int]:
        """Take one copy if any is left. Returns the new count, or None when nothing changed."""
        cursor = self.conn.execute(
            "UPDATE books SET available_copies = available_copies - 1 WHERE book_id = ? AND available_copies > 0",
            (book_id,),
        )
        if cursor.rowcount == 0:
            return None
        return self._available(book_id)

    def increment_available(self, book_id: int) -> Optional[int]:
        """Put one copy back unless the shelf is full. Returns the new count, or None when nothing changed."""
        cursor = self.conn.execute(
            """
            UPDATE books SET available_copies = available_copies + 1
            WHERE book_id = ? AND available_copies < total_copies
            """,
            (book_id,),
        )
        if cursor.rowcount == 0:
            return None
        return self._available(book_id)

    def delete(self, book_id: int) -> bool:
        try:
            cursor = self.conn.execute("DELETE FROM books WHERE book_id = ?", (book_id,))
        except sqlite3.IntegrityError as e:
            raise InvalidArgument(f"book {book_id} still has borrowings") from e
        return cursor.rowcount > 0

    def _available(self, book_id: int) -> int:
        row = self.conn.execute("SELECT available_copies FROM books WHERE book_id = ?", (book_id,)).fetchone()
        return row[0]


class BorrowingRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def create(self, borrowing: Borrowing) -> Borrowing:
        cursor = self.conn.execute(
            """
            INSERT INTO borrowings (user_id, book_id, borrow_date, due_date, return_date, status, fine_amount)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                borrowing.user_id, borrowing.book_id, to_iso(borrowing.borrow_date), to_iso(borrowing.due_date),
                to_iso(borrowing.return_date), borrowing.status, borrowing.fine_amount,
            ),
        )
        borrowing.borrowing_id = cursor.lastrowid
        return borrowing

    def find_by_id(self, borrowing_id: int) -> Optional[Borrowing]:
        row = self.conn.execute(
            f"SELECT {BORROWING_COLUMNS} FROM borrowings WHERE borrowing_id = ?", (borrowing_id,)
        ).fetchone()
        return Borrowing.from_dict(dict(row)) if row else None

    def find_by_user_id(self, user_id: int) -> List[Borrowing]:
        rows = self.conn.execute(
            f"SELECT {BORROWING_COLUMNS} FROM borrowings WHERE user_id = ? ORDER BY borrowing_id", (user_id,)
        ).fetchall()
        return [Borrowing.from_dict(dict(row)) for row in rows]

    def find_by_book_id(self, book_id: int) -> List[Borrowing]:
        rows = self.conn.execute(
            f"SELECT {BORROWING_COLUMNS} FROM borrowings WHERE book_id = ? ORDER BY borrowing_id", (book_id,)
        ).fetchall()
        return [Borrowing.from_dict(dict(row)) for row in rows]

    def count_active_borrowings_by_user(self, user_id: int) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM borrowings WHERE user_id = ? AND status = ?", (user_id, BORROWED)
        ).fetchone()
        return row[0]

    def mark_returned(self, borrowing_id: int, returned_at: datetime) -> bool:
        """Flip a borrowed record to returned. False if it was not in the borrowed state."""
        cursor = self.conn.execute(
            "UPDATE borrowings SET status = ?, return_date = ? WHERE borrowing_id = ? AND status = ?",
            (RETURNED, to_iso(returned_at), borrowing_id, BORROWED),
        )
        return cursor.rowcount > 0

    def set_fine(self, borrowing_id: int, amount: float) -> bool:
        cursor = self.conn.execute(
            "UPDATE borrowings SET fine_amount = ? WHERE borrowing_id = ? AND status = ?",
            (amount, borrowing_id, RETURNED),
        )
        return cursor.rowcount > 0

    def delete(self, borrowing_id: int) -> bool:
        cursor = self.conn.execute("DELETE FROM borrowings WHERE borrowing_id = ?", (borrowing_id,))
        return cursor.rowcount > 0
