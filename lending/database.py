from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from dotenv import load_dotenv

from lending.config import settings
from lending.errors import TransientStoreConflict
from lending.repositories import BookRepository, BorrowingRepository, UserRepository

load_dotenv()

logger = logging.getLogger(__name__)

# Default database file: LENDING_DB_FILE, else lending.db in the working directory
DATABASE_FILE = settings.db_file


def get_db_connection(db_file: Optional[str] = None, timeout: Optional[float] = None) -> sqlite3.Connection:
    """Open a connection in autocommit mode; transactions are started explicitly."""
    conn = sqlite3.connect(
        db_file or DATABASE_FILE,
        timeout=settings.db_timeout if timeout is None else timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def is_busy_error(exc: BaseException) -> bool:
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        # WAL lets readers proceed while a single writer holds the reserved lock
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT UNIQUE NOT NULL,
                email TEXT UNIQUE NOT NULL,
                full_name TEXT NOT NULL DEFAULT '',
                phone TEXT,
                role TEXT NOT NULL DEFAULT 'member'
                    CHECK(role IN ('member', 'librarian', 'admin')),
                status TEXT NOT NULL DEFAULT 'active'
                    CHECK(status IN ('active', 'inactive')),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS books (
                book_id INTEGER PRIMARY KEY AUTOINCREMENT,
                isbn TEXT UNIQUE NOT NULL,
                title TEXT NOT NULL,
                author TEXT NOT NULL DEFAULT '',
                language TEXT,
                publication_year INTEGER,
                pages INTEGER,
                price REAL,
                location TEXT,
                total_copies INTEGER NOT NULL CHECK(total_copies >= 0),
                available_copies INTEGER NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                CHECK(available_copies >= 0 AND available_copies <= total_copies)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS borrowings (
                borrowing_id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                book_id INTEGER NOT NULL,
                borrow_date TEXT NOT NULL,
                due_date TEXT NOT NULL,
                return_date TEXT,
                status TEXT NOT NULL DEFAULT 'borrowed'
                    CHECK(status IN ('borrowed', 'returned')),
                fine_amount REAL,
                FOREIGN KEY (user_id) REFERENCES users(user_id),
                FOREIGN KEY (book_id) REFERENCES books(book_id)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_borrowings_user_status ON borrowings(user_id, status)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_borrowings_book ON borrowings(book_id)")
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialise the database, creating tables where needed."""
    create_tables(db_file)
    logger.debug(f"Database ready at {db_file or DATABASE_FILE}")


class Transaction:
    """One begin/commit/rollback unit over a single connection.

    Repositories bound to the transaction's connection are exposed as
    ``users``, ``books`` and ``borrowings``. Used as a context manager the
    transaction commits on a clean exit and rolls back on any exception; the
    connection is closed either way.
    """

    def __init__(self, conn: sqlite3.Connection, immediate: bool = True) -> None:
        self.conn = conn
        self.immediate = immediate
        self.active = False
        self.users = UserRepository(conn)
        self.books = BookRepository(conn)
        self.borrowings = BorrowingRepository(conn)

    def begin(self) -> "Transaction":
        # IMMEDIATE takes the write lock up front so check-then-act sequences
        # cannot interleave with another writer.
        statement = "BEGIN IMMEDIATE" if self.immediate else "BEGIN"
        try:
            self.conn.execute(statement)
        except sqlite3.OperationalError as e:
            if is_busy_error(e):
                raise TransientStoreConflict(f"could not start transaction: {e}") from e
            raise
        self.active = True
        return self

    def commit(self) -> None:
        if not self.active:
            return
        try:
            self.conn.execute("COMMIT")
        except sqlite3.OperationalError as e:
            self.rollback()
            if is_busy_error(e):
                raise TransientStoreConflict(f"could not commit transaction: {e}") from e
            raise
        self.active = False

    def rollback(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.OperationalError as e:
            # sqlite may already have rolled back on its own after an error
            logger.debug(f"Rollback skipped: {e}")

    def close(self) -> None:
        self.rollback()
        self.conn.close()

    def __enter__(self) -> "Transaction":
        try:
            return self.begin()
        except BaseException:
            self.conn.close()
            raise

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc is None:
                self.commit()
            else:
                self.rollback()
                if is_busy_error(exc):
                    raise TransientStoreConflict(f"storage conflict: {exc}") from exc
        finally:
            self.conn.close()
        return False


class Database:
    """Entry point to the backing store for one sqlite file."""

    def __init__(self, db_file: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.db_file = db_file or DATABASE_FILE
        self.timeout = settings.db_timeout if timeout is None else timeout
        initialize_database(self.db_file)

    def connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file, self.timeout)

    def transaction(self, immediate: bool = True) -> Transaction:
        """Return an unstarted transaction; use it with ``with`` or call ``begin()``."""
        return Transaction(self.connect(), immediate=immediate)

    def ping(self) -> bool:
        conn = self.connect()
        try:
            conn.execute("SELECT 1")
            return True
        except sqlite3.Error:
            return False
        finally:
            conn.close()
