from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional

from lending.config import settings
from lending.database import Database, Transaction
from lending.errors import (
    AlreadyReturned,
    BookNotFound,
    BorrowingNotFound,
    InvariantViolation,
    LendingError,
    UserInactive,
    UserNotFound,
)
from lending.fines import FineCalculator
from lending.inventory import InventoryGuard
from lending.models import Borrowing
from lending.policy import BorrowingLimitPolicy
from lending.validators import IdValidator, LoanValidator

logger = logging.getLogger(__name__)


class LendingService:
    """Borrow and return books against the shared inventory.

    Every write operation runs its checks and mutations in one
    ``BEGIN IMMEDIATE`` transaction: either everything commits or the
    store is left exactly as it was. Rejections are raised as the named
    errors from ``lending.errors``; nothing is retried here.
    """

    def __init__(
        self,
        database: Database,
        borrow_limit: Optional[int] = None,
        fine_per_day: Optional[float] = None,
        default_loan_days: Optional[int] = None,
        max_loan_days: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.database = database
        self.borrow_limit = settings.borrow_limit if borrow_limit is None else borrow_limit
        self.default_loan_days = settings.default_loan_days if default_loan_days is None else default_loan_days
        self.max_loan_days = settings.max_loan_days if max_loan_days is None else max_loan_days
        self.clock = clock or datetime.now
        self.fines = FineCalculator(database, per_day=fine_per_day, clock=self.clock)

    # ------------------------- Core operations ------------------------- #
    def borrow_book(self, user_id: int, book_id: int, loan_days: Optional[int] = None) -> Borrowing:
        IdValidator.require_id(user_id, "user_id")
        IdValidator.require_id(book_id, "book_id")
        if loan_days is None:
            loan_days = self.default_loan_days
        LoanValidator.loan_days(loan_days, self.max_loan_days)

        with self._write("borrow", user=user_id, book=book_id) as tx:
            user = tx.users.find_by_id(user_id)
            if user is None:
                raise UserNotFound(f"user {user_id} not found")
            if not user.is_active:
                raise UserInactive()
            if tx.books.find_by_id(book_id) is None:
                raise BookNotFound(f"book {book_id} not found")

            BorrowingLimitPolicy(tx.borrowings, self.borrow_limit).check_limit(user_id)
            remaining = InventoryGuard(tx.books).reserve_copy(book_id)

            now = self.clock()
            borrowing = tx.borrowings.create(
                Borrowing(
                    user_id=user_id,
                    book_id=book_id,
                    borrow_date=now,
                    due_date=now + timedelta(days=loan_days),
                )
            )

        logger.info(
            f"User {user_id} borrowed book {book_id} as borrowing {borrowing.borrowing_id} "
            f"(due {borrowing.due_date:%Y-%m-%d}, {remaining} copies left)"
        )
        return borrowing

    def return_book(self, borrowing_id: int) -> bool:
        IdValidator.require_id(borrowing_id, "borrowing_id")

        with self._write("return", borrowing=borrowing_id) as tx:
            borrowing = tx.borrowings.find_by_id(borrowing_id)
            if borrowing is None:
                raise BorrowingNotFound(f"borrowing {borrowing_id} not found")
            if not borrowing.is_active:
                raise AlreadyReturned(f"borrowing {borrowing_id} already returned")
            if not tx.borrowings.mark_returned(borrowing_id, self.clock()):
                raise AlreadyReturned(f"borrowing {borrowing_id} already returned")
            available = InventoryGuard(tx.books).release_copy(borrowing.book_id)

        logger.info(f"Borrowing {borrowing_id} returned, book {borrowing.book_id} has {available} available")
        return True

    def calculate_fine(self, borrowing_id: int) -> float:
        """Current fine for a borrowing. Read-only; also works before return as a preview."""
        return self.fines.calculate_fine(borrowing_id)

    def settle_fine(self, borrowing_id: int) -> float:
        """Record the final fine of a returned borrowing and return it."""
        IdValidator.require_id(borrowing_id, "borrowing_id")

        with self._write("settle", borrowing=borrowing_id) as tx:
            borrowing = tx.borrowings.find_by_id(borrowing_id)
            if borrowing is None:
                raise BorrowingNotFound(f"borrowing {borrowing_id} not found")
            quote = self.fines.quote(borrowing, finalized=True)
            tx.borrowings.set_fine(borrowing_id, quote.amount)

        logger.info(f"Fine for borrowing {borrowing_id} settled at {quote.amount:.2f}")
        return quote.amount

    # ------------------------- Queries ------------------------- #
    def get_borrowing(self, borrowing_id: int) -> Borrowing:
        IdValidator.require_id(borrowing_id, "borrowing_id")
        with self.database.transaction(immediate=False) as tx:
            borrowing = tx.borrowings.find_by_id(borrowing_id)
        if borrowing is None:
            raise BorrowingNotFound(f"borrowing {borrowing_id} not found")
        return borrowing

    def borrowings_for_user(self, user_id: int) -> List[Borrowing]:
        IdValidator.require_id(user_id, "user_id")
        with self.database.transaction(immediate=False) as tx:
            return tx.borrowings.find_by_user_id(user_id)

    def borrowings_for_book(self, book_id: int) -> List[Borrowing]:
        IdValidator.require_id(book_id, "book_id")
        with self.database.transaction(immediate=False) as tx:
            return tx.borrowings.find_by_book_id(book_id)

    def active_count(self, user_id: int) -> int:
        IdValidator.require_id(user_id, "user_id")
        with self.database.transaction(immediate=False) as tx:
            return tx.borrowings.count_active_borrowings_by_user(user_id)

    # ------------------------- Utilities ------------------------- #
    @contextmanager
    def _write(self, operation: str, **context) -> Iterator[Transaction]:
        """Open a write transaction and log why it was rolled back, if it was."""
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        try:
            with self.database.transaction() as tx:
                yield tx
        except InvariantViolation as e:
            logger.error(f"{operation} aborted ({details}): {e.reason}")
            raise
        except LendingError as e:
            logger.warning(f"{operation} rejected ({details}): {e.code}: {e.reason}")
            raise
