from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Optional

from lending.config import settings
from lending.database import Database
from lending.errors import BorrowingNotFound, InvalidState
from lending.models import Borrowing, FineQuote
from lending.validators import IdValidator

logger = logging.getLogger(__name__)


def overdue_days(due_date: datetime, reference: datetime) -> int:
    """Days past the due date, a partial day counting as a full one.

    Not overdue (reference at or before the due date) is 0.
    """
    if reference <= due_date:
        return 0
    return math.ceil((reference - due_date) / timedelta(days=1))


class FineCalculator:
    """Derives the overdue fine of a borrowing. Never writes."""

    def __init__(
        self,
        database: Database,
        per_day: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.database = database
        self.per_day = settings.fine_per_day if per_day is None else per_day
        self.clock = clock or datetime.now

    def quote(self, borrowing: Borrowing, finalized: bool = False) -> FineQuote:
        """Compute the fine for an already loaded borrowing.

        An open loan accrues up to now; a returned loan is frozen at its
        return date.
        """
        if finalized and borrowing.is_active:
            raise InvalidState(f"borrowing {borrowing.borrowing_id} has not been returned")
        now = self.clock()
        reference = borrowing.return_date if borrowing.return_date is not None else now
        days = overdue_days(borrowing.due_date, reference)
        return FineQuote(
            borrowing_id=borrowing.borrowing_id,
            overdue_days=days,
            per_day=self.per_day,
            amount=float(days * self.per_day),
            finalized=not borrowing.is_active,
            computed_at=now,
        )

    def load_quote(self, borrowing_id: int, finalized: bool = False) -> FineQuote:
        IdValidator.require_id(borrowing_id, "borrowing_id")
        with self.database.transaction(immediate=False) as tx:
            borrowing = tx.borrowings.find_by_id(borrowing_id)
        if borrowing is None:
            raise BorrowingNotFound(f"borrowing {borrowing_id} not found")
        return self.quote(borrowing, finalized=finalized)

    def calculate_fine(self, borrowing_id: int, finalized: bool = False) -> float:
        quote = self.load_quote(borrowing_id, finalized=finalized)
        if quote.amount:
            logger.info(f"Borrowing {borrowing_id} is {quote.overdue_days} day(s) overdue, fine {quote.amount:.2f}")
        return quote.amount
