from __future__ import annotations

import logging
from typing import Optional

from lending.config import settings
from lending.errors import LimitExceeded
from lending.repositories import BorrowingRepository

logger = logging.getLogger(__name__)


class BorrowingLimitPolicy:
    """Caps the number of active borrowings a user may hold."""

    def __init__(self, borrowings: BorrowingRepository, limit: Optional[int] = None) -> None:
        self.borrowings = borrowings
        self.limit = settings.borrow_limit if limit is None else limit

    def active_count(self, user_id: int) -> int:
        return self.borrowings.count_active_borrowings_by_user(user_id)

    def check_limit(self, user_id: int) -> int:
        """Return the user's active count, or raise LimitExceeded when already at the ceiling."""
        count = self.active_count(user_id)
        if count >= self.limit:
            logger.info(f"User {user_id} holds {count}/{self.limit} borrowings")
            raise LimitExceeded(f"borrowing limit reached ({count}/{self.limit})")
        return count
