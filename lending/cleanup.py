"""Idempotent teardown of records created during a test or a demo session."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Set

from lending.database import Database

logger = logging.getLogger(__name__)


@dataclass
class CreatedRecords:
    """Ids of everything a session created, deleted in dependency order by ``purge``."""

    user_ids: Set[int] = field(default_factory=set)
    book_ids: Set[int] = field(default_factory=set)
    borrowing_ids: Set[int] = field(default_factory=set)

    def clear(self) -> None:
        self.user_ids.clear()
        self.book_ids.clear()
        self.borrowing_ids.clear()


def purge(database: Database, records: CreatedRecords) -> int:
    """Delete the tracked records and every borrowing that references them.

    Borrowings go first, then books, then users, so foreign keys never block
    a delete. Missing rows are skipped, so running it twice is harmless.
    Returns the number of rows deleted.
    """
    deleted = 0
    with database.transaction() as tx:
        borrowing_ids = set(records.borrowing_ids)
        for user_id in records.user_ids:
            borrowing_ids.update(b.borrowing_id for b in tx.borrowings.find_by_user_id(user_id))
        for book_id in records.book_ids:
            borrowing_ids.update(b.borrowing_id for b in tx.borrowings.find_by_book_id(book_id))

        for borrowing_id in borrowing_ids:
            deleted += tx.borrowings.delete(borrowing_id)
        for book_id in records.book_ids:
            deleted += tx.books.delete(book_id)
        for user_id in records.user_ids:
            deleted += tx.users.delete(user_id)

    logger.debug(f"Cleanup removed {deleted} row(s)")
    records.clear()
    return deleted
