"""Named failure conditions raised by the lending core.

Every rejection carries a stable ``code`` that calling layers can branch on
and a human readable ``reason``.
"""

from __future__ import annotations


class LendingError(Exception):
    code = "lending_error"
    default_reason = "lending operation failed"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.reason}


class InvalidArgument(LendingError, ValueError):
    code = "invalid_argument"
    default_reason = "invalid argument"


class NotFound(LendingError, LookupError):
    code = "not_found"
    default_reason = "record not found"


class UserNotFound(NotFound):
    code = "user_not_found"
    default_reason = "user not found"


class BookNotFound(NotFound):
    code = "book_not_found"
    default_reason = "book not found"


class BorrowingNotFound(NotFound):
    code = "borrowing_not_found"
    default_reason = "borrowing not found"


class UserInactive(LendingError):
    code = "user_inactive"
    default_reason = "user is not active"


class LimitExceeded(LendingError):
    code = "limit_exceeded"
    default_reason = "borrowing limit reached"


class OutOfStock(LendingError):
    code = "out_of_stock"
    default_reason = "no copies available"


class AlreadyReturned(LendingError):
    code = "already_returned"
    default_reason = "already returned"


class InvalidState(LendingError):
    code = "invalid_state"
    default_reason = "borrowing is not in the required state"


class TransientStoreConflict(LendingError):
    """The store could not serialise the transaction; retrying the whole call is safe."""

    code = "transient_store_conflict"
    default_reason = "storage conflict, retry the operation"


class InvariantViolation(LendingError):
    """Raised when stored state contradicts an inventory invariant. Indicates a bug."""

    code = "invariant_violation"
    default_reason = "inventory invariant violated"


# Rejections that leave state untouched and must not be retried automatically.
BUSINESS_REJECTIONS = (UserInactive, LimitExceeded, OutOfStock, AlreadyReturned, InvalidState)
