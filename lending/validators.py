import re
from typing import Any, Optional

from lending.errors import InvalidArgument
from lending.models import USER_ROLES, USER_STATUSES


class IdValidator:
    """Record identifiers are positive integers."""

    @staticmethod
    def require_id(value: Any, name: str) -> int:
        if value is None:
            raise InvalidArgument(f"{name} is required")
        # bool is an int subclass; True is not an id
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgument(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise InvalidArgument(f"{name} must be positive, got {value}")
        return value


class LoanValidator:
    @staticmethod
    def loan_days(value: Any, max_days: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgument(f"loan_days must be an integer, got {value!r}")
        if value < 1:
            raise InvalidArgument("loan_days must be at least 1")
        if value > max_days:
            raise InvalidArgument(f"loan_days must not exceed {max_days}")
        return value


class ISBNValidator:
    """ISBN-10 and ISBN-13 checks; hyphens and spaces are ignored."""

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return re.sub(r"[\s-]", "", raw).upper()

    @staticmethod
    def is_valid_isbn(isbn: Optional[str]) -> bool:
        s = ISBNValidator.normalize_isbn(isbn)
        if len(s) == 10:
            if not s[:-1].isdigit():
                return False
            total = sum(i * int(ch) for i, ch in enumerate(s[:-1], 1))
            check = s[-1]
            if check == "X":
                check_val = 10
            elif check.isdigit():
                check_val = int(check)
            else:
                return False
            return (total + 10 * check_val) % 11 == 0
        if len(s) == 13 and s.isdigit():
            total = sum((1 if i % 2 == 0 else 3) * int(ch) for i, ch in enumerate(s[:-1]))
            return (10 - total % 10) % 10 == int(s[-1])
        return False


class TextValidator:
    @staticmethod
    def require_text(value: Optional[str], name: str) -> str:
        if value is None or not value.strip():
            raise InvalidArgument(f"{name} must not be empty")
        return value.strip()

    @staticmethod
    def validate_status(status: str) -> str:
        status = (status or "").lower().strip()
        if status not in USER_STATUSES:
            raise InvalidArgument(f"status must be one of {', '.join(USER_STATUSES)}")
        return status

    @staticmethod
    def validate_role(role: str) -> str:
        role = (role or "").lower().strip()
        if role not in USER_ROLES:
            raise InvalidArgument(f"role must be one of {', '.join(USER_ROLES)}")
        return role
