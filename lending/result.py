"""Tagged outcome for call sites that prefer branching over try/except."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from lending.errors import InvariantViolation, LendingError


@dataclass(frozen=True)
class Outcome:
    value: Any = None
    error: Optional[LendingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> str:
        return "ok" if self.error is None else self.error.code

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value


def attempt(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Outcome:
    """Run a lending operation and capture a named rejection as an Outcome.

    InvariantViolation is never captured: it signals a bug and must surface.
    """
    try:
        return Outcome(value=func(*args, **kwargs))
    except InvariantViolation:
        raise
    except LendingError as e:
        return Outcome(error=e)
