"""Error kinds raised by the schedule engine.

All of them are ``ValueError`` subclasses so the API layer can keep treating
bad requests uniformly while still telling the kinds apart.
"""
from __future__ import annotations

from datetime import date
from typing import List, NamedTuple, Optional


class Violation(NamedTuple):
    field: str
    reason: str

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


class ScheduleError(ValueError):
    # Position of the offending entry when a batch request failed
    input_index: Optional[int] = None


class InvalidDataError(ScheduleError):
    """Structurally invalid arguments. Carries every violation found in one call."""

    def __init__(self, violations: List[Violation]):
        self.violations = list(violations)
        super().__init__("invalid data: " + "; ".join(str(v) for v in self.violations))

    @classmethod
    def single(cls, field: str, reason: str) -> "InvalidDataError":
        return cls([Violation(field, reason)])


class ItemConflictError(ScheduleError):
    def __init__(self, message: str, existing=None):
        self.existing = existing
        super().__init__(f"item conflict: {message}")


class ItemNotFoundError(ScheduleError):
    def __init__(self, message: str = "item not found"):
        super().__init__(message)


class ProjectionError(ScheduleError):
    def __init__(self, message: str, date_: Optional[date] = None):
        self.date = date_
        if date_ is not None:
            message = f"projection for {date_.isoformat()} failed: {message}"
        super().__init__(message)


class NotFoundError(ScheduleError):
    """A referenced schedule, group, teacher or cabinet does not exist."""


class ScheduleExistsError(ScheduleError):
    pass


class Violations:
    """Collects violations so a call can report all of them at once."""

    def __init__(self) -> None:
        self._items: List[Violation] = []

    def add(self, field: str, reason: str) -> None:
        self._items.append(Violation(field, reason))

    def extend(self, err: InvalidDataError) -> None:
        self._items.extend(err.violations)

    def __bool__(self) -> bool:
        return bool(self._items)

    def raise_if_any(self) -> None:
        if self._items:
            raise InvalidDataError(self._items)
