"""Ranked step and test statuses."""

from __future__ import annotations

from enum import Enum
from typing import Any

from steptrail.errors import InvalidArgumentError


class Status(str, Enum):
    """Execution status, declared from best to worst.

    Members compare by rank, so ``max()`` over statuses gives the worst one.
    """

    SUCCESS = "success"
    IGNORED = "ignored"
    SKIPPED = "skipped"
    PENDING = "pending"
    FAILURE = "failure"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def is_successful(self) -> bool:
        return self is Status.SUCCESS

    @property
    def is_failing(self) -> bool:
        return self in (Status.FAILURE, Status.ERROR)

    @classmethod
    def parse(cls, value: Any) -> Status:
        """Resolve a member from a Status, name or value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
        raise InvalidArgumentError(f"Unknown status: {value!r}")

    def _rank_against(self, other: object, op: str) -> int:
        # str ordering would otherwise compare values alphabetically
        if not isinstance(other, Status):
            raise TypeError(f"'{op}' not supported between instances of 'Status' and '{type(other).__name__}'")
        return other.severity

    def __lt__(self, other: object) -> bool:
        return self.severity < self._rank_against(other, "<")

    def __le__(self, other: object) -> bool:
        return self.severity <= self._rank_against(other, "<=")

    def __gt__(self, other: object) -> bool:
        return self.severity > self._rank_against(other, ">")

    def __ge__(self, other: object) -> bool:
        return self.severity >= self._rank_against(other, ">=")

    def __str__(self) -> str:
        return self.value


_SEVERITY: dict[Status, int] = {status: rank for rank, status in enumerate(Status)}
