"""Tagged results for operations that can miss or fail in transit.

Services return a ``ServiceResult`` instead of raising so callers can
branch on ``status`` without inspecting exception messages.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ResultStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of a lookup: a value, a miss, or a transport failure."""

    status: ResultStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "ServiceResult[T]":
        return cls(status=ResultStatus.OK, value=value)

    @classmethod
    def not_found(cls) -> "ServiceResult[T]":
        return cls(status=ResultStatus.NOT_FOUND)

    @classmethod
    def transport_error(cls, error: str) -> "ServiceResult[T]":
        return cls(status=ResultStatus.TRANSPORT_ERROR, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status is ResultStatus.OK

    @property
    def is_not_found(self) -> bool:
        return self.status is ResultStatus.NOT_FOUND
