# Error taxonomy and the Outcome type returned by service operations

from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, PyEnum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    UNAVAILABLE = "unavailable"


class Reason(str, PyEnum):
    MISSING_HOST = "missing_host"
    INVALID_INPUT = "invalid_input"
    MOMENT_NOT_FOUND = "moment_not_found"
    CONNECTION_NOT_FOUND = "connection_not_found"
    FULL = "full"
    ALREADY_HOST = "already_host"
    ALREADY_JOINED = "already_joined"
    MOMENT_CLOSED = "moment_closed"
    DUPLICATE_FEEDBACK = "duplicate_feedback"
    NOT_CONNECTED = "not_connected"
    NOT_HOST = "not_host"
    NOT_OWNER = "not_owner"
    UNAUTHENTICATED = "unauthenticated"
    USER_NOT_FOUND = "user_not_found"
    STORE_DOWN = "store_down"


HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.UNAVAILABLE: 503,
}


class DomainError(Exception):
    """Expected business rejection (full, already joined, ...). Raised in crud, returned by services."""

    kind = ErrorKind.VALIDATION

    def __init__(self, reason: Reason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message

    @property
    def status_code(self) -> int:
        # identified but not allowed
        if self.reason in (Reason.NOT_HOST, Reason.NOT_OWNER):
            return 403
        return HTTP_STATUS[self.kind]

    def to_detail(self) -> Dict[str, str]:
        return {"kind": self.kind.value, "reason": self.reason.value, "message": self.message}


class ValidationFailed(DomainError):
    kind = ErrorKind.VALIDATION


class NotFound(DomainError):
    kind = ErrorKind.NOT_FOUND


class Conflict(DomainError):
    kind = ErrorKind.CONFLICT


class Unauthorized(DomainError):
    kind = ErrorKind.UNAUTHORIZED


class StoreUnavailable(Exception):
    """The store could not be reached. Not a business outcome: propagates so callers can retry."""

    kind = ErrorKind.UNAVAILABLE
    reason = Reason.STORE_DOWN


@dataclass
class Outcome(Generic[T]):
    """
    Result of a service operation.

    changes / pushes are side effects to dispatch after commit
    (realtime change events, push messages). A failed outcome carries none.
    """

    value: Optional[T] = None
    error: Optional[DomainError] = None
    changes: List[Any] = field(default_factory=list)
    pushes: List[Any] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> Optional[Reason]:
        return self.error.reason if self.error is not None else None

    @classmethod
    def fail(cls, error: DomainError) -> "Outcome[T]":
        return cls(error=error)
