"""Custom exception hierarchy and error taxonomy for the Warren filesystem layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Wire-level error codes reported to callers."""

    NOT_A_USER = "ERR_NOT_A_USER"
    DOES_NOT_EXIST = "ERR_DOES_NOT_EXIST"
    EXISTS = "ERR_EXISTS"
    NOT_READABLE = "ERR_NOT_READABLE"
    NOT_WRITEABLE = "ERR_NOT_WRITEABLE"
    NOT_OWNER = "ERR_NOT_OWNER"
    NOT_A_FOLDER = "ERR_NOT_A_FOLDER"
    NOT_A_FILE = "ERR_NOT_A_FILE"
    NOT_AUTHORIZED = "ERR_NOT_AUTHORIZED"
    INCOMPLETE_RENAME = "ERR_INCOMPLETE_RENAME"
    INVALID_JSON = "ERR_INVALID_JSON"
    TICKET_DOES_NOT_EXIST = "ERR_TICKET_DOES_NOT_EXIST"
    TICKET_EXISTS = "ERR_TICKET_EXISTS"


@dataclass(frozen=True)
class Violation:
    """A failed precondition and the subjects that failed it.

    Attributes:
        code: Which precondition failed.
        subjects: Offending subjects keyed by role (``"user"``, ``"paths"``,
            ``"users"``, ...).  Set-valued entries list exactly the members
            that failed the predicate, in input order.
    """

    code: ErrorCode
    subjects: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"error_code": self.code.value, **self.subjects}


class WarrenError(Exception):
    """Base exception for all Warren filesystem errors."""


class StorageError(WarrenError):
    """Raised on storage backend failures (connection, missing session, etc.)."""


class ValidationError(WarrenError):
    """Raised when an operation's preconditions are not met."""

    def __init__(self, violation: Violation) -> None:
        self.violation = violation
        details = ", ".join(f"{k}={v!r}" for k, v in violation.subjects.items())
        super().__init__(f"{violation.code.value}: {details}" if details else violation.code.value)

    @property
    def code(self) -> ErrorCode:
        return self.violation.code

    @property
    def subjects(self) -> dict[str, Any]:
        return self.violation.subjects

    def to_dict(self) -> dict[str, Any]:
        return self.violation.to_dict()
