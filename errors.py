"""Error kinds shared by the validator, the reading table and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence


class ServiceError(Exception):
    """Base class; ``kind`` is the stable string surfaced to clients."""

    kind = "ServiceError"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class FieldViolation:
    field: str
    message: str
    rejected_value: Any = None


class ValidationError(ServiceError):
    kind = "ValidationError"
    status_code = 400

    def __init__(
        self,
        violations: Sequence[FieldViolation],
        message: str = "Invalid data provided",
    ) -> None:
        super().__init__(message)
        self.violations: List[FieldViolation] = list(violations)

    @property
    def fields(self) -> list[str]:
        return [violation.field for violation in self.violations]


class AuthError(ServiceError):
    kind = "AuthError"
    status_code = 401


class NotFoundError(ServiceError):
    kind = "NotFoundError"
    status_code = 404


class DuplicateError(ServiceError):
    kind = "DuplicateError"
    status_code = 409


class StoreError(ServiceError):
    kind = "StoreError"
    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
