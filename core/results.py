"""Uniform result type returned across the data-access boundary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorCode(StrEnum):
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_APPLICATION = "DUPLICATE_APPLICATION"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONTRACT_REQUIRED = "CONTRACT_REQUIRED"
    STORAGE_ERROR = "STORAGE_ERROR"
    DB_ERROR = "DB_ERROR"


HTTP_STATUS = {
    ErrorCode.NOT_AUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.DUPLICATE_APPLICATION: 409,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.CONTRACT_REQUIRED: 409,
    ErrorCode.STORAGE_ERROR: 502,
    ErrorCode.DB_ERROR: 500,
}


class MarketplaceError(Exception):
    """Error with error code for categorization."""

    def __init__(self, message: str, error_code: str = ErrorCode.VALIDATION_ERROR) -> None:
        super().__init__(message)
        self.error_code = error_code


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of a mutation: success flag plus data or error."""

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> Result[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: str = ErrorCode.DB_ERROR) -> Result[T]:
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_error(cls, error: MarketplaceError) -> Result[T]:
        return cls(success=False, error=str(error), error_code=error.error_code)

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        return HTTP_STATUS.get(self.error_code, 500)
