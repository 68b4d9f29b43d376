"""Typed results for the match engine.

Engine operations never raise across their public boundary. They return a
``Result`` whose ``error`` (when set) carries one of the ``ErrorCode`` values
and the user-facing reason string, so HTTP and socket layers can render it
without inspecting stack traces.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar('T')


class ErrorCode(str, Enum):
    NOT_FOUND = 'NOT_FOUND'
    INVALID_STATE = 'INVALID_STATE'
    UNAUTHORIZED = 'UNAUTHORIZED'
    TIMING_VIOLATION = 'TIMING_VIOLATION'
    DUPLICATE_SUBMISSION = 'DUPLICATE_SUBMISSION'
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    STORE_ERROR = 'STORE_ERROR'
    UNKNOWN = 'UNKNOWN'


HTTP_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_STATE: 409,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.TIMING_VIOLATION: 409,
    ErrorCode.DUPLICATE_SUBMISSION: 409,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.STORE_ERROR: 503,
    ErrorCode.UNKNOWN: 500,
}


@dataclass(frozen=True)
class EngineError:
    code: ErrorCode
    message: str
    details: Optional[Any] = None

    @property
    def http_status(self) -> int:
        return HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code.value}


@dataclass(frozen=True)
class Result(Generic[T]):
    data: Optional[T] = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> 'Result[T]':
        return cls(data=data)

    @classmethod
    def failure(cls, code: ErrorCode, message: str, details: Any = None) -> 'Result[T]':
        return cls(error=EngineError(code, message, details))


# Reason strings shared by submit() and can_submit()
QUESTION_NOT_FOUND = 'Question not found'
NOT_YET_DISPLAYED = 'Question not yet displayed'
QUESTION_CLOSED = 'Question closed'
TIME_LIMIT_EXCEEDED = 'Time limit exceeded'
ALREADY_ANSWERED = 'Already answered'
MATCH_COMPLETED = 'Match is already completed'
RESULTS_PENDING = 'Answers are hidden until the question closes'


def not_found(what: str) -> Result:
    return Result.failure(ErrorCode.NOT_FOUND, f'{what} not found')


def unauthorized(message: str = 'Only the host may change this match') -> Result:
    return Result.failure(ErrorCode.UNAUTHORIZED, message)


def invalid_state(message: str) -> Result:
    return Result.failure(ErrorCode.INVALID_STATE, message)


def validation_error(message: str) -> Result:
    return Result.failure(ErrorCode.VALIDATION_ERROR, message)


def store_error(exc: Exception) -> Result:
    return Result.failure(ErrorCode.STORE_ERROR, 'Storage operation failed', details=str(exc))
