"""
Persistence Errors

One exception type carrying an ErrorKind tag. Callers branch on
``error.kind`` instead of on the exception class:

    try:
        await users.update(user_id, {"name": "Ada"}, QueryOptions(locking="optimistic"))
    except PersistenceError as error:
        if error.kind is ErrorKind.OPTIMISTIC_LOCK:
            ...
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Failure categories shared by every backend"""
    CONFIGURATION = "configuration"
    INVALID_REQUEST = "invalid_request"
    DUPLICATE_RECORD = "duplicate_record"
    RECORD_NOT_FOUND = "record_not_found"
    OPTIMISTIC_LOCK = "optimistic_lock"
    INTERNAL = "internal"


class PersistenceError(Exception):
    """Raised by repositories, connections and the transaction coordinator"""

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"PersistenceError({self.kind.name}, {self.message!r})"

    @classmethod
    def configuration(cls, message: str) -> 'PersistenceError':
        return cls(ErrorKind.CONFIGURATION, message)

    @classmethod
    def invalid_request(cls, message: str) -> 'PersistenceError':
        return cls(ErrorKind.INVALID_REQUEST, message)

    @classmethod
    def duplicate(cls, collection: str, entity_id: str) -> 'PersistenceError':
        return cls(
            ErrorKind.DUPLICATE_RECORD,
            f"{collection} record with id ({entity_id}) already exists"
        )

    @classmethod
    def not_found(cls, collection: str, entity_id: str) -> 'PersistenceError':
        return cls(
            ErrorKind.RECORD_NOT_FOUND,
            f"{collection} record with id ({entity_id}) not found"
        )

    @classmethod
    def optimistic_lock(cls) -> 'PersistenceError':
        return cls(ErrorKind.OPTIMISTIC_LOCK, "Optimistic lock > Record version mismatch")

    @classmethod
    def internal(cls, message: str, cause: Optional[BaseException] = None) -> 'PersistenceError':
        return cls(ErrorKind.INTERNAL, message, cause)


__all__ = ["ErrorKind", "PersistenceError"]
