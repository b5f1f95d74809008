"""
Option - Zero-or-One Result Wrapper

Every read operation of a repository returns an Option instead of a bare
``None`` so callers can compose lookups (map, filter, or_else_raise, ...)
without unwrapping early. A present Option never wraps ``None``.
"""

from typing import Any, Callable, Generic, Optional, TypeVar

from .preconditions import require_non_null, require_true

T = TypeVar('T')
U = TypeVar('U')


class Option(Generic[T]):
    """Container holding either exactly one non-null value or nothing."""

    __slots__ = ("_value",)

    _EMPTY: 'Option[Any]'

    def __init__(self, value: Optional[T] = None):
        self._value = value

    @classmethod
    def of(cls, value: T) -> 'Option[T]':
        """Wrap a value that must not be None"""
        require_non_null(value, "Value cannot be null")
        return cls(value)

    @classmethod
    def of_nullable(cls, value: Optional[T]) -> 'Option[T]':
        """Wrap a value, returning the empty Option for None"""
        return cls._EMPTY if value is None else cls(value)

    @classmethod
    def empty(cls) -> 'Option[T]':
        return cls._EMPTY

    def is_present(self) -> bool:
        return self._value is not None

    def is_empty(self) -> bool:
        return self._value is None

    def get(self) -> T:
        require_non_null(self._value, "Value is not present")
        return self._value

    def map(self, mapper: Callable[[T], Optional[U]]) -> 'Option[U]':
        require_non_null(mapper, "Mapper cannot be null")
        if self.is_empty():
            return Option.empty()
        return Option.of_nullable(mapper(self._value))

    def flat_map(self, mapper: Callable[[T], 'Option[U]']) -> 'Option[U]':
        require_non_null(mapper, "Mapper cannot be null")
        if self.is_empty():
            return Option.empty()
        result = mapper(self._value)
        require_true(isinstance(result, Option), "Mapper must return an Option")
        return result

    def filter(self, predicate: Callable[[T], bool]) -> 'Option[T]':
        require_non_null(predicate, "Predicate cannot be null")
        if self.is_empty():
            return self
        return self if predicate(self._value) else Option.empty()

    def or_else(self, default: T) -> T:
        return self._value if self.is_present() else default

    def or_else_get(self, supplier: Callable[[], T]) -> T:
        return self._value if self.is_present() else supplier()

    def or_else_raise(self, error: BaseException) -> T:
        """Return the value or raise the given exception"""
        if self.is_empty():
            raise error
        return self._value

    def if_present_raise(self, error: BaseException) -> None:
        """Raise the given exception when a value is present"""
        if self.is_present():
            raise error

    def if_present(self, consumer: Callable[[T], Any]) -> None:
        if self.is_present():
            consumer(self._value)

    def if_present_or_else(self, consumer: Callable[[T], Any], action: Callable[[], Any]) -> None:
        if self.is_present():
            consumer(self._value)
        else:
            action()

    def __bool__(self) -> bool:
        return self.is_present()

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Option):
            return False
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"Option({self._value!r})" if self.is_present() else "Option.empty"


Option._EMPTY = Option(None)

# Export main components
__all__ = ["Option"]
