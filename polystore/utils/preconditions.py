"""
Precondition assertions shared by repositories and connection objects.

Each helper takes the value(s) to check and either a message (raised as
``ValueError``) or a ready-made exception instance that is raised as is.
"""

from typing import Any, Union

ErrorSpec = Union[str, BaseException]


def _raise(error: ErrorSpec) -> None:
    if isinstance(error, BaseException):
        raise error
    raise ValueError(error)


def is_empty(value: Any) -> bool:
    """None, blank strings and empty collections count as empty"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def is_any_empty(*values: Any) -> bool:
    if not values:
        return True
    return any(is_empty(value) for value in values)


def require_non_null(value: Any, error: ErrorSpec) -> None:
    if value is None:
        _raise(error)


def require_non_empty(value: Any, error: ErrorSpec) -> None:
    """Lists and tuples are checked element by element"""
    require_non_null(value, error)
    if isinstance(value, (list, tuple)):
        if is_any_empty(*value):
            _raise(error)
        return
    if is_empty(value):
        _raise(error)


def require_true(condition: Any, error: ErrorSpec) -> None:
    if not condition:
        _raise(error)


__all__ = [
    "is_empty", "is_any_empty", "require_non_null",
    "require_non_empty", "require_true"
]
