"""
Entity Lifecycle Manager

Stamps the bookkeeping fields of a storage document before it reaches a
backend. All functions mutate the dict they are given and return it; none
touch backend state.

Invariants:
- ``dateCreated`` is written once and never changes afterwards
- ``version`` is 1 on create and grows by exactly 1 on every later write
- ``dateDeleted`` is set iff ``deleted`` is true
"""

import time
from typing import Any, Dict, Mapping, Optional

from .entity import DATE_CREATED, DATE_DELETED, DATE_UPDATED, DELETED, ID, VERSION

# Fields a partial update may never overwrite; deletion is owned by mark_deleted
PINNED_FIELDS = (ID, VERSION, DATE_CREATED, DELETED, DATE_DELETED)


def now_millis() -> int:
    """Current time as integer milliseconds since the epoch"""
    return time.time_ns() // 1_000_000


def next_version(version: Optional[int]) -> int:
    return 1 if version is None else version + 1


def stamp_for_write(document: Dict[str, Any], now: Optional[int] = None) -> Dict[str, Any]:
    """Bump the version and refresh timestamps; required on every create and update"""
    now = now_millis() if now is None else now
    document[VERSION] = next_version(document.get(VERSION))
    if not document.get(DATE_CREATED):
        document[DATE_CREATED] = now
    document[DATE_UPDATED] = now
    if document.get(DELETED) is None:
        document[DELETED] = False
    return document


def mark_deleted(document: Dict[str, Any], now: Optional[int] = None) -> Dict[str, Any]:
    """Flag the document as soft-deleted; callers stamp it afterwards"""
    document[DELETED] = True
    document[DATE_DELETED] = now_millis() if now is None else now
    return document


def merge_for_update(current: Mapping[str, Any], partial: Mapping[str, Any]) -> Dict[str, Any]:
    """Overlay a partial update on the stored record, keeping pinned fields"""
    merged = {**current, **partial}
    for field in PINNED_FIELDS:
        if field in current:
            merged[field] = current[field]
        else:
            merged.pop(field, None)
    return merged


def clear_deletion(document: Dict[str, Any]) -> Dict[str, Any]:
    """New records always start live, whatever deletion fields the caller sent"""
    document.pop(DELETED, None)
    document.pop(DATE_DELETED, None)
    return document


__all__ = [
    "now_millis", "next_version", "stamp_for_write", "mark_deleted",
    "merge_for_update", "clear_deletion", "PINNED_FIELDS"
]
