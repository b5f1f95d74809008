"""
Duplicate Guard

Pre-write checks that keep ids unique: collisions inside one batch payload,
and caller-supplied ids that already belong to a live record.
"""

from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence
import logging

from ...entities.entity import ID
from ...utils import generate_id
from ..errors import PersistenceError
from .interface import QueryOptions

logger = logging.getLogger(__name__)

DUPLICATES_IN_PAYLOAD = "Duplicate records found in payload"


def _composite_key(item: Mapping[str, Any], keys: Sequence[str]) -> tuple:
    # An absent component gets a fresh id so items without ids never collide
    return tuple(
        item.get(key) if item.get(key) is not None else generate_id()
        for key in keys
    )


def reject_batch_duplicates(items: Iterable[Mapping[str, Any]], keys: Sequence[str] = (ID,)) -> None:
    """Raise invalid-request when two items share the same composite key"""
    items = list(items)
    unique = {_composite_key(item, keys) for item in items}
    if len(unique) != len(items):
        logger.warning(f"Rejected batch of {len(items)} with {len(items) - len(unique)} duplicate key(s)")
        raise PersistenceError.invalid_request(DUPLICATES_IN_PAYLOAD)


Loader = Callable[[str, QueryOptions], Awaitable[Optional[Mapping[str, Any]]]]


async def reject_existing_id(load: Loader, collection: str, entity_id: str,
                             options: Optional[QueryOptions] = None) -> None:
    """
    Raise duplicate-record when a live record already holds this id.

    ``load`` is a repository's raw document lookup (``_load``); the check
    runs inside the calling operation and is not counted on its own.
    """
    document = await load(entity_id, options or QueryOptions())
    if document is not None:
        raise PersistenceError.duplicate(collection, entity_id)


__all__ = ["reject_batch_duplicates", "reject_existing_id", "DUPLICATES_IN_PAYLOAD"]
