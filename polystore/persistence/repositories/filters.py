"""
Filter Compiler

🔍 Backend-Neutral Query Plans:
A caller filter (field -> required value) plus QueryOptions compiles into a
QueryPlan: equality predicates, a logical operator, orderings and a page
window. Each backend translates the plan into its native query; the local
backend and any operator a backend cannot express natively use the
in-process evaluator below.

Semantics shared by every backend:
- records flagged ``deleted`` never match
- AND: every predicate holds
- OR: at least one predicate holds
- NOR: no predicate holds
- an empty filter matches every non-deleted record
- a field missing from a record never equals anything
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from ...entities.entity import DATE_CREATED, DELETED, Entity
from ..errors import PersistenceError
from .interface import Filter, LogicalOperator, QueryOptions, SortOrder

logger = logging.getLogger(__name__)

Predicate = Tuple[str, Any]
Ordering = Tuple[str, SortOrder]

_MISSING = object()


@dataclass
class QueryPlan:
    """Compiled, validated form of a filter and its options"""
    predicates: List[Predicate] = field(default_factory=list)
    operator: LogicalOperator = LogicalOperator.AND
    orders: List[Ordering] = field(default_factory=lambda: [(DATE_CREATED, SortOrder.DESC)])
    limit: Optional[int] = None
    offset: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.predicates

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.predicates)


def normalize_filter(filter: Optional[Filter],
                     aliases: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Turn a caller filter into a dict keyed by stored field names.

    Entities contribute only their explicitly set fields. Python attribute
    names are mapped to stored names through ``aliases``.
    """
    if filter is None:
        return {}
    if isinstance(filter, Entity):
        return filter.to_partial()
    if not isinstance(filter, Mapping):
        raise PersistenceError.invalid_request(
            f"Filter must be a mapping or an Entity, got {type(filter).__name__}"
        )

    aliases = aliases or {}
    normalized: Dict[str, Any] = {}
    for key, value in filter.items():
        if not isinstance(key, str) or not key:
            raise PersistenceError.invalid_request(f"Invalid filter field: {key!r}")
        if key.startswith("$"):
            raise PersistenceError.invalid_request(f"Operator keys are not allowed in filters: {key}")
        if isinstance(value, Mapping) and any(
            isinstance(k, str) and k.startswith("$") for k in value
        ):
            raise PersistenceError.invalid_request(
                f"Operator documents are not allowed as filter values: {key}"
            )
        normalized[aliases.get(key, key)] = value
    return normalized


def compile_query(filter: Optional[Filter], options: Optional[QueryOptions] = None,
                  aliases: Optional[Mapping[str, str]] = None) -> QueryPlan:
    """Validate a filter and build its QueryPlan"""
    options = options or QueryOptions()
    predicates = list(normalize_filter(filter, aliases).items())

    orders: List[Ordering] = [(DATE_CREATED, SortOrder.DESC)]
    for name, order in (options.sort_by or {}).items():
        stored = (aliases or {}).get(name, name)
        if any(stored == existing for existing, _ in orders):
            continue
        orders.append((stored, SortOrder(order)))

    if options.limit is not None and options.limit < 0:
        raise PersistenceError.invalid_request("limit must not be negative")
    if options.offset < 0:
        raise PersistenceError.invalid_request("offset must not be negative")

    plan = QueryPlan(
        predicates=predicates,
        operator=options.logical_operator,
        orders=orders,
        limit=options.limit,
        offset=options.offset or 0,
    )
    logger.debug(f"Compiled query plan: {plan}")
    return plan


def _equals(document: Mapping[str, Any], name: str, value: Any) -> bool:
    found = document.get(name, _MISSING)
    return found is not _MISSING and found == value


def matches(document: Mapping[str, Any], plan: QueryPlan) -> bool:
    """Evaluate a plan against one stored document"""
    if document.get(DELETED) is True:
        return False
    if plan.is_empty:
        return True

    hits = (_equals(document, name, value) for name, value in plan.predicates)
    if plan.operator is LogicalOperator.AND:
        return all(hits)
    if plan.operator is LogicalOperator.OR:
        return any(hits)
    return not any(hits)


def _sort_key(value: Any) -> Tuple[Any, ...]:
    """
    Order values across types the way Mongo does:
    missing/null < numbers < strings < objects < arrays < booleans.
    """
    if value is None or value is _MISSING:
        return (0,)
    if isinstance(value, bool):
        return (5, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, Mapping):
        return (3, tuple((str(key), _sort_key(item)) for key, item in value.items()))
    if isinstance(value, (list, tuple)):
        return (4, tuple(_sort_key(item) for item in value))
    return (6, str(value))


def order(documents: Iterable[Mapping[str, Any]], orders: List[Ordering]) -> List[Mapping[str, Any]]:
    """Sort documents by a list of orderings, first ordering most significant"""
    ordered = list(documents)
    for name, direction in reversed(orders):
        ordered.sort(
            key=lambda document: _sort_key(document.get(name, _MISSING)),
            reverse=direction is SortOrder.DESC,
        )
    return ordered


def paginate(documents: List[Any], offset: int = 0, limit: Optional[int] = None) -> List[Any]:
    end = None if limit is None else offset + limit
    return documents[offset:end]


def evaluate(documents: Iterable[Mapping[str, Any]], plan: QueryPlan) -> List[Mapping[str, Any]]:
    """Filter, order and page documents in-process"""
    selected = [document for document in documents if matches(document, plan)]
    return paginate(order(selected, plan.orders), plan.offset, plan.limit)


__all__ = [
    "QueryPlan", "Predicate", "Ordering",
    "normalize_filter", "compile_query", "matches", "order", "paginate", "evaluate"
]
