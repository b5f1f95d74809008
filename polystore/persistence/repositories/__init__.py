"""
Persistence Repositories - Data Access Layer

💾 Clean Data Access Patterns:
The repository contract shared by every backend, the template that
implements it once, and the pieces it is built from.

Components:
- CrudRepository: Standard interface for all persistence backends
- BaseRepository: lifecycle, duplicate guard and locking over storage primitives
- filters: backend-neutral query plans and in-process evaluation
- guards: duplicate detection
- PersistenceManager: one connection per backend, repositories per collection
"""

from .interface import (
    CrudRepository, TransactionalCrudRepository, EventfulRepository,
    QueryOptions, DeletionOptions, LogicalOperator, SortOrder, OPTIMISTIC
)
from .filters import QueryPlan, compile_query
from .guards import reject_batch_duplicates, reject_existing_id
from .base import BaseRepository, RepositoryMetrics

__all__ = [
    # Interface components
    "CrudRepository", "TransactionalCrudRepository", "EventfulRepository",
    "QueryOptions", "DeletionOptions", "LogicalOperator", "SortOrder", "OPTIMISTIC",

    # Query and guard components
    "QueryPlan", "compile_query", "reject_batch_duplicates", "reject_existing_id",

    # Base components
    "BaseRepository", "RepositoryMetrics"
]
