"""
Persistence - Data Storage and Retrieval

💾 One Contract, Three Backends:
Create, read, update, delete and search records in MongoDB, Firestore or
local storage through the same repository contract and lifecycle rules.

Structure:
- errors.py: PersistenceError and its ErrorKind tags
- repositories/: contract, shared template, filter compiler, manager
- transactions/: Mongo unit of work
- backends/: Mongo, Firestore and local implementations

Example:
    from polystore.persistence import PersistenceManager, EntityStore

    manager = PersistenceManager()
    manager.configure(EntityStore.LOCAL)
    users = manager.get_repository(EntityStore.LOCAL, "users", User)

    user = await users.create(User(name="Ada", email="ada@example.com"))
"""

from .errors import ErrorKind, PersistenceError
from .repositories import (
    CrudRepository, TransactionalCrudRepository, EventfulRepository, BaseRepository,
    QueryOptions, DeletionOptions, LogicalOperator, SortOrder, RepositoryMetrics
)
from .transactions import MongoUnitOfWork, TransactionScope
from .backends import (
    MongoConnection, MongoRepository,
    LocalStorage, LocalStorageConnection, LocalStorageRepository
)
from .repositories.manager import PersistenceManager, EntityStore

__all__ = [
    "ErrorKind", "PersistenceError",
    "CrudRepository", "TransactionalCrudRepository", "EventfulRepository", "BaseRepository",
    "QueryOptions", "DeletionOptions", "LogicalOperator", "SortOrder", "RepositoryMetrics",
    "MongoUnitOfWork", "TransactionScope",
    "MongoConnection", "MongoRepository",
    "LocalStorage", "LocalStorageConnection", "LocalStorageRepository",
    "PersistenceManager", "EntityStore"
]
