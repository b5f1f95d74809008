"""
polystore - one async CRUD contract over MongoDB, Firestore and local storage

🎯 Entity-Centric Persistence:
- entities/: the Entity model and its lifecycle rules
- persistence/: repositories, backends, transactions
- infrastructure/: configuration and logging
- utils/: Option, preconditions, id generation
"""

from .entities import Entity
from .persistence import (
    ErrorKind, PersistenceError, PersistenceManager, EntityStore,
    QueryOptions, DeletionOptions, LogicalOperator, SortOrder,
    MongoConnection, MongoRepository, MongoUnitOfWork,
    LocalStorageConnection, LocalStorageRepository
)
from .infrastructure import (
    ApplicationConfig, Environment, LoggingConfig, configure_logging,
    MongoConnectionProperties, FirestoreConnectionProperties,
    LocalStorageConnectionProperties
)
from .utils import Option

__version__ = "0.1.0"

__all__ = [
    "Entity", "Option",
    "ErrorKind", "PersistenceError", "PersistenceManager", "EntityStore",
    "QueryOptions", "DeletionOptions", "LogicalOperator", "SortOrder",
    "MongoConnection", "MongoRepository", "MongoUnitOfWork",
    "LocalStorageConnection", "LocalStorageRepository",
    "ApplicationConfig", "Environment", "LoggingConfig", "configure_logging",
    "MongoConnectionProperties", "FirestoreConnectionProperties",
    "LocalStorageConnectionProperties"
]
