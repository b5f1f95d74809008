"""
Persistence Manager - Backend Factory and Coordination

🏭 Backend Factory and Service Coordination:
The manager owns at most one connection object per backend and hands out
repositories for named collections. The first configuration given for a
backend wins for the manager's lifetime; later calls get the existing
connection back and a warning is logged.

    manager = PersistenceManager()
    manager.configure(EntityStore.MONGO, MongoConnectionProperties(
        uri="mongodb://localhost:27017", database="app", entities={"users": User}
    ))
    users = manager.get_repository(EntityStore.MONGO, "users")
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from importlib import import_module
from typing import Any, Dict, Optional, Tuple, Type
import logging

from ...entities.entity import Entity
from ..errors import PersistenceError
from .interface import CrudRepository

logger = logging.getLogger(__name__)


class EntityStore(Enum):
    """Available storage backends"""
    MONGO = "mongo"
    FIRESTORE = "firestore"
    LOCAL = "local"


@dataclass
class BackendConfig:
    """Where a backend's connection and repository classes live"""
    module: str
    connection_class: str
    repository_class: str
    requirement: str


BACKENDS: Dict[EntityStore, BackendConfig] = {
    EntityStore.MONGO: BackendConfig(
        module="polystore.persistence.backends.mongo",
        connection_class="MongoConnection",
        repository_class="MongoRepository",
        requirement="motor",
    ),
    EntityStore.FIRESTORE: BackendConfig(
        module="polystore.persistence.backends.firestore",
        connection_class="FirestoreConnection",
        repository_class="FirestoreRepository",
        requirement="google-cloud-firestore",
    ),
    EntityStore.LOCAL: BackendConfig(
        module="polystore.persistence.backends.local",
        connection_class="LocalStorageConnection",
        repository_class="LocalStorageRepository",
        requirement="polystore",
    ),
}


class PersistenceManager:
    """
    Central persistence manager that coordinates all persistence backends.

    This manager provides:
    - One shared connection object per backend ("first init wins")
    - Repository lookup by backend and collection name
    - Backend status and metrics
    """

    def __init__(self):
        self._connections: Dict[EntityStore, Any] = {}
        self._properties: Dict[EntityStore, Any] = {}
        self._repositories: Dict[Tuple[EntityStore, str, Optional[type]], CrudRepository] = {}

    def configure(self, store: EntityStore, properties: Any = None, **connection_options) -> Any:
        """
        Create the connection object for a backend.

        Args:
            store: Backend to configure
            properties: Connection properties; read from the environment when None
            connection_options: Extra keyword arguments for the connection (e.g. a client)

        Returns:
            The backend's connection object
        """
        if store in self._connections:
            if properties is not None and properties != self._properties.get(store):
                logger.warning(f"{store.value} backend already configured; ignoring new properties")
            return self._connections[store]

        connection_class = self._load_class(store, BACKENDS[store].connection_class)
        connection = connection_class(properties, **connection_options)
        self._connections[store] = connection
        self._properties[store] = connection.properties
        logger.info(f"Configured {store.value} backend")
        return connection

    def is_configured(self, store: EntityStore) -> bool:
        return store in self._connections

    def get_connection(self, store: EntityStore) -> Any:
        connection = self._connections.get(store)
        if connection is None:
            raise PersistenceError.configuration(f"{store.value} backend not initialized")
        return connection

    def get_repository(self, store: EntityStore, collection: str,
                       entity_class: Optional[Type[Entity]] = None) -> CrudRepository:
        """
        Get the repository for a collection of a configured backend.

        Raises:
            PersistenceError(CONFIGURATION): backend not configured, or for
            Mongo, collection not registered
        """
        key = (store, collection, entity_class)
        if key in self._repositories:
            return self._repositories[key]

        connection = self.get_connection(store)
        repository_class = self._load_class(store, BACKENDS[store].repository_class)
        if entity_class is None:
            repository = repository_class(connection, collection)
        else:
            repository = repository_class(connection, collection, entity_class)
        self._repositories[key] = repository
        return repository

    def _load_class(self, store: EntityStore, class_name: str) -> Type:
        config = BACKENDS[store]
        try:
            module = import_module(config.module)
        except ImportError as e:
            raise PersistenceError.configuration(
                f"{store.value} backend requires the {config.requirement} package: {e}"
            ) from e
        return getattr(module, class_name)

    # Diagnostics and monitoring
    async def get_backend_status(self) -> Dict[str, Dict[str, Any]]:
        """Get status of all configured backends"""
        status = {}
        for store, connection in self._connections.items():
            repositories = [
                repository for (repo_store, _, _), repository in self._repositories.items()
                if repo_store is store
            ]
            status[store.value] = {
                "connected": connection.is_connected(),
                "repositories": {
                    repository.collection: await repository.get_metrics()
                    for repository in repositories
                },
                "last_check": datetime.now().isoformat()
            }
        return status

    def shutdown(self):
        """Close clients and forget every connection"""
        logger.info("Shutting down PersistenceManager")
        for connection in self._connections.values():
            close = getattr(connection, "close", None)
            if close is not None:
                close()
        self._connections.clear()
        self._properties.clear()
        self._repositories.clear()
        logger.info("PersistenceManager shutdown complete")


# Export main components
__all__ = ["PersistenceManager", "EntityStore", "BackendConfig", "BACKENDS"]
