"""
Configuration Management for polystore

🔧 Unified Configuration System:
Connection properties for each storage backend plus the application-level
settings (environment preset, logging). Every dataclass can be built
explicitly or from environment variables; explicit values win.
"""

from typing import Dict, Any, Optional, Type
from dataclasses import dataclass, field
from enum import Enum
import os

from ..entities.entity import Entity
from ..persistence.errors import PersistenceError

DEFAULT_APP_NAME = "app"
DEFAULT_STORAGE_PATH = "./db"


class Environment(Enum):
    """Application environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


def _default_mongo_options() -> Dict[str, Any]:
    return {
        "connectTimeoutMS": 20000,
        "serverSelectionTimeoutMS": 20000,
        "retryWrites": True,
    }


@dataclass
class MongoConnectionProperties:
    """
    Mongo connection settings.

    ``entities`` registers one Entity class per collection name; a
    repository for a collection missing here is a configuration error.
    """
    uri: Optional[str] = None
    database: Optional[str] = None
    app_name: Optional[str] = None
    entities: Dict[str, Type[Entity]] = field(default_factory=dict)
    connection_options: Dict[str, Any] = field(default_factory=_default_mongo_options)

    def validate(self) -> 'MongoConnectionProperties':
        if not self.uri:
            raise PersistenceError.configuration("Mongo connection requires a uri")
        if not self.database:
            raise PersistenceError.configuration("Mongo connection requires a database name")
        return self

    def register(self, collection: str, entity_class: Type[Entity]) -> 'MongoConnectionProperties':
        self.entities[collection] = entity_class
        return self

    @classmethod
    def from_environment(cls, **overrides) -> 'MongoConnectionProperties':
        """Create properties from POLYSTORE_MONGO_* variables"""
        properties = cls(
            uri=os.getenv('POLYSTORE_MONGO_URI'),
            database=os.getenv('POLYSTORE_MONGO_DATABASE'),
            app_name=os.getenv('POLYSTORE_APP_NAME'),
        )
        for key, value in overrides.items():
            if value is not None and hasattr(properties, key):
                setattr(properties, key, value)
        return properties


@dataclass
class FirestoreConnectionProperties:
    """
    Firestore connection settings.

    Only ``project_id`` reaches the client; credentials come from Google
    application default credentials (or the emulator). ``api_key``,
    ``auth_domain`` and ``app_name`` are optional and carried for apps that
    share one settings block with a Firebase web client.
    """
    project_id: Optional[str] = None
    api_key: Optional[str] = None
    auth_domain: Optional[str] = None
    app_name: Optional[str] = None
    emulator_endpoint: Optional[str] = None

    def validate(self) -> 'FirestoreConnectionProperties':
        if not self.project_id:
            raise PersistenceError.configuration("Firestore connection is missing: project_id")
        return self

    @classmethod
    def from_environment(cls, **overrides) -> 'FirestoreConnectionProperties':
        """Create properties from POLYSTORE_FIREBASE_* variables"""
        properties = cls(
            api_key=os.getenv('POLYSTORE_FIREBASE_API_KEY'),
            auth_domain=os.getenv('POLYSTORE_FIREBASE_AUTH_DOMAIN'),
            project_id=os.getenv('POLYSTORE_FIREBASE_PROJECT_ID'),
            app_name=os.getenv('POLYSTORE_APP_NAME'),
            emulator_endpoint=os.getenv('FIRESTORE_EMULATOR_HOST'),
        )
        for key, value in overrides.items():
            if value is not None and hasattr(properties, key):
                setattr(properties, key, value)
        return properties


@dataclass
class LocalStorageConnectionProperties:
    """Local blob storage settings"""
    app_name: str = DEFAULT_APP_NAME
    storage_path: str = DEFAULT_STORAGE_PATH

    def validate(self) -> 'LocalStorageConnectionProperties':
        if not self.app_name:
            raise PersistenceError.configuration("Local storage requires an app name")
        if not self.storage_path:
            raise PersistenceError.configuration("Local storage requires a storage path")
        return self

    @classmethod
    def from_environment(cls, **overrides) -> 'LocalStorageConnectionProperties':
        properties = cls(
            app_name=os.getenv('POLYSTORE_APP_NAME', DEFAULT_APP_NAME),
            storage_path=os.getenv('POLYSTORE_STORAGE_PATH', DEFAULT_STORAGE_PATH),
        )
        for key, value in overrides.items():
            if value is not None and hasattr(properties, key):
                setattr(properties, key, value)
        return properties


@dataclass
class ApplicationConfig:
    """Complete application configuration"""
    environment: Environment = Environment.DEVELOPMENT
    app_name: str = DEFAULT_APP_NAME
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def for_environment(cls, environment: Environment) -> 'ApplicationConfig':
        """Create configuration for specific environment"""
        config = cls(environment=environment)

        if environment == Environment.DEVELOPMENT:
            config.logging.level = "DEBUG"

        elif environment == Environment.TESTING:
            config.logging.level = "WARNING"

        elif environment == Environment.PRODUCTION:
            config.logging.level = "INFO"

        return config

    @classmethod
    def from_environment(cls) -> 'ApplicationConfig':
        """Create configuration from environment variables"""
        env_name = os.getenv('POLYSTORE_ENV', 'development')
        try:
            environment = Environment(env_name.lower())
        except ValueError as e:
            raise PersistenceError.configuration(f"Unknown environment: {env_name}") from e

        config = cls.for_environment(environment)

        # Override with environment variables
        if os.getenv('POLYSTORE_APP_NAME'):
            config.app_name = os.getenv('POLYSTORE_APP_NAME')

        if os.getenv('POLYSTORE_LOG_LEVEL'):
            config.logging.level = os.getenv('POLYSTORE_LOG_LEVEL').upper()

        if os.getenv('POLYSTORE_LOG_FILE'):
            config.logging.file_path = os.getenv('POLYSTORE_LOG_FILE')

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            "environment": self.environment.value,
            "app_name": self.app_name,
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "file_path": self.logging.file_path,
                "max_file_size": self.logging.max_file_size,
                "backup_count": self.logging.backup_count
            }
        }


# Export main components
__all__ = [
    "Environment", "LoggingConfig", "ApplicationConfig",
    "MongoConnectionProperties", "FirestoreConnectionProperties",
    "LocalStorageConnectionProperties", "DEFAULT_APP_NAME", "DEFAULT_STORAGE_PATH"
]
