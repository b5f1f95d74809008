"""
Infrastructure - configuration and logging

🔧 Cross-cutting concerns:
- configuration.py: backend connection properties and application settings
- logging.py: handler setup for the polystore logger tree
"""

from .configuration import (
    Environment, LoggingConfig, ApplicationConfig,
    MongoConnectionProperties, FirestoreConnectionProperties,
    LocalStorageConnectionProperties
)
from .logging import configure_logging

__all__ = [
    "Environment", "LoggingConfig", "ApplicationConfig",
    "MongoConnectionProperties", "FirestoreConnectionProperties",
    "LocalStorageConnectionProperties", "configure_logging"
]
