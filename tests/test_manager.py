"""
Persistence Manager Tests

Configuration lifecycle of the manager: first configuration wins, repository
lookup and caching, errors for unconfigured backends.
"""

import logging

import pytest

from conftest import User
from polystore.infrastructure.configuration import LocalStorageConnectionProperties
from polystore.persistence.backends.local import LocalStorageRepository
from polystore.persistence.backends.mongo import MongoRepository
from polystore.persistence.errors import ErrorKind, PersistenceError
from polystore.persistence.repositories.manager import BACKENDS, BackendConfig, EntityStore, PersistenceManager


@pytest.fixture
def manager():
    manager = PersistenceManager()
    yield manager
    manager.shutdown()


class TestConfigure:
    def test_unconfigured_backend_is_configuration_error(self, manager):
        with pytest.raises(PersistenceError) as error:
            manager.get_repository(EntityStore.LOCAL, "users")

        assert error.value.kind is ErrorKind.CONFIGURATION
        assert "not initialized" in str(error.value)
        assert not manager.is_configured(EntityStore.LOCAL)

    def test_first_configuration_wins(self, manager, local_properties, tmp_path, caplog):
        first = manager.configure(EntityStore.LOCAL, local_properties)

        with caplog.at_level(logging.WARNING, logger="polystore"):
            second = manager.configure(
                EntityStore.LOCAL,
                LocalStorageConnectionProperties(app_name="other", storage_path=str(tmp_path / "other"))
            )

        assert second is first
        assert first.properties.app_name == "testapp"
        assert "already configured" in caplog.text

    def test_same_configuration_does_not_warn(self, manager, local_properties, caplog):
        manager.configure(EntityStore.LOCAL, local_properties)

        with caplog.at_level(logging.WARNING, logger="polystore"):
            manager.configure(EntityStore.LOCAL, local_properties)
            manager.configure(EntityStore.LOCAL)

        assert caplog.text == ""

    def test_invalid_properties_are_rejected(self, manager):
        with pytest.raises(PersistenceError) as error:
            manager.configure(EntityStore.LOCAL, LocalStorageConnectionProperties(app_name=""))

        assert error.value.kind is ErrorKind.CONFIGURATION
        assert not manager.is_configured(EntityStore.LOCAL)

    def test_missing_backend_package_is_configuration_error(self, manager, monkeypatch):
        monkeypatch.setitem(BACKENDS, EntityStore.FIRESTORE, BackendConfig(
            module="polystore_missing_backend",
            connection_class="Connection",
            repository_class="Repository",
            requirement="polystore-missing",
        ))

        with pytest.raises(PersistenceError) as error:
            manager.configure(EntityStore.FIRESTORE)

        assert error.value.kind is ErrorKind.CONFIGURATION
        assert "polystore-missing" in str(error.value)


class TestRepositories:
    def test_local_repository_is_cached(self, manager, local_properties):
        manager.configure(EntityStore.LOCAL, local_properties)

        users = manager.get_repository(EntityStore.LOCAL, "users", User)

        assert isinstance(users, LocalStorageRepository)
        assert users.entity_class is User
        assert manager.get_repository(EntityStore.LOCAL, "users", User) is users
        assert manager.get_repository(EntityStore.LOCAL, "orders", User) is not users

    def test_mongo_repository_uses_registered_entity(self, manager, mongo_properties, mongo_client):
        manager.configure(EntityStore.MONGO, mongo_properties, client=mongo_client)

        users = manager.get_repository(EntityStore.MONGO, "users")

        assert isinstance(users, MongoRepository)
        assert users.entity_class is User

    def test_mongo_unregistered_collection(self, manager, mongo_properties, mongo_client):
        manager.configure(EntityStore.MONGO, mongo_properties, client=mongo_client)

        with pytest.raises(PersistenceError) as error:
            manager.get_repository(EntityStore.MONGO, "orders")

        assert error.value.kind is ErrorKind.CONFIGURATION
        assert "orders" in str(error.value)

    @pytest.mark.asyncio
    async def test_backend_status_reports_metrics(self, manager, local_properties):
        manager.configure(EntityStore.LOCAL, local_properties)
        users = manager.get_repository(EntityStore.LOCAL, "users", User)
        await users.create(User(name="Ada"))

        status = await manager.get_backend_status()

        assert status["local"]["connected"] is True
        assert status["local"]["repositories"]["users"]["successful_operations"] == 1

    def test_shutdown_closes_and_forgets(self, manager, mongo_properties, mongo_client):
        manager.configure(EntityStore.MONGO, mongo_properties, client=mongo_client)

        manager.shutdown()

        assert mongo_client.closed
        assert not manager.is_configured(EntityStore.MONGO)
