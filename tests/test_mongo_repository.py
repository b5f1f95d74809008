"""
Mongo Repository Tests

Runs MongoRepository against mongomock and checks the query documents the
filter translator produces.
"""

import asyncio

import pytest
from pymongo import ASCENDING, DESCENDING

from conftest import MockMotorClient, User
from polystore.infrastructure.configuration import MongoConnectionProperties
from polystore.persistence.backends.mongo import (
    MongoConnection, MongoRepository, to_mongo_filter, to_mongo_sort
)
from polystore.persistence.errors import ErrorKind, PersistenceError
from polystore.persistence.repositories.filters import compile_query
from polystore.persistence.repositories.interface import (
    LogicalOperator, QueryOptions, SortOrder
)


class TestMongoQueryTranslation:
    def test_and_filter_uses_eq_and_exists(self):
        plan = compile_query({"name": "Ada", "email": "e1"})

        assert to_mongo_filter(plan) == {
            "deleted": {"$ne": True},
            "name": {"$eq": "Ada", "$exists": True},
            "email": {"$eq": "e1", "$exists": True},
        }

    def test_empty_filter_only_excludes_deleted(self):
        for operator in LogicalOperator:
            plan = compile_query({}, QueryOptions(logical_operator=operator))
            assert to_mongo_filter(plan) == {"deleted": {"$ne": True}}

    def test_or_and_nor_are_nested_under_and(self):
        or_plan = compile_query({"name": "n1"}, QueryOptions(logical_operator=LogicalOperator.OR))
        nor_plan = compile_query({"name": "n1"}, QueryOptions(logical_operator=LogicalOperator.NOR))

        assert to_mongo_filter(or_plan) == {
            "$and": [{"deleted": {"$ne": True}}, {"$or": [{"name": {"$eq": "n1", "$exists": True}}]}]
        }
        assert to_mongo_filter(nor_plan) == {
            "$and": [{"deleted": {"$ne": True}}, {"$nor": [{"name": {"$eq": "n1", "$exists": True}}]}]
        }

    def test_deleted_predicate_keeps_not_deleted_clause(self):
        plan = compile_query({"deleted": True})

        query = to_mongo_filter(plan)

        assert query["$and"][0] == {"deleted": {"$ne": True}}

    def test_sort_starts_with_date_created_descending(self):
        plan = compile_query({}, QueryOptions(sort_by={"name": SortOrder.ASC}))

        assert to_mongo_sort(plan) == [("dateCreated", DESCENDING), ("name", ASCENDING)]


class TestMongoRegistration:
    def test_unregistered_collection_is_configuration_error(self, mongo_connection):
        with pytest.raises(PersistenceError) as error:
            MongoRepository(mongo_connection, "orders")

        assert error.value.kind is ErrorKind.CONFIGURATION

    def test_missing_uri_is_configuration_error(self):
        with pytest.raises(PersistenceError) as error:
            MongoConnection(MongoConnectionProperties(database="db", entities={"users": User}))

        assert error.value.kind is ErrorKind.CONFIGURATION

    def test_registered_entity_class_is_used(self, mongo_users):
        assert mongo_users.entity_class is User
        assert mongo_users.is_connected()


class TestMongoCrud:
    @pytest.mark.asyncio
    async def test_create_stores_id_as_primary_key(self, mongo_users, mongo_client):
        user = await mongo_users.create(User(name="Ada"))

        raw = mongo_client["polystore_test"]["users"].raw().find_one({"id": user.id})
        assert raw["_id"] == user.id
        assert user.version == 1
        assert user.date_created == user.date_updated

    @pytest.mark.asyncio
    async def test_hydrated_entities_hide_mongo_id(self, mongo_users):
        created = await mongo_users.create(User(name="Ada"))

        found = (await mongo_users.find_by_id(created.id)).get()

        assert "_id" not in (found.model_extra or {})
        assert found == created

    @pytest.mark.asyncio
    async def test_duplicate_id_is_rejected(self, mongo_users):
        await mongo_users.create(User(id="k1", name="Ada"))

        with pytest.raises(PersistenceError) as error:
            await mongo_users.create(User(id="k1", name="Bob"))

        assert error.value.kind is ErrorKind.DUPLICATE_RECORD
        assert len(await mongo_users.find_all()) == 1

    @pytest.mark.asyncio
    async def test_soft_deleted_id_is_reported_as_duplicate(self, mongo_users):
        await mongo_users.create(User(id="k1", name="Ada"))
        await mongo_users.remove("k1")

        with pytest.raises(PersistenceError) as error:
            await mongo_users.create(User(id="k1", name="Again"))

        assert error.value.kind is ErrorKind.DUPLICATE_RECORD

    @pytest.mark.asyncio
    async def test_create_all_is_rejected_before_any_write(self, mongo_users, mongo_client):
        with pytest.raises(PersistenceError) as error:
            await mongo_users.create_all([User(id="x", name="A"), User(id="x", name="B")])

        assert error.value.kind is ErrorKind.INVALID_REQUEST
        assert mongo_client["polystore_test"]["users"].raw().count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_create_all_inserts_every_entity(self, mongo_users):
        created = await mongo_users.create_all([User(name="A"), User(id="b", name="B")])

        assert len(created) == 2
        assert {user.name for user in await mongo_users.find_all()} == {"A", "B"}

    @pytest.mark.asyncio
    async def test_update_and_soft_remove_bump_version(self, mongo_users, mongo_client):
        user = await mongo_users.create(User(name="Ada"))

        await mongo_users.update(user.id, {"email": "ada@example.com"})
        updated = (await mongo_users.find_by_id(user.id)).get()
        await mongo_users.remove(user.id)

        assert updated.version == 2
        assert updated.email == "ada@example.com"
        assert (await mongo_users.find_by_id(user.id)).is_empty()
        raw = mongo_client["polystore_test"]["users"].raw().find_one({"id": user.id})
        assert raw["deleted"] is True
        assert raw["version"] == 3
        assert raw["dateDeleted"]

    @pytest.mark.asyncio
    async def test_hard_remove_deletes_document(self, mongo_users, mongo_client):
        user = await mongo_users.create(User(name="Ada"))

        await mongo_users.remove(user.id, QueryOptions.hard_delete())

        assert mongo_client["polystore_test"]["users"].raw().count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_deletion_fields_are_only_set_by_remove(self, mongo_users, mongo_client):
        created = await mongo_users.create(User(id="u1", deleted=True, date_deleted=9))
        await mongo_users.create(User(id="u2", name="Bob"))

        await mongo_users.update("u1", {"deleted": True})
        await mongo_users.update("u2", {"dateDeleted": 5})

        assert created.deleted is False and created.date_deleted is None
        raw = mongo_client["polystore_test"]["users"].raw()
        for entity_id in ("u1", "u2"):
            document = raw.find_one({"id": entity_id})
            assert document["deleted"] is False
            assert "dateDeleted" not in document
            assert (await mongo_users.find_by_id(entity_id)).is_present()

    @pytest.mark.asyncio
    async def test_optimistic_lock_mismatch(self, mongo_users):
        user = await mongo_users.create(User(name="Ada"))

        with pytest.raises(PersistenceError) as error:
            await mongo_users.update(
                user.id, {"version": user.version + 5}, QueryOptions(locking="optimistic")
            )

        assert error.value.kind is ErrorKind.OPTIMISTIC_LOCK
        assert (await mongo_users.find_by_id(user.id)).get().version == 1

    @pytest.mark.asyncio
    async def test_missing_records_raise_not_found(self, mongo_users):
        for call in (mongo_users.update("nope", {"name": "x"}), mongo_users.remove("nope")):
            with pytest.raises(PersistenceError) as error:
                await call
            assert error.value.kind is ErrorKind.RECORD_NOT_FOUND


class TestMongoQueries:
    @pytest.mark.asyncio
    async def test_newest_first(self, mongo_users):
        await mongo_users.create(User(id="A", date_created=1000))
        await mongo_users.create(User(id="B", date_created=1001))
        await mongo_users.create(User(id="C", date_created=999))

        assert [user.id for user in await mongo_users.find_all()] == ["B", "A", "C"]

    @pytest.mark.asyncio
    async def test_or_union_excludes_soft_deleted(self, mongo_users):
        await mongo_users.create(User(id="a", name="x", email="e1", date_created=1))
        await mongo_users.create(User(id="b", name="n1", email="e2", date_created=3))
        await mongo_users.create(User(id="c", name="y", email="e3", date_created=2))
        await mongo_users.create(User(id="d", name="n1", email="e1", date_created=4))
        await mongo_users.remove("d")

        found = await mongo_users.find_all(
            {"email": "e1", "name": "n1"}, QueryOptions(logical_operator=LogicalOperator.OR)
        )

        assert [user.id for user in found] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_nor_keeps_records_missing_the_field(self, mongo_users):
        await mongo_users.create(User(id="a", name="Ada"))
        await mongo_users.create(User(id="b"))

        found = await mongo_users.find_all(
            {"name": "Ada"}, QueryOptions(logical_operator=LogicalOperator.NOR)
        )

        assert [user.id for user in found] == ["b"]

    @pytest.mark.asyncio
    async def test_offset_and_limit(self, mongo_users):
        for index in range(5):
            await mongo_users.create(User(id=f"u{index}", date_created=index))

        found = await mongo_users.find_all(None, QueryOptions(offset=1, limit=2))

        assert [user.id for user in found] == ["u3", "u2"]

    @pytest.mark.asyncio
    async def test_find_one_by_python_attribute_name(self, mongo_users):
        await mongo_users.create(User(id="a", date_created=42))

        assert (await mongo_users.find_one_by({"date_created": 42})).get().id == "a"


class TestMongoConnection:
    @pytest.mark.asyncio
    async def test_session_is_passed_to_driver(self, mongo_users, mongo_client):
        session = await mongo_client.start_session()

        await mongo_users.create(User(name="Ada"), QueryOptions(session=session))

        assert session in mongo_client.sessions_seen

    @pytest.mark.asyncio
    async def test_concurrent_first_use_connects_once(self, mongo_properties, monkeypatch):
        from polystore.persistence.backends import mongo

        created = []

        def factory(uri, **options):
            created.append((uri, options))
            return MockMotorClient()

        monkeypatch.setattr(mongo, "AsyncIOMotorClient", factory)
        connection = MongoConnection(mongo_properties)
        repository = MongoRepository(connection, "users")

        assert not repository.is_connected()
        await asyncio.gather(repository.find_all(), repository.find_all(), repository.find_all())

        assert len(created) == 1
        uri, options = created[0]
        assert uri == "mongodb://localhost:27017"
        assert options["connectTimeoutMS"] == 20000
        assert options["appname"] == "testapp"

    def test_close_drops_client(self, mongo_connection, mongo_client):
        mongo_connection.close()

        assert mongo_client.closed
        assert not mongo_connection.is_connected()
