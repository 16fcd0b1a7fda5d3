"""Tests for invalidation when custom types and columns change."""

import pytest
import pytest_asyncio

from conftest import FakeService, owner_column, person_type, text_column
from gridmill.exceptions import (
    DefinitionError,
    RemoteCallError,
    TypeInUseError,
    UnknownTypeError,
)
from gridmill.grinding.invalidation import InvalidationController
from gridmill.grinding.orchestrator import Orchestrator
from gridmill.grinding.types import Attribute, CustomColumnType, CustomType

EMAIL = Attribute("email", "Email address")


def person_responder(doc, columns):
    data = {}
    for column in columns:
        if column.custom_type_name is not None:
            data[column.id] = {"full_name": f"Owner of {doc.id}", "email": f"{doc.id}@example.com"}
        else:
            data[column.id] = f"{column.id}:{doc.id}"
    return data


@pytest.fixture
def service():
    return FakeService(person_responder)


@pytest.fixture
def controller(store, orchestrator):
    return InvalidationController(store, orchestrator)


@pytest_asyncio.fixture
async def populated(store, orchestrator):
    """Workspace with a Person-typed Owner column and a text Tenant column."""
    store.add_custom_type(person_type())
    owner = store.add_column(owner_column())
    tenant = store.add_column(text_column("tenant"))
    await orchestrator.extract_for_columns(store.documents, [owner, tenant])
    return store


class TestRedefine:
    """Test redefining a custom type."""

    @pytest.mark.asyncio
    async def test_adds_attribute_and_refetches(self, populated, service, controller):
        """Test that dependent cells are cleared before the re-fetch starts."""
        store = populated
        assert store.matrix.get("D1", "owner") == {"full_name": "Owner of D1"}

        observed = []
        service.on_call = lambda request: observed.append(
            (
                [c.id for c in request.columns],
                store.matrix.column_values("owner"),
                store.matrix.column_values("tenant"),
            )
        )

        outcomes = await controller.on_custom_type_redefine("Person", person_type(EMAIL))

        assert observed == [(["owner"], {}, {"D1": "tenant:D1", "D2": "tenant:D2"})]
        assert list(outcomes) == ["owner"]
        assert store.matrix.get("D1", "owner") == {
            "full_name": "Owner of D1",
            "email": "D1@example.com",
        }
        assert store.get_custom_type("Person").attributes[-1] == EMAIL

    @pytest.mark.asyncio
    async def test_rename_repoints_columns(self, populated, service, controller):
        store = populated
        renamed = CustomType("Individual", "A person", person_type().attributes)

        await controller.on_custom_type_redefine("Person", renamed)

        assert store.get_column("owner").type == CustomColumnType("Individual")
        assert store.find_custom_type("Person") is None
        assert service.requests[-1].columns[0].custom_type_name == "Individual"
        assert store.matrix.get("D2", "owner") == {"full_name": "Owner of D2"}

    @pytest.mark.asyncio
    async def test_one_request_per_dependent_column(self, populated, service, controller):
        store = populated
        second = owner_column()
        second.id = "witness"
        second.name = "Witness"
        store.add_column(second)

        outcomes = await controller.on_custom_type_redefine("Person", person_type(EMAIL))

        new_requests = service.requests[-2:]
        assert sorted(r.columns[0].id for r in new_requests) == ["owner", "witness"]
        assert all(len(r.columns) == 1 for r in new_requests)
        assert set(outcomes) == {"owner", "witness"}

    @pytest.mark.asyncio
    async def test_rename_collision_changes_nothing(self, populated, controller):
        store = populated
        store.add_custom_type(CustomType("Company", "A company", (Attribute("name", "Name"),)))
        before = store.to_dict()

        clash = CustomType("Company", "A person", person_type().attributes)
        with pytest.raises(DefinitionError):
            await controller.on_custom_type_redefine("Person", clash)

        assert store.to_dict() == before

    @pytest.mark.asyncio
    async def test_invalid_definition_changes_nothing(self, populated, controller):
        store = populated
        before = store.to_dict()

        with pytest.raises(DefinitionError):
            await controller.on_custom_type_redefine("Person", CustomType("Person", "A person"))

        assert store.to_dict() == before

    @pytest.mark.asyncio
    async def test_unknown_type(self, controller):
        with pytest.raises(UnknownTypeError):
            await controller.on_custom_type_redefine("Ghost", person_type())

    @pytest.mark.asyncio
    async def test_failed_refetch_leaves_cells_absent(self, populated, service, controller):
        store = populated
        service.error = RemoteCallError("HTTP 500")

        with pytest.raises(RemoteCallError):
            await controller.on_custom_type_redefine("Person", person_type(EMAIL))

        assert store.matrix.column_values("owner") == {}
        assert store.get_custom_type("Person").attributes[-1] == EMAIL
        assert len(store.loading) == 0


class TestRemoval:
    @pytest.mark.asyncio
    async def test_type_in_use_blocks_removal(self, populated, controller):
        store = populated
        types_before = list(store.custom_types)
        columns_before = [c.to_dict() for c in store.columns]

        with pytest.raises(TypeInUseError) as exc_info:
            controller.on_custom_type_remove("Person")

        assert exc_info.value.column_names == ["Owner"]
        assert "Owner" in exc_info.value.message
        assert store.custom_types == types_before
        assert [c.to_dict() for c in store.columns] == columns_before

    def test_remove_unused_type(self, store, controller):
        store.add_custom_type(person_type())
        controller.on_custom_type_remove("Person")
        assert store.custom_types == []

    def test_remove_unknown_type(self, controller):
        with pytest.raises(UnknownTypeError):
            controller.on_custom_type_remove("Ghost")

    @pytest.mark.asyncio
    async def test_column_removal_keeps_cache(self, populated, cache, orchestrator, controller):
        """Test that removing a column orphans its cache entries."""
        store = populated
        owner = store.get_column("owner")
        keys = [orchestrator.fingerprint_cell(doc, owner) for doc in store.documents]
        store.loading.mark([("D1", "owner")])

        controller.on_column_remove("owner")

        assert store.matrix.column_values("owner") == {}
        assert len(store.loading) == 0
        assert all(key in cache for key in keys)
        assert store.matrix.get("D1", "tenant") == "tenant:D1"


class TestColumnEdit:
    """Test editing a column's definition."""

    @pytest.mark.asyncio
    async def test_edit_refetches_with_new_definition(self, populated, service, controller):
        store = populated
        observed = []
        service.on_call = lambda request: observed.append(
            (request.columns[0].description, store.matrix.column_values("tenant"))
        )

        outcome = await controller.on_column_edit("tenant", description="Legal name of the tenant")

        assert observed == [("Legal name of the tenant", {})]
        assert outcome.cells_written == 2
        assert store.get_column("tenant").description == "Legal name of the tenant"
        assert store.matrix.get("D1", "tenant") == "tenant:D1"
        assert store.matrix.get("D1", "owner") == {"full_name": "Owner of D1"}

    @pytest.mark.asyncio
    async def test_unchanged_edit_is_served_from_cache(self, populated, service, controller):
        requests_before = len(service.requests)

        outcome = await controller.on_column_edit("tenant", name="Tenant")

        assert len(service.requests) == requests_before
        assert outcome.cache_hits == 2

    @pytest.mark.asyncio
    async def test_invalid_edit_changes_nothing(self, populated, controller):
        store = populated
        before = store.to_dict()

        with pytest.raises(DefinitionError):
            await controller.on_column_edit("tenant", name=" ")

        assert store.to_dict() == before

    @pytest.mark.asyncio
    async def test_failed_refetch_leaves_column_absent(self, populated, service, controller):
        store = populated
        service.error = RemoteCallError("HTTP 500")

        with pytest.raises(RemoteCallError):
            await controller.on_column_edit("tenant", cardinality="many")

        assert store.matrix.column_values("tenant") == {}
        assert len(store.loading) == 0
