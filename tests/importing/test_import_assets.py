"""Tests for the asset import use case."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.custody.assignment.domain.entities import Assignment
from src.custody.catalog.domain.entities import (
    Asset,
    AssetStatus,
    MasterDataKind,
    NamedEntity,
    Project,
    ResourceKind,
)
from src.custody.common.exceptions import PersistenceError
from src.custody.importing.domain.entities import AssetImportRow
from src.custody.importing.use_cases import ImportAssetsUseCase, majority_vote


def row(n, tag="A-1", name="Laptop", category="IT", item="Dell XPS", **kwargs):
    return AssetImportRow(
        row_number=n,
        asset_tag=tag,
        asset_name=name,
        item_category=category,
        item=item,
        **kwargs,
    )


def assets_by_tag(store):
    return {a.asset_tag: a for a in store.resources[ResourceKind.ASSET].values()}


def master_by_name(store, kind):
    return {e.name: e for e in store.master_data[kind].values()}


@pytest.fixture
def importer(uow):
    return ImportAssetsUseCase(uow)


class TestMajorityVote:
    """Category inference helper."""

    def test_most_frequent_wins(self):
        assert majority_vote(["Office", "IT", "it", None]) == "IT"

    def test_tie_goes_to_first_seen(self):
        assert majority_vote(["b", "A", "a", "B"]) == "b"

    def test_no_names(self):
        assert majority_vote([None, "", "  "]) is None


class TestImportAssets:
    """Reconciliation of asset batches."""

    @pytest.mark.asyncio
    async def test_duplicate_tag_and_assignee(self, importer, store, alice):
        rows = [
            row(1, assigned_to="EMP-1"),
            row(2, name="Laptop2"),
        ]

        outcome = await importer.execute(rows)

        assert outcome.imported == 1
        assert outcome.updated == 0
        assert len(outcome.errors) == 1
        assert outcome.errors[0].row == 2
        assert outcome.errors[0].message.startswith("Duplicate Asset Tag 'A-1'")
        assert outcome.success is False

        asset = assets_by_tag(store)["A-1"]
        assert asset.name == "Laptop"
        assert asset.status == AssetStatus.ASSIGNED

        assignments = list(store.assignments.values())
        assert len(assignments) == 1
        assert assignments[0].resource_id == asset.id
        assert assignments[0].employee_id == alice.id
        assert outcome.assignments_created == 1

    @pytest.mark.asyncio
    async def test_rerun_updates_instead_of_creating(self, importer, store):
        rows = [row(1, tag="A-1"), row(2, tag="A-2"), row(3, tag="A-3")]

        first = await importer.execute(rows)
        second = await importer.execute(rows)

        assert (first.imported, first.updated) == (3, 0)
        assert (second.imported, second.updated) == (0, 3)
        assert second.master_data_created == 0
        assert len(store.resources[ResourceKind.ASSET]) == 3

    @pytest.mark.asyncio
    async def test_tags_match_case_insensitively(self, importer, store):
        store.seed(Asset(asset_tag="a-1", name="Old"))

        outcome = await importer.execute([row(1, tag=" A-1 ", name="New")])

        assert (outcome.imported, outcome.updated) == (0, 1)
        assert [a.name for a in store.resources[ResourceKind.ASSET].values()] == ["New"]

    @pytest.mark.asyncio
    async def test_one_bad_row_does_not_abort_batch(self, importer, store):
        rows = [
            row(1, tag="A-1"),
            row(2, tag="A-2", name=""),
            row(3, tag="A-3"),
            row(4, tag="A-4"),
        ]

        outcome = await importer.execute(rows)

        assert outcome.imported == 3
        assert [e.to_dict() for e in outcome.errors] == [
            {"row": 2, "message": "Asset Name is required"}
        ]
        assert set(assets_by_tag(store)) == {"A-1", "A-3", "A-4"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"tag": ""}, "Asset Tag is required"),
            ({"name": "  "}, "Asset Name is required"),
            ({"category": ""}, "Item Category is required"),
            ({"item": ""}, "Item is required"),
        ],
    )
    async def test_required_fields(self, importer, overrides, message):
        outcome = await importer.execute([row(7, **overrides)])

        assert outcome.imported == 0
        assert outcome.errors[0].row == 7
        assert outcome.errors[0].message == message

    @pytest.mark.asyncio
    async def test_new_asset_fields(self, importer, store):
        await importer.execute([row(1, serial_no=" SN-9 ", condition="")])

        asset = assets_by_tag(store)["A-1"]
        item = master_by_name(store, MasterDataKind.ITEM)["Dell XPS"]
        assert asset.description == "Imported: Dell XPS (SN-9)"
        assert asset.serial_number == "SN-9"
        assert asset.condition == "excellent"
        assert asset.status == AssetStatus.AVAILABLE
        assert asset.item_id == item.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("placeholder", ["N/A", "-", "n/a"])
    async def test_serial_placeholders_are_empty(self, importer, store, placeholder):
        await importer.execute([row(1, serial_no=placeholder)])

        asset = assets_by_tag(store)["A-1"]
        assert asset.serial_number is None
        assert asset.description == "Imported: Dell XPS"

    @pytest.mark.asyncio
    async def test_update_keeps_unspecified_fields(self, importer, store):
        store.seed(
            Asset(asset_tag="A-1", name="Old", serial_number="SN-OLD", project_id="P-OLD")
        )

        await importer.execute([row(1, name="Renamed", condition="fair")])

        asset = assets_by_tag(store)["A-1"]
        assert asset.name == "Renamed"
        assert asset.condition == "fair"
        assert asset.serial_number == "SN-OLD"
        assert asset.project_id == "P-OLD"
        assert asset.updated_at is not None

    @pytest.mark.asyncio
    async def test_project_applied(self, importer, store):
        project = Project(code="P1", name="Rollout")
        store.seed(project, Asset(asset_tag="A-1", project_id="P-OLD"))

        outcome = await importer.execute(
            [row(1, tag="A-1"), row(2, tag="A-2")], project_id=project.id
        )

        assert outcome.success
        assert {a.project_id for a in store.resources[ResourceKind.ASSET].values()} == {
            project.id
        }

    @pytest.mark.asyncio
    async def test_unknown_project_rejects_batch(self, importer, store):
        outcome = await importer.execute([row(1)], project_id="P-404")

        assert outcome.success is False
        assert outcome.errors[0].to_dict() == {
            "row": 0,
            "message": "Project with ID 'P-404' not found.",
        }
        assert store.resources[ResourceKind.ASSET] == {}
        assert store.master_data[MasterDataKind.ITEM_CATEGORY] == {}

    @pytest.mark.asyncio
    async def test_empty_batch(self, importer):
        outcome = await importer.execute([])

        assert outcome.success is False
        assert outcome.errors[0].message == "No rows provided for import."

    @pytest.mark.asyncio
    async def test_large_batch_warning(self, uow):
        importer = ImportAssetsUseCase(uow, warn_rows=2)

        outcome = await importer.execute([row(i, tag=f"A-{i}") for i in range(1, 4)])

        assert outcome.success
        assert outcome.warnings == ["Large import with 3 rows. Processing may take a while."]


class TestAssetMasterData:
    """Auto-creation of categories and items."""

    @pytest.mark.asyncio
    async def test_item_category_by_majority(self, importer, store):
        rows = [
            row(1, tag="A-1", category="Displays", item="Monitor"),
            row(2, tag="A-2", category="IT", item="Monitor"),
            row(3, tag="A-3", category="displays", item="Monitor"),
        ]

        outcome = await importer.execute(rows)

        categories = master_by_name(store, MasterDataKind.ITEM_CATEGORY)
        items = master_by_name(store, MasterDataKind.ITEM)
        assert set(categories) == {"Displays", "IT"}
        assert items["Monitor"].parent_id == categories["Displays"].id
        assert outcome.master_data_created == 3
        assert outcome.imported == 3
        assert categories["IT"].description == "Auto-created from asset import"

    @pytest.mark.asyncio
    async def test_existing_names_match_case_insensitively(self, importer, store):
        category = NamedEntity(kind=MasterDataKind.ITEM_CATEGORY, name="it")
        item = NamedEntity(kind=MasterDataKind.ITEM, name="dell xps", parent_id=category.id)
        store.seed(category, item)

        outcome = await importer.execute([row(1, category="IT", item="DELL XPS")])

        assert outcome.master_data_created == 0
        assert assets_by_tag(store)["A-1"].item_id == item.id

    @pytest.mark.asyncio
    async def test_item_without_category_falls_back_to_general(self, importer, store):
        outcome = await importer.execute([row(1, category="", item="Mouse")])

        assert outcome.errors[0].message == "Item Category is required"
        general = master_by_name(store, MasterDataKind.ITEM_CATEGORY)["General"]
        assert general.description == "Default category for orphaned items"
        assert master_by_name(store, MasterDataKind.ITEM)["Mouse"].parent_id == general.id

    @pytest.mark.asyncio
    async def test_existing_general_category_is_reused(self, importer, store):
        general = NamedEntity(kind=MasterDataKind.ITEM_CATEGORY, name="General")
        store.seed(general)

        await importer.execute([row(1, category="", item="Mouse")])

        assert len(store.master_data[MasterDataKind.ITEM_CATEGORY]) == 1
        assert master_by_name(store, MasterDataKind.ITEM)["Mouse"].parent_id == general.id

    @pytest.mark.asyncio
    async def test_configured_default_category(self, uow, store):
        importer = ImportAssetsUseCase(uow, default_category="Unsorted")

        await importer.execute([row(1, category="", item="Mouse")])

        assert "Unsorted" in master_by_name(store, MasterDataKind.ITEM_CATEGORY)

    @pytest.mark.asyncio
    async def test_master_data_flush_failure_raises(self, importer, uow, store):
        uow.master_data.create_many = AsyncMock(side_effect=PersistenceError("db down"))

        with pytest.raises(PersistenceError):
            await importer.execute([row(1)])

        assert store.resources[ResourceKind.ASSET] == {}


class TestAssetAssignees:
    """Assignments created from the AssignedTo column."""

    @pytest.mark.asyncio
    async def test_unknown_assignee_is_skipped(self, importer, store):
        outcome = await importer.execute([row(1, assigned_to="EMP-404")])

        assert outcome.success
        assert outcome.imported == 1
        assert store.assignments == {}
        assert assets_by_tag(store)["A-1"].status == AssetStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_inactive_assignee_is_skipped(self, importer, store, former_employee):
        outcome = await importer.execute([row(1, assigned_to="EMP-9")])

        assert outcome.success
        assert store.assignments == {}

    @pytest.mark.asyncio
    async def test_assignee_code_matches_case_insensitively(self, importer, store, alice):
        await importer.execute([row(1, assigned_to="emp-1")])

        assert [a.employee_id for a in store.assignments.values()] == [alice.id]

    @pytest.mark.asyncio
    async def test_already_held_asset_is_not_reassigned(self, importer, store, alice, bob):
        asset = Asset(asset_tag="A-1", status=AssetStatus.ASSIGNED)
        held = Assignment(kind=ResourceKind.ASSET, resource_id=asset.id, employee_id=bob.id)
        store.seed(asset, held)

        outcome = await importer.execute([row(1, assigned_to="EMP-1")])

        assert outcome.updated == 1
        assert outcome.assignments_created == 0
        assert [a.employee_id for a in store.assignments.values()] == [bob.id]


class TestAssetPersistFailures:
    """Failures outside a single row."""

    @pytest.mark.asyncio
    async def test_final_persist_failure(self, importer, uow, store, alice):
        uow.catalog.upsert_many = AsyncMock(side_effect=PersistenceError("connection lost"))

        outcome = await importer.execute([row(1, assigned_to="EMP-1")])

        assert outcome.success is False
        assert outcome.imported == 0
        assert outcome.errors[0].to_dict() == {
            "row": 0,
            "message": "Failed to save import: connection lost",
        }
        assert store.resources[ResourceKind.ASSET] == {}
        assert store.assignments == {}
        # Master data was committed before rows were processed
        assert "Dell XPS" in master_by_name(store, MasterDataKind.ITEM)

    @pytest.mark.asyncio
    async def test_unexpected_row_error_is_recorded(self, importer, store):
        importer.reconcile_row = MagicMock(side_effect=RuntimeError("boom"))

        outcome = await importer.execute([row(1), row(2, tag="A-2")])

        assert [e.message for e in outcome.errors] == [
            "Unexpected error: boom",
            "Unexpected error: boom",
        ]
        assert store.resources[ResourceKind.ASSET] == {}
