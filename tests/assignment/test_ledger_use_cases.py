"""Tests for assignment ledger use cases."""

from unittest.mock import AsyncMock

import pytest

from src.custody.assignment.domain.entities import AssignmentStatus
from src.custody.assignment.use_cases import (
    AssignResourceUseCase,
    CustodyHistoryUseCase,
    TransferResourceUseCase,
    UnassignResourceUseCase,
)
from src.custody.catalog.domain.entities import (
    Accessory,
    ActiveStatus,
    Asset,
    AssetStatus,
    LicenseStatus,
    ResourceKind,
    SimCard,
    SoftwareLicense,
)
from src.custody.common.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from src.custody.persistence.adapters.memory import InMemoryUnitOfWork


def active_rows(store, kind, resource_id):
    return [
        a
        for a in store.assignments.values()
        if a.is_active and a.kind == kind and a.resource_id == resource_id
    ]


@pytest.fixture
def laptop(store):
    asset = Asset(asset_tag="A-1", name="Laptop")
    store.seed(asset)
    return asset


@pytest.fixture
def headset(store):
    accessory = Accessory(name="Headset", stock=10)
    store.seed(accessory)
    return accessory


@pytest.fixture
def sim(store):
    sim_card = SimCard(account_no="100200", service_no="0551234567")
    store.seed(sim_card)
    return sim_card


@pytest.fixture
def office(store):
    license = SoftwareLicense(name="Office", license_key="KEY-1", seats=2)
    store.seed(license)
    return license


@pytest.fixture
def assign(uow):
    return AssignResourceUseCase(uow)


@pytest.fixture
def unassign(uow):
    return UnassignResourceUseCase(uow)


@pytest.fixture
def transfer(uow):
    return TransferResourceUseCase(uow)


class TestAssignExclusive:
    """Assign on assets and SIM cards."""

    @pytest.mark.asyncio
    async def test_assign_asset(self, assign, store, laptop, alice):
        assignment = await assign.execute(
            ResourceKind.ASSET, laptop.id, alice.id, notes="New starter", actor_id="admin"
        )

        assert assignment.is_active
        assert assignment.quantity == 1
        assert assignment.created_by == "admin"
        assert assignment.notes.render() == "New starter"

        stored = store.resources[ResourceKind.ASSET][laptop.id]
        assert stored.status == AssetStatus.ASSIGNED
        assert stored.updated_by == "admin"
        assert store.assignments[assignment.id].employee_id == alice.id

    @pytest.mark.asyncio
    async def test_second_assign_to_other_employee_conflicts(
        self, assign, store, laptop, alice, bob
    ):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        with pytest.raises(ConflictError):
            await assign.execute(ResourceKind.ASSET, laptop.id, bob.id)

        rows = active_rows(store, ResourceKind.ASSET, laptop.id)
        assert len(rows) == 1
        assert rows[0].employee_id == alice.id

    @pytest.mark.asyncio
    async def test_second_assign_to_same_employee_conflicts(self, assign, laptop, alice):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        with pytest.raises(ConflictError) as exc:
            await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        assert "this employee" in exc.value.message

    @pytest.mark.asyncio
    async def test_missing_resource(self, assign, alice):
        with pytest.raises(NotFoundError) as exc:
            await assign.execute(ResourceKind.ASSET, "missing", alice.id)

        assert exc.value.entity == "Asset"

    @pytest.mark.asyncio
    async def test_missing_employee(self, assign, laptop):
        with pytest.raises(NotFoundError) as exc:
            await assign.execute(ResourceKind.ASSET, laptop.id, "nobody")

        assert exc.value.entity == "Employee"

    @pytest.mark.asyncio
    async def test_inactive_employee(self, assign, store, laptop, former_employee):
        with pytest.raises(InvalidStateError):
            await assign.execute(ResourceKind.ASSET, laptop.id, former_employee.id)

        assert store.assignments == {}

    @pytest.mark.asyncio
    async def test_asset_in_maintenance(self, assign, store, alice):
        asset = Asset(asset_tag="A-2", status=AssetStatus.MAINTENANCE)
        store.seed(asset)

        with pytest.raises(InvalidStateError) as exc:
            await assign.execute(ResourceKind.ASSET, asset.id, alice.id)

        assert exc.value.current_state == "maintenance"

    @pytest.mark.asyncio
    async def test_asset_quantity_must_be_one(self, assign, laptop, alice):
        with pytest.raises(ValidationError):
            await assign.execute(ResourceKind.ASSET, laptop.id, alice.id, quantity=2)

    @pytest.mark.asyncio
    async def test_assign_sim_caches_holder(self, assign, store, sim, alice):
        await assign.execute(ResourceKind.SIM_CARD, sim.id, alice.id)

        assert store.resources[ResourceKind.SIM_CARD][sim.id].assigned_to == alice.id

    @pytest.mark.asyncio
    async def test_rollback_when_status_write_fails(self, assign, uow, store, laptop, alice):
        uow.catalog.upsert = AsyncMock(side_effect=PersistenceError("disk full"))

        with pytest.raises(PersistenceError):
            await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        assert store.assignments == {}
        assert store.resources[ResourceKind.ASSET][laptop.id].status == AssetStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_assign_unassign_sequence_keeps_single_holder(
        self, assign, unassign, store, laptop, alice, bob
    ):
        for employee in (alice, bob, alice):
            await assign.execute(ResourceKind.ASSET, laptop.id, employee.id)
            with pytest.raises(ConflictError):
                await assign.execute(ResourceKind.ASSET, laptop.id, bob.id)
            assert len(active_rows(store, ResourceKind.ASSET, laptop.id)) == 1
            await unassign.execute(ResourceKind.ASSET, resource_id=laptop.id)
            assert active_rows(store, ResourceKind.ASSET, laptop.id) == []

        assert len(store.assignments) == 3


class TestAssignAccessory:
    """Assign on quantity resources."""

    @pytest.mark.asyncio
    async def test_repeated_assigns_collapse_into_one_row(self, assign, store, headset, alice):
        first = await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=2)
        second = await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=3)
        third = await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id)

        rows = active_rows(store, ResourceKind.ACCESSORY, headset.id)
        assert len(rows) == 1
        assert rows[0].quantity == 6
        assert first.id == second.id == third.id

    @pytest.mark.asyncio
    async def test_each_employee_gets_own_row(self, assign, store, headset, alice, bob):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=2)
        await assign.execute(ResourceKind.ACCESSORY, headset.id, bob.id, quantity=1)

        rows = active_rows(store, ResourceKind.ACCESSORY, headset.id)
        assert sorted(r.quantity for r in rows) == [1, 2]

    @pytest.mark.asyncio
    async def test_stock_exceeded(self, assign, headset, alice, bob):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=8)

        with pytest.raises(ConflictError) as exc:
            await assign.execute(ResourceKind.ACCESSORY, headset.id, bob.id, quantity=3)

        assert "Only 2 unit(s)" in exc.value.message

    @pytest.mark.asyncio
    async def test_untracked_stock_is_unbounded(self, assign, store, alice):
        cables = Accessory(name="USB-C cable")
        store.seed(cables)

        assignment = await assign.execute(
            ResourceKind.ACCESSORY, cables.id, alice.id, quantity=500
        )

        assert assignment.quantity == 500

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_non_positive_quantity(self, assign, headset, alice, quantity):
        with pytest.raises(ValidationError):
            await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=quantity)

    @pytest.mark.asyncio
    async def test_inactive_accessory(self, assign, store, alice):
        retired = Accessory(name="Old dock", status=ActiveStatus.INACTIVE)
        store.seed(retired)

        with pytest.raises(InvalidStateError):
            await assign.execute(ResourceKind.ACCESSORY, retired.id, alice.id)


class TestAssignLicense:
    """Assign on seat-limited resources."""

    @pytest.mark.asyncio
    async def test_seat_cap(self, assign, store, office, alice, bob, carol):
        await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, alice.id)
        await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, bob.id)

        with pytest.raises(ConflictError) as exc:
            await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, carol.id)

        assert "No available seats" in exc.value.message
        assert len(active_rows(store, ResourceKind.SOFTWARE_LICENSE, office.id)) == 2

    @pytest.mark.asyncio
    async def test_same_employee_twice(self, assign, office, alice):
        await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, alice.id)

        with pytest.raises(ConflictError) as exc:
            await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, alice.id)

        assert "already assigned" in exc.value.message

    @pytest.mark.asyncio
    async def test_unlimited_seats(self, assign, store, alice, bob, carol):
        site = SoftwareLicense(name="Site license", seats=None)
        store.seed(site)

        for employee in (alice, bob, carol):
            await assign.execute(ResourceKind.SOFTWARE_LICENSE, site.id, employee.id)

        assert len(active_rows(store, ResourceKind.SOFTWARE_LICENSE, site.id)) == 3

    @pytest.mark.asyncio
    async def test_expired_license(self, assign, store, alice):
        expired = SoftwareLicense(name="Legacy CAD", status=LicenseStatus.EXPIRED)
        store.seed(expired)

        with pytest.raises(InvalidStateError):
            await assign.execute(ResourceKind.SOFTWARE_LICENSE, expired.id, alice.id)


class TestUnassign:
    """Full and partial returns."""

    @pytest.mark.asyncio
    async def test_full_return_of_asset(self, assign, unassign, store, laptop, alice):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id, notes="New starter")

        returned = await unassign.execute(
            ResourceKind.ASSET, resource_id=laptop.id, notes="Leaver", actor_id="admin"
        )

        assert returned.status == AssignmentStatus.RETURNED
        assert returned.returned_at is not None
        assert returned.updated_by == "admin"
        assert returned.notes.render() == "New starter\nReturned: Leaver"
        assert store.resources[ResourceKind.ASSET][laptop.id].status == AssetStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_full_return_without_note_keeps_notes(
        self, assign, unassign, laptop, alice
    ):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id, notes="New starter")

        returned = await unassign.execute(ResourceKind.ASSET, resource_id=laptop.id)

        assert returned.notes.render() == "New starter"

    @pytest.mark.asyncio
    async def test_return_clears_sim_holder(self, assign, unassign, store, sim, alice):
        await assign.execute(ResourceKind.SIM_CARD, sim.id, alice.id)

        await unassign.execute(ResourceKind.SIM_CARD, resource_id=sim.id, employee_id=alice.id)

        assert store.resources[ResourceKind.SIM_CARD][sim.id].assigned_to is None

    @pytest.mark.asyncio
    async def test_wrong_employee_for_exclusive(self, assign, unassign, store, laptop, alice, bob):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        with pytest.raises(NotFoundError):
            await unassign.execute(ResourceKind.ASSET, resource_id=laptop.id, employee_id=bob.id)

        assert len(active_rows(store, ResourceKind.ASSET, laptop.id)) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_return(self, unassign, laptop):
        with pytest.raises(NotFoundError):
            await unassign.execute(ResourceKind.ASSET, resource_id=laptop.id)

    @pytest.mark.asyncio
    async def test_partial_accessory_return(self, assign, unassign, headset, alice):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=5)

        assignment = await unassign.execute(
            ResourceKind.ACCESSORY,
            resource_id=headset.id,
            employee_id=alice.id,
            quantity=2,
            notes="Two broken",
        )

        assert assignment.is_active
        assert assignment.quantity == 3
        assert assignment.returned_at is None
        last = list(assignment.notes)[-1]
        assert last.label == "Partial return"
        assert last.text.startswith("2 unit(s) on ")
        assert last.text.endswith(". Two broken")

    @pytest.mark.asyncio
    async def test_returning_everything_held_closes_row(self, assign, unassign, headset, alice):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=4)

        assignment = await unassign.execute(
            ResourceKind.ACCESSORY, resource_id=headset.id, employee_id=alice.id, quantity=4
        )

        assert assignment.status == AssignmentStatus.RETURNED
        assert assignment.quantity == 4

    @pytest.mark.asyncio
    async def test_over_return(self, assign, unassign, store, headset, alice):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=2)

        with pytest.raises(ValidationError) as exc:
            await unassign.execute(
                ResourceKind.ACCESSORY, resource_id=headset.id, employee_id=alice.id, quantity=3
            )

        assert "Only 2 items are assigned" in exc.value.message
        assert active_rows(store, ResourceKind.ACCESSORY, headset.id)[0].quantity == 2

    @pytest.mark.asyncio
    async def test_zero_return(self, assign, unassign, headset, alice):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=2)

        with pytest.raises(ValidationError):
            await unassign.execute(
                ResourceKind.ACCESSORY, resource_id=headset.id, employee_id=alice.id, quantity=0
            )

    @pytest.mark.asyncio
    async def test_accessory_needs_employee(self, assign, unassign, headset, alice):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id)

        with pytest.raises(ValidationError):
            await unassign.execute(ResourceKind.ACCESSORY, resource_id=headset.id)

    @pytest.mark.asyncio
    async def test_asset_partial_quantity_rejected(self, assign, unassign, laptop, alice):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        with pytest.raises(ValidationError):
            await unassign.execute(ResourceKind.ASSET, resource_id=laptop.id, quantity=2)

    @pytest.mark.asyncio
    async def test_by_assignment_id(self, assign, unassign, office, alice):
        assignment = await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, alice.id)

        returned = await unassign.execute(
            ResourceKind.SOFTWARE_LICENSE, assignment_id=assignment.id
        )

        assert returned.id == assignment.id
        assert returned.status == AssignmentStatus.RETURNED

    @pytest.mark.asyncio
    async def test_already_returned_assignment(self, assign, unassign, laptop, alice):
        assignment = await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)
        await unassign.execute(ResourceKind.ASSET, assignment_id=assignment.id)

        with pytest.raises(InvalidStateError):
            await unassign.execute(ResourceKind.ASSET, assignment_id=assignment.id)

    @pytest.mark.asyncio
    async def test_requires_resource_or_assignment(self, unassign):
        with pytest.raises(ValidationError):
            await unassign.execute(ResourceKind.ASSET)


class TestReturnByAssignmentId:
    """Returns addressed by assignment id see returns committed while waiting for the lock."""

    @staticmethod
    def commit_before_lock(uow, other_return):
        """Run ``other_return`` in its own transaction when the resource lock is taken."""
        find_by_id = uow.catalog.find_by_id
        pending = [other_return]

        async def locked_find(kind, resource_id, for_update=False):
            if for_update and pending:
                await pending.pop()()
            return await find_by_id(kind, resource_id, for_update=for_update)

        uow.catalog.find_by_id = AsyncMock(side_effect=locked_find)

    @pytest.mark.asyncio
    async def test_second_full_return_rejected(self, store, uow, assign, unassign, laptop, alice):
        assignment = await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)
        other = UnassignResourceUseCase(InMemoryUnitOfWork(store))
        self.commit_before_lock(
            uow,
            lambda: other.execute(ResourceKind.ASSET, assignment_id=assignment.id, notes="First"),
        )

        with pytest.raises(InvalidStateError):
            await unassign.execute(ResourceKind.ASSET, assignment_id=assignment.id, notes="Second")

    @pytest.mark.asyncio
    async def test_partial_returns_both_counted(self, store, uow, assign, unassign, headset, alice):
        assignment = await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=5)
        other = UnassignResourceUseCase(InMemoryUnitOfWork(store))
        self.commit_before_lock(
            uow,
            lambda: other.execute(ResourceKind.ACCESSORY, assignment_id=assignment.id, quantity=2),
        )

        result = await unassign.execute(
            ResourceKind.ACCESSORY, assignment_id=assignment.id, quantity=2
        )

        assert result.quantity == 1
        assert store.assignments[assignment.id].quantity == 1


class TestTransfer:
    """Reassignment between employees."""

    @pytest.mark.asyncio
    async def test_transfer_asset(self, assign, transfer, store, laptop, alice, bob):
        original = await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        moved = await transfer.execute(ResourceKind.ASSET, laptop.id, alice.id, bob.id)

        old = store.assignments[original.id]
        assert old.status == AssignmentStatus.RETURNED
        assert old.notes.render() == "Returned: Transferred to employee EMP-2"
        assert moved.employee_id == bob.id
        assert moved.is_active
        assert store.resources[ResourceKind.ASSET][laptop.id].status == AssetStatus.ASSIGNED
        assert len(active_rows(store, ResourceKind.ASSET, laptop.id)) == 1

    @pytest.mark.asyncio
    async def test_partial_accessory_transfer(self, assign, transfer, store, headset, alice, bob):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=5)

        moved = await transfer.execute(
            ResourceKind.ACCESSORY, headset.id, alice.id, bob.id, quantity=2
        )

        rows = {a.employee_id: a for a in active_rows(store, ResourceKind.ACCESSORY, headset.id)}
        assert rows[alice.id].quantity == 3
        assert rows[bob.id].quantity == 2
        assert moved.id == rows[bob.id].id

    @pytest.mark.asyncio
    async def test_full_accessory_transfer_moves_everything(
        self, assign, transfer, store, headset, alice, bob
    ):
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=4)

        moved = await transfer.execute(ResourceKind.ACCESSORY, headset.id, alice.id, bob.id)

        assert moved.quantity == 4
        rows = active_rows(store, ResourceKind.ACCESSORY, headset.id)
        assert [r.employee_id for r in rows] == [bob.id]

    @pytest.mark.asyncio
    async def test_failed_assign_rolls_back_return(
        self, assign, transfer, store, office, alice, former_employee
    ):
        await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, alice.id)

        with pytest.raises(InvalidStateError):
            await transfer.execute(
                ResourceKind.SOFTWARE_LICENSE, office.id, alice.id, former_employee.id
            )

        rows = active_rows(store, ResourceKind.SOFTWARE_LICENSE, office.id)
        assert [r.employee_id for r in rows] == [alice.id]

    @pytest.mark.asyncio
    async def test_unknown_target(self, assign, transfer, laptop, alice):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)

        with pytest.raises(NotFoundError):
            await transfer.execute(ResourceKind.ASSET, laptop.id, alice.id, "nobody")

    @pytest.mark.asyncio
    async def test_transfer_to_self(self, transfer, laptop, alice):
        with pytest.raises(ValidationError):
            await transfer.execute(ResourceKind.ASSET, laptop.id, alice.id, alice.id)


class TestCustodyHistory:
    """History queries."""

    @pytest.mark.asyncio
    async def test_history_newest_first(self, uow, assign, unassign, laptop, alice, bob):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)
        await unassign.execute(ResourceKind.ASSET, resource_id=laptop.id)
        await assign.execute(ResourceKind.ASSET, laptop.id, bob.id)

        history = await CustodyHistoryUseCase(uow).for_resource(ResourceKind.ASSET, laptop.id)

        assert [a.employee_id for a in history] == [bob.id, alice.id]
        assert [a.status for a in history] == [
            AssignmentStatus.ASSIGNED,
            AssignmentStatus.RETURNED,
        ]

    @pytest.mark.asyncio
    async def test_held_by(self, uow, assign, unassign, laptop, headset, office, alice):
        await assign.execute(ResourceKind.ASSET, laptop.id, alice.id)
        await assign.execute(ResourceKind.ACCESSORY, headset.id, alice.id, quantity=2)
        await assign.execute(ResourceKind.SOFTWARE_LICENSE, office.id, alice.id)
        await unassign.execute(ResourceKind.ASSET, resource_id=laptop.id)

        held = await CustodyHistoryUseCase(uow).held_by(alice.id)

        assert {a.kind for a in held} == {ResourceKind.ACCESSORY, ResourceKind.SOFTWARE_LICENSE}

    @pytest.mark.asyncio
    async def test_unknown_resource(self, uow):
        with pytest.raises(NotFoundError):
            await CustodyHistoryUseCase(uow).for_resource(ResourceKind.ASSET, "missing")

    @pytest.mark.asyncio
    async def test_unknown_employee(self, uow):
        with pytest.raises(NotFoundError):
            await CustodyHistoryUseCase(uow).held_by("nobody")
