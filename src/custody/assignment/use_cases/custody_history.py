"""Custody history queries."""

from ...catalog.domain.entities import ResourceKind
from ...common.exceptions import NotFoundError
from ...persistence.unit_of_work import IUnitOfWork
from ..domain.entities import Assignment


class CustodyHistoryUseCase:
    """Read the custody trail of a resource or the holdings of an employee."""

    def __init__(self, uow: IUnitOfWork):
        self.uow = uow

    async def for_resource(self, kind: ResourceKind, resource_id: str) -> list[Assignment]:
        """Every assignment ever recorded for a resource, newest first."""
        async with self.uow.transaction():
            resource = await self.uow.catalog.find_by_id(kind, resource_id)
            if resource is None:
                raise NotFoundError(kind.label, resource_id)
            return await self.uow.assignments.history(kind, resource_id)

    async def held_by(self, employee_id: str) -> list[Assignment]:
        """Active assignments currently held by an employee."""
        async with self.uow.transaction():
            employee = await self.uow.master_data.get_employee(employee_id)
            if employee is None:
                raise NotFoundError("Employee", employee_id)
            return await self.uow.assignments.list_active_for_employee(employee_id)
