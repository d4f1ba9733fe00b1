"""Assign resource use case.

Creates (or, for accessories, tops up) the custody record linking an
employee to a resource, and refreshes the resource's cached status for
exclusive kinds.
"""

import logging
from typing import Optional

from ...catalog.domain.entities import AssignmentPolicyKind, ResourceKind
from ...common.exceptions import InvalidStateError, NotFoundError
from ...persistence.unit_of_work import IUnitOfWork
from ..domain.entities import Assignment, NoteLog
from ..domain.policies import policy_for

logger = logging.getLogger(__name__)


class AssignResourceUseCase:
    """Assign a resource to an employee.

    This use case:
    1. Validates the requested quantity against the kind's policy
    2. Locks the resource and checks the employee is active
    3. Applies the policy (exclusive, quantity or seat-limited)
    4. Writes the assignment and the resource's cached status
    All inside one transaction; any error leaves the store untouched.
    """

    def __init__(self, uow: IUnitOfWork):
        """Initialize the use case.

        Args:
            uow: Unit of work over the custody store
        """
        self.uow = uow

    async def execute(
        self,
        kind: ResourceKind,
        resource_id: str,
        employee_id: str,
        quantity: Optional[int] = None,
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Assignment:
        """Execute the use case.

        Args:
            kind: Resource kind
            resource_id: Resource to assign
            employee_id: Receiving employee
            quantity: Units to assign (accessories only, default 1)
            notes: Free-text note recorded on the assignment
            actor_id: Acting identity for audit stamps

        Returns:
            The created or topped-up Assignment

        Raises:
            NotFoundError: If the resource or employee does not exist
            InvalidStateError: If the resource or employee cannot take part
            ConflictError: If the kind's policy forbids the assignment
            ValidationError: If the quantity is out of contract
        """
        policy = policy_for(kind)
        amount = policy.check_quantity(kind, quantity)

        async with self.uow.transaction():
            resource = await self.uow.catalog.find_by_id(kind, resource_id, for_update=True)
            if resource is None:
                raise NotFoundError(kind.label, resource_id)

            employee = await self.uow.master_data.get_employee(employee_id)
            if employee is None:
                raise NotFoundError("Employee", employee_id)
            if not employee.is_active:
                raise InvalidStateError(
                    f"Employee '{employee.employee_code}' is not active.",
                    current_state=employee.status.value,
                )

            active = await self.uow.assignments.list_active(kind, resource_id)
            existing = policy.place(resource, employee, active, amount)

            if not resource.is_assignable:
                raise InvalidStateError(
                    f"{kind.label} '{resource.display_name}' is not available for assignment.",
                    current_state=resource.status_label,
                )

            if existing is not None:
                existing.add_units(amount, actor_id)
                existing.notes = existing.notes.append(notes)
                await self.uow.assignments.update(existing)
                logger.info(
                    f"Added {amount} unit(s) of {kind.value} {resource_id} to "
                    f"employee {employee.employee_code} (now {existing.quantity})"
                )
                return existing

            assignment = Assignment(
                kind=kind,
                resource_id=resource_id,
                employee_id=employee.id,
                quantity=amount,
                notes=NoteLog().append(notes),
                created_by=actor_id,
            )
            await self.uow.assignments.add(assignment)

            if policy.policy_kind == AssignmentPolicyKind.EXCLUSIVE:
                resource.mark_assigned(employee.id, actor_id)
                await self.uow.catalog.upsert(resource)

        logger.info(
            f"Assigned {kind.value} {resource_id} to employee {employee.employee_code}"
            + (f" (quantity {amount})" if policy.tracks_quantity else "")
        )
        return assignment
