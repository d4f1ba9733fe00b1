"""Unassign resource use case.

Returns a resource fully (closing the custody record) or, for
accessories, partially (drawing the record's quantity down). Notes are
appended to the record's log, never overwritten.
"""

import logging
from typing import Optional

from ...catalog.domain.entities import AssignmentPolicyKind, ResourceKind
from ...common.exceptions import InvalidStateError, NotFoundError, ValidationError
from ...persistence.unit_of_work import IUnitOfWork
from ..domain.entities import Assignment
from ..domain.policies import policy_for

logger = logging.getLogger(__name__)


class UnassignResourceUseCase:
    """Return a resource held by an employee.

    The record is located by ``assignment_id`` or by resource (plus
    employee for accessories and licenses). Omitting ``quantity`` or
    passing the held quantity is a full return.
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
        resource_id: Optional[str] = None,
        employee_id: Optional[str] = None,
        assignment_id: Optional[str] = None,
        quantity: Optional[int] = None,
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Assignment:
        """Execute the use case.

        Args:
            kind: Resource kind
            resource_id: Resource to return (when no assignment_id is given)
            employee_id: Current holder; optional for exclusive kinds
            assignment_id: Assignment to return directly
            quantity: Units to return (accessories); None returns everything
            notes: Note appended to the assignment's log
            actor_id: Acting identity for audit stamps

        Returns:
            The updated Assignment (returned, or still active after a
            partial return)

        Raises:
            NotFoundError: If no matching active assignment exists
            InvalidStateError: If the assignment was already returned
            ValidationError: If the quantity is out of contract
        """
        if resource_id is None and assignment_id is None:
            raise ValidationError(
                "Either a resource or an assignment must be given.",
                field="resource_id",
            )

        policy = policy_for(kind)

        async with self.uow.transaction():
            if assignment_id is not None:
                resource_id = await self._locate_resource(kind, assignment_id)

            resource = await self.uow.catalog.find_by_id(kind, resource_id, for_update=True)
            if resource is None:
                raise NotFoundError(kind.label, resource_id)

            if assignment_id is not None:
                # Re-read under the resource lock
                assignment = await self._load_assignment(kind, assignment_id, employee_id)
            else:
                active = await self.uow.assignments.list_active(kind, resource_id)
                assignment = policy.select_for_return(resource, active, employee_id)

            units = policy.units_to_return(assignment, quantity)

            if units is not None:
                assignment.take_units(units, notes, actor_id)
                await self.uow.assignments.update(assignment)
                logger.info(
                    f"Partial return of {units} unit(s) of {kind.value} {resource_id} "
                    f"by employee {assignment.employee_id} ({assignment.quantity} still held)"
                )
                return assignment

            assignment.close(notes, actor_id)
            await self.uow.assignments.update(assignment)

            if policy.policy_kind == AssignmentPolicyKind.EXCLUSIVE:
                resource.mark_released(actor_id)
                await self.uow.catalog.upsert(resource)

        logger.info(
            f"Returned {kind.value} {resource_id} from employee {assignment.employee_id}"
        )
        return assignment

    async def _locate_resource(self, kind: ResourceKind, assignment_id: str) -> str:
        assignment = await self.uow.assignments.get(assignment_id)
        if assignment is None or assignment.kind != kind:
            raise NotFoundError("Assignment", assignment_id)
        return assignment.resource_id

    async def _load_assignment(
        self,
        kind: ResourceKind,
        assignment_id: str,
        employee_id: Optional[str],
    ) -> Assignment:
        assignment = await self.uow.assignments.get(assignment_id)
        if assignment is None or assignment.kind != kind:
            raise NotFoundError("Assignment", assignment_id)
        if not assignment.is_active:
            raise InvalidStateError(
                f"Assignment '{assignment_id}' has already been returned.",
                current_state=assignment.status.value,
            )
        if employee_id is not None and assignment.employee_id != employee_id:
            raise NotFoundError(
                "Assignment",
                message=(
                    f"Assignment '{assignment_id}' is not held by employee '{employee_id}'."
                ),
            )
        return assignment
