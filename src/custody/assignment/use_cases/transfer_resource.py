"""Transfer resource use case.

Moves custody from one employee to another: a return from the current
holder followed by an assign to the new one, committed together.
"""

import logging
from typing import Optional

from ...catalog.domain.entities import ResourceKind
from ...common.exceptions import NotFoundError, ValidationError
from ...persistence.unit_of_work import IUnitOfWork
from ..domain.entities import Assignment
from ..domain.policies import policy_for
from .assign_resource import AssignResourceUseCase
from .unassign_resource import UnassignResourceUseCase

logger = logging.getLogger(__name__)


class TransferResourceUseCase:
    """Reassign a resource between employees in one transaction."""

    def __init__(self, uow: IUnitOfWork):
        """Initialize the use case.

        Args:
            uow: Unit of work over the custody store
        """
        self.uow = uow
        self.assign = AssignResourceUseCase(uow)
        self.unassign = UnassignResourceUseCase(uow)

    async def execute(
        self,
        kind: ResourceKind,
        resource_id: str,
        from_employee_id: str,
        to_employee_id: str,
        quantity: Optional[int] = None,
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Assignment:
        """Execute the use case.

        Args:
            kind: Resource kind
            resource_id: Resource to move
            from_employee_id: Current holder
            to_employee_id: New holder
            quantity: Units to move (accessories); None moves everything held
            notes: Note recorded on both sides of the transfer
            actor_id: Acting identity for audit stamps

        Returns:
            The new holder's Assignment

        Raises:
            NotFoundError: If the resource, either employee or the current
                assignment does not exist
            InvalidStateError: If the new holder cannot receive the resource
            ConflictError: If the new holder's assignment breaks the policy
            ValidationError: If the quantity is out of contract
        """
        if from_employee_id == to_employee_id:
            raise ValidationError(
                "Cannot transfer a resource to its current holder.",
                field="to_employee_id",
            )

        policy = policy_for(kind)

        async with self.uow.transaction():
            target = await self.uow.master_data.get_employee(to_employee_id)
            if target is None:
                raise NotFoundError("Employee", to_employee_id)

            return_note = f"Transferred to employee {target.employee_code}"
            if notes and notes.strip():
                return_note = f"{return_note}. {notes.strip()}"

            returned = await self.unassign.execute(
                kind,
                resource_id=resource_id,
                employee_id=from_employee_id,
                quantity=quantity,
                notes=return_note,
                actor_id=actor_id,
            )
            moved = quantity if quantity is not None else returned.quantity

            assignment = await self.assign.execute(
                kind,
                resource_id,
                to_employee_id,
                quantity=moved if policy.tracks_quantity else None,
                notes=notes,
                actor_id=actor_id,
            )

        logger.info(
            f"Transferred {kind.value} {resource_id} from employee {from_employee_id} "
            f"to {target.employee_code}"
        )
        return assignment
