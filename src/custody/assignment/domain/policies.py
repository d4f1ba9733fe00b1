"""Assignment policies, one per way a resource can be held.

Every resource kind maps to exactly one policy:

- ExclusivePolicy (assets, SIM cards): one active row per resource.
- QuantityPolicy (accessories): one active row per (employee, accessory);
  repeated assigns top up the row, partial returns draw it down.
- SeatLimitedPolicy (software licenses): one active row per
  (employee, license); active rows capped by the license's seats.

Policies are pure: they inspect the resource and its active rows and
either decide or raise. Persistence is left to the use cases.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from ...catalog.domain.entities import (
    Accessory,
    AssignmentPolicyKind,
    Employee,
    Resource,
    ResourceKind,
    SoftwareLicense,
)
from ...common.exceptions import ConflictError, NotFoundError, ValidationError
from .entities import Assignment


class AssignmentPolicy(ABC):
    """Decides how a resource may be assigned and returned."""

    policy_kind: ClassVar[AssignmentPolicyKind]
    tracks_quantity: ClassVar[bool] = False

    def check_quantity(self, kind: ResourceKind, quantity: Optional[int]) -> int:
        """Validate the requested assign quantity and return the effective one."""
        if quantity is None:
            return 1
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0.", field="quantity")
        if quantity != 1 and not self.tracks_quantity:
            raise ValidationError(
                f"{kind.label} assignments are single-unit; quantity must be 1.",
                field="quantity",
            )
        return quantity

    @abstractmethod
    def place(
        self,
        resource: Resource,
        employee: Employee,
        active: list[Assignment],
        quantity: int,
    ) -> Optional[Assignment]:
        """Decide where a new assignment goes.

        Args:
            resource: The resource being assigned
            employee: The receiving employee
            active: All active rows for the resource
            quantity: Effective quantity (1 unless the policy tracks quantity)

        Returns:
            An existing active row to top up, or None if a new row is needed

        Raises:
            ConflictError: If the assignment would break the policy
        """
        ...

    def select_for_return(
        self,
        resource: Resource,
        active: list[Assignment],
        employee_id: Optional[str],
    ) -> Assignment:
        """Find the active row a return applies to.

        Raises:
            ValidationError: If the policy needs an employee and none is given
            NotFoundError: If no matching active row exists
        """
        if employee_id is None:
            raise ValidationError(
                f"An employee is required to return a {resource.kind.label.lower()}.",
                field="employee_id",
            )
        for assignment in active:
            if assignment.employee_id == employee_id:
                return assignment
        raise NotFoundError(
            "Assignment",
            message=(
                f"No active assignment found for {resource.kind.label.lower()} "
                f"'{resource.id}' and employee '{employee_id}'."
            ),
        )

    def units_to_return(
        self,
        assignment: Assignment,
        quantity: Optional[int],
    ) -> Optional[int]:
        """Validate a return quantity.

        Returns:
            None for a full return, or the number of units for a partial return

        Raises:
            ValidationError: If the quantity is not positive or exceeds what is held
        """
        if quantity is None:
            return None
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0.", field="quantity")
        if quantity > assignment.quantity:
            raise ValidationError(
                f"Cannot return {quantity} items. Only {assignment.quantity} items are assigned.",
                field="quantity",
            )
        if quantity == assignment.quantity:
            return None
        return quantity


class ExclusivePolicy(AssignmentPolicy):
    """At most one active assignment per resource, whoever holds it."""

    policy_kind = AssignmentPolicyKind.EXCLUSIVE

    def place(self, resource, employee, active, quantity):
        if active:
            holder = active[0].employee_id
            whom = "this employee" if holder == employee.id else "another employee"
            raise ConflictError(
                f"{resource.kind.label} '{resource.display_name}' is already assigned to {whom}.",
                details={"resource_id": resource.id, "holder_id": holder},
            )
        return None

    def select_for_return(self, resource, active, employee_id):
        if not active:
            raise NotFoundError(
                "Assignment",
                message=(
                    f"No active assignment found for {resource.kind.label.lower()} "
                    f"with ID '{resource.id}'."
                ),
            )
        assignment = active[0]
        if employee_id is not None and assignment.employee_id != employee_id:
            raise NotFoundError(
                "Assignment",
                message=(
                    f"{resource.kind.label} '{resource.display_name}' is not assigned "
                    f"to employee '{employee_id}'."
                ),
            )
        return assignment


class QuantityPolicy(AssignmentPolicy):
    """Units drawn from a stock; one active row per holder."""

    policy_kind = AssignmentPolicyKind.QUANTITY
    tracks_quantity = True

    def place(self, resource, employee, active, quantity):
        stock = resource.stock if isinstance(resource, Accessory) else None
        if stock is not None:
            held = sum(a.quantity for a in active)
            if held + quantity > stock:
                raise ConflictError(
                    f"Only {max(stock - held, 0)} unit(s) of accessory "
                    f"'{resource.display_name}' are available.",
                    details={"stock": stock, "held": held, "requested": quantity},
                )
        for assignment in active:
            if assignment.employee_id == employee.id:
                return assignment
        return None


class SeatLimitedPolicy(AssignmentPolicy):
    """One active row per holder, bounded by the license's seat count."""

    policy_kind = AssignmentPolicyKind.SEAT_LIMITED

    def place(self, resource, employee, active, quantity):
        if any(a.employee_id == employee.id for a in active):
            raise ConflictError(
                "Employee is already assigned to this software license.",
                details={"resource_id": resource.id, "employee_id": employee.id},
            )
        seats = resource.seats if isinstance(resource, SoftwareLicense) else None
        if seats is not None and len(active) >= seats:
            raise ConflictError(
                "No available seats for this software license.",
                details={"seats": seats, "in_use": len(active)},
            )
        return None


_POLICIES: dict[AssignmentPolicyKind, AssignmentPolicy] = {
    AssignmentPolicyKind.EXCLUSIVE: ExclusivePolicy(),
    AssignmentPolicyKind.QUANTITY: QuantityPolicy(),
    AssignmentPolicyKind.SEAT_LIMITED: SeatLimitedPolicy(),
}


def policy_for(kind: ResourceKind) -> AssignmentPolicy:
    """Return the assignment policy governing a resource kind."""
    return _POLICIES[kind.policy]
