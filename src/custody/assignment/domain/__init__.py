"""Domain layer for the assignment ledger.

Contains:
- Entities: Assignment, AssignmentStatus, the append-only note log
- Policies: exclusive, quantity and seat-limited assignment rules
- Ports: Interface definition for assignment storage
"""

from .entities import (
    PARTIAL_RETURN_LABEL,
    RETURNED_LABEL,
    Assignment,
    AssignmentStatus,
    NoteEntry,
    NoteLog,
)
from .policies import (
    AssignmentPolicy,
    ExclusivePolicy,
    QuantityPolicy,
    SeatLimitedPolicy,
    policy_for,
)
from .ports import IAssignmentRepository

__all__ = [
    # Entities
    "Assignment",
    "AssignmentStatus",
    "NoteEntry",
    "NoteLog",
    "RETURNED_LABEL",
    "PARTIAL_RETURN_LABEL",
    # Policies
    "AssignmentPolicy",
    "ExclusivePolicy",
    "QuantityPolicy",
    "SeatLimitedPolicy",
    "policy_for",
    # Ports
    "IAssignmentRepository",
]
