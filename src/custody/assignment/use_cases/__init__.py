"""Use cases for the assignment ledger.

Each use case represents a single custody action and runs in one
unit of work.
"""

from .assign_resource import AssignResourceUseCase
from .custody_history import CustodyHistoryUseCase
from .transfer_resource import TransferResourceUseCase
from .unassign_resource import UnassignResourceUseCase

__all__ = [
    "AssignResourceUseCase",
    "UnassignResourceUseCase",
    "TransferResourceUseCase",
    "CustodyHistoryUseCase",
]
