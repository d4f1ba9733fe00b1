"""Unit-of-work port.

A unit of work bundles the three repositories with a single commit
boundary. Everything written inside ``transaction()`` is committed
together or not at all; nested ``transaction()`` calls join the
enclosing one.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager

from ..assignment.domain.ports import IAssignmentRepository
from ..catalog.domain.ports import IMasterDataRepository, IResourceCatalog


class IUnitOfWork(ABC):
    """Port for a transactional view over the custody store."""

    catalog: IResourceCatalog
    master_data: IMasterDataRepository
    assignments: IAssignmentRepository

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """Open a commit boundary.

        Usage:
            async with uow.transaction():
                ...

        Commits when the block exits normally and rolls back when it
        raises (including cancellation).
        """
        ...
