"""Use cases for bulk imports.

Each importer reconciles one batch in two commit points and always
returns a structured outcome for row-level problems.
"""

from .import_assets import ImportAssetsUseCase
from .import_sims import ImportSimCardsUseCase, parse_start_date
from .reconcile import BulkReconciler, ImportContext, majority_vote

__all__ = [
    "BulkReconciler",
    "ImportContext",
    "ImportAssetsUseCase",
    "ImportSimCardsUseCase",
    "majority_vote",
    "parse_start_date",
]
