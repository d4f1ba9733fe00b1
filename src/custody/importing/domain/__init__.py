"""Domain layer for bulk imports.

Contains:
- Entities: import rows, row errors, import outcome
- Ports: Interface definition for spreadsheet parsing
"""

from .entities import (
    SENTINEL_VALUES,
    AssetImportRow,
    ImportOutcome,
    RowError,
    SimImportRow,
    clean_text,
    normalize_optional,
)
from .ports import ISpreadsheetParser

__all__ = [
    # Entities
    "AssetImportRow",
    "SimImportRow",
    "RowError",
    "ImportOutcome",
    "SENTINEL_VALUES",
    "clean_text",
    "normalize_optional",
    # Ports
    "ISpreadsheetParser",
]
