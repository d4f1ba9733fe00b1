"""Excel and CSV parser adapter.

This adapter implements ISpreadsheetParser to parse asset and SIM card
spreadsheets into import rows.
"""

import csv
import io
import logging
from datetime import date, datetime
from typing import Any, Iterator, Optional

from openpyxl import load_workbook

from ..domain.entities import AssetImportRow, SimImportRow
from ..domain.ports import ISpreadsheetParser

logger = logging.getLogger(__name__)

# A sheet row as (sheet row number, cell values)
SheetRow = tuple[int, list[Any]]


class OpenpyxlSpreadsheetParser(ISpreadsheetParser):
    """Spreadsheet parser implementation using openpyxl.

    Expected asset format:
    | Asset Tag | Asset Name | Item Category | Item     | Serial No | Assigned To | Condition |
    |-----------|------------|---------------|----------|-----------|-------------|-----------|
    | A-1       | Laptop     | IT            | Dell XPS | SN123     | EMP-1       | good      |

    Expected SIM card format:
    | SIM Account No | SIM Service No | SIM Start Date | SIM Type | SIM Provider | SIM Card Plan | SIM Status | SIM Serial No | Assigned To |

    - First row is treated as header; headers match case-insensitively
    - Row numbers are sheet rows, so the first data row is row 2
    - Fully empty rows are skipped
    """

    # Column name variations we accept, per row field
    ASSET_COLUMNS = {
        "asset_tag": ["asset tag", "assettag", "asset_tag", "tag"],
        "asset_name": ["asset name", "assetname", "asset_name", "name"],
        "item_category": ["item category", "itemcategory", "item_category", "category"],
        "item": ["item", "item name", "itemname"],
        "serial_no": ["serial no", "serial number", "serialno", "serial_no", "serial", "sn"],
        "assigned_to": ["assigned to", "assignedto", "assigned_to", "employee id", "employee"],
        "condition": ["condition"],
    }
    ASSET_REQUIRED = ("asset_tag", "asset_name", "item_category", "item")

    SIM_COLUMNS = {
        "account_no": ["sim account no", "simaccountno", "account no", "account number", "account_no"],
        "service_no": ["sim service no", "simserviceno", "service no", "service number", "service_no"],
        "start_date": ["sim start date", "simstartdate", "start date", "start_date"],
        "sim_type": ["sim type", "simtype", "sim_type", "type"],
        "sim_provider": ["sim provider", "simprovider", "sim_provider", "provider"],
        "sim_card_plan": ["sim card plan", "simcardplan", "sim_card_plan", "plan"],
        "status": ["sim status", "simstatus", "status"],
        "serial_no": ["sim serial no", "simserialno", "serial no", "serial number", "serial_no"],
        "assigned_to": ["assigned to", "assignedto", "assigned_to", "employee id", "employee"],
    }
    SIM_REQUIRED = ("account_no", "service_no")

    def parse_assets(self, file_content: bytes) -> list[AssetImportRow]:
        rows = [
            AssetImportRow(row_number=row_num, **values)
            for row_num, values in self._parse(
                file_content, self.ASSET_COLUMNS, self.ASSET_REQUIRED
            )
        ]
        logger.info(f"Parsed {len(rows)} asset rows")
        return rows

    def parse_sim_cards(self, file_content: bytes) -> list[SimImportRow]:
        rows = [
            SimImportRow(row_number=row_num, **values)
            for row_num, values in self._parse(
                file_content, self.SIM_COLUMNS, self.SIM_REQUIRED
            )
        ]
        logger.info(f"Parsed {len(rows)} SIM card rows")
        return rows

    def _parse(
        self,
        file_content: bytes,
        columns: dict[str, list[str]],
        required: tuple[str, ...],
    ) -> Iterator[tuple[int, dict[str, Optional[str]]]]:
        """Read the sheet and yield (row number, field values) per data row.

        Raises:
            ValueError: If the file is unreadable or required columns are missing
        """
        header, data = self._read_sheet(file_content)
        indices = self._find_columns(header, columns)

        missing = [name for name in required if name not in indices]
        if missing:
            expected = "; ".join(
                f"{name}: {', '.join(columns[name])}" for name in missing
            )
            raise ValueError(f"Missing required column(s). Expected one of - {expected}")

        for row_num, cells in data:
            values = {
                name: self._cell_text(cells[idx]) if idx < len(cells) else None
                for name, idx in indices.items()
            }
            if all(v is None for v in values.values()):
                continue
            yield row_num, values

    def _read_sheet(self, file_content: bytes) -> tuple[list[Any], list[SheetRow]]:
        if self._is_csv(file_content):
            return self._read_csv(file_content)
        return self._read_excel(file_content)

    def _is_csv(self, file_content: bytes) -> bool:
        """Detect if file content is CSV format.

        Args:
            file_content: Raw bytes of the file

        Returns:
            True if CSV, False otherwise
        """
        try:
            text = file_content.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError:
            # Not a text file, likely Excel
            return False
        first_line = text.split("\n")[0].split("\r")[0]
        return "," in first_line or ";" in first_line or "\t" in first_line

    def _read_csv(self, file_content: bytes) -> tuple[list[Any], list[SheetRow]]:
        """Read a CSV file into a header and numbered rows.

        Raises:
            ValueError: If the file is empty or cannot be read
        """
        try:
            text = file_content.decode("utf-8-sig")

            # Detect delimiter
            try:
                dialect = csv.Sniffer().sniff(text[:1024], delimiters=",;\t")
            except csv.Error:
                dialect = csv.excel

            reader = csv.reader(io.StringIO(text), dialect)
            try:
                header = next(reader)
            except StopIteration:
                raise ValueError("CSV file is empty")

            return header, list(enumerate(reader, start=2))

        except Exception as e:
            if isinstance(e, ValueError):
                raise
            logger.error(f"Failed to parse CSV file: {e}")
            raise ValueError(f"Failed to parse CSV file: {e}")

    def _read_excel(self, file_content: bytes) -> tuple[list[Any], list[SheetRow]]:
        """Read the active worksheet into a header and numbered rows.

        Raises:
            ValueError: If the workbook is invalid or empty
        """
        try:
            wb = load_workbook(filename=io.BytesIO(file_content), read_only=True, data_only=True)
            ws = wb.active
            if ws is None:
                raise ValueError("Excel file has no active worksheet")

            sheet = ws.iter_rows(values_only=True)
            header = next(sheet, None)
            if header is None:
                raise ValueError("Excel file is empty")

            rows = [(row_num, list(cells)) for row_num, cells in enumerate(sheet, start=2)]
            wb.close()
            return list(header), rows

        except Exception as e:
            if isinstance(e, ValueError):
                raise
            logger.error(f"Failed to parse Excel file: {e}")
            raise ValueError(f"Failed to parse Excel file: {e}")

    @staticmethod
    def _find_columns(header: list[Any], columns: dict[str, list[str]]) -> dict[str, int]:
        """Map row fields to column indices; the first matching header wins."""
        indices: dict[str, int] = {}
        for idx, cell in enumerate(header):
            if cell is None:
                continue
            title = str(cell).strip().lower()
            for name, variants in columns.items():
                if name not in indices and title in variants:
                    indices[name] = idx
                    break
        return indices

    @staticmethod
    def _cell_text(value: Any) -> Optional[str]:
        """Convert a cell value to trimmed text, or None if blank."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, float) and value.is_integer():
            # Numeric cells such as account numbers come back as floats
            return str(int(value))
        text = str(value).strip()
        return text or None
