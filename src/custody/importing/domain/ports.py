"""Port interface for spreadsheet parsing."""

from abc import ABC, abstractmethod

from .entities import AssetImportRow, SimImportRow


class ISpreadsheetParser(ABC):
    """Port for turning uploaded spreadsheets into import rows."""

    @abstractmethod
    def parse_assets(self, file_content: bytes) -> list[AssetImportRow]:
        """Parse an asset spreadsheet.

        Args:
            file_content: Raw bytes of the Excel or CSV file

        Returns:
            List of AssetImportRow, numbered by sheet row

        Raises:
            ValueError: If the file is unreadable or a required column is missing
        """
        ...

    @abstractmethod
    def parse_sim_cards(self, file_content: bytes) -> list[SimImportRow]:
        """Parse a SIM card spreadsheet.

        Args:
            file_content: Raw bytes of the Excel or CSV file

        Returns:
            List of SimImportRow, numbered by sheet row

        Raises:
            ValueError: If the file is unreadable or a required column is missing
        """
        ...
