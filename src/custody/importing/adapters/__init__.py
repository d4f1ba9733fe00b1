"""Adapters for bulk imports."""

from .spreadsheet_parser import OpenpyxlSpreadsheetParser

__all__ = ["OpenpyxlSpreadsheetParser"]
