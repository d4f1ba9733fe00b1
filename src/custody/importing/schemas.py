"""Pydantic schemas for import payloads and results.

Payloads accept the PascalCase field names used by existing clients
(``AssetTag``, ``SimAccountNo``, ...) as well as snake_case.
"""

from typing import Optional

from pydantic import BaseModel, Field

from .domain.entities import AssetImportRow, ImportOutcome, SimImportRow


class AssetImportItem(BaseModel):
    """One asset row of an import payload."""

    asset_tag: str = Field("", alias="AssetTag")
    asset_name: str = Field("", alias="AssetName")
    item_category: str = Field("", alias="ItemCategory")
    item: str = Field("", alias="Item")
    serial_no: Optional[str] = Field(None, alias="SerialNo")
    assigned_to: Optional[str] = Field(None, alias="AssignedTo")
    condition: Optional[str] = Field("excellent", alias="Condition")

    class Config:
        populate_by_name = True


class AssetImportRequest(BaseModel):
    """Asset import payload."""

    assets: list[AssetImportItem] = Field(default_factory=list, alias="Assets")
    project_id: Optional[str] = Field(None, alias="ProjectId")

    class Config:
        populate_by_name = True

    def to_rows(self) -> list[AssetImportRow]:
        """Convert to import rows numbered from 1."""
        return [
            AssetImportRow(row_number=i, **item.model_dump())
            for i, item in enumerate(self.assets, start=1)
        ]


class SimCardImportItem(BaseModel):
    """One SIM card row of an import payload."""

    account_no: str = Field("", alias="SimAccountNo")
    service_no: str = Field("", alias="SimServiceNo")
    start_date: Optional[str] = Field(None, alias="SimStartDate")
    sim_type: Optional[str] = Field(None, alias="SimType")
    sim_provider: Optional[str] = Field(None, alias="SimProvider")
    sim_card_plan: Optional[str] = Field(None, alias="SimCardPlan")
    status: Optional[str] = Field("active", alias="SimStatus")
    serial_no: Optional[str] = Field(None, alias="SimSerialNo")
    assigned_to: Optional[str] = Field(None, alias="AssignedTo")

    class Config:
        populate_by_name = True


class SimCardImportRequest(BaseModel):
    """SIM card import payload."""

    sim_cards: list[SimCardImportItem] = Field(default_factory=list, alias="SimCards")
    project_id: Optional[str] = Field(None, alias="ProjectId")

    class Config:
        populate_by_name = True

    def to_rows(self) -> list[SimImportRow]:
        """Convert to import rows numbered from 1."""
        return [
            SimImportRow(row_number=i, **item.model_dump())
            for i, item in enumerate(self.sim_cards, start=1)
        ]


class RowErrorSchema(BaseModel):
    """A row-level import error."""

    row: int
    message: str


class ImportResultSchema(BaseModel):
    """Import result returned to callers."""

    success: bool
    imported: int = 0
    updated: int = 0
    errors: list[RowErrorSchema] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: ImportOutcome) -> "ImportResultSchema":
        return cls(
            success=outcome.success,
            imported=outcome.imported,
            updated=outcome.updated,
            errors=[RowErrorSchema(row=e.row, message=e.message) for e in outcome.errors],
        )
