"""Import assets use case.

Upserts assets by asset tag. Item categories and items referenced by
the batch are auto-created when missing; a new item's category is the
one most often paired with it in the batch.
"""

import logging
from typing import Optional, Sequence

from ...catalog.domain.entities import (
    Asset,
    AssetStatus,
    MasterDataKind,
    ResourceKind,
)
from ...common.exceptions import ValidationError
from ..domain.entities import AssetImportRow
from .reconcile import BulkReconciler, ImportContext, MasterDataPlan, ReconcilePlan, majority_vote

logger = logging.getLogger(__name__)


class ImportAssetsUseCase(BulkReconciler[AssetImportRow]):
    """Reconcile a batch of asset rows into the catalog."""

    kind = ResourceKind.ASSET
    source = "asset"
    master_kinds = (MasterDataKind.ITEM_CATEGORY, MasterDataKind.ITEM)

    def plan_master_data(self, rows: Sequence[AssetImportRow], plan: MasterDataPlan) -> None:
        for row in rows:
            if row.item_category:
                plan.ensure(MasterDataKind.ITEM_CATEGORY, row.item_category)

        for row in rows:
            if not row.item or plan.find(MasterDataKind.ITEM, row.item):
                continue

            item_key = row.item.lower()
            category_name = majority_vote(
                r.item_category for r in rows if r.item.lower() == item_key
            )
            if category_name:
                category = plan.ensure(MasterDataKind.ITEM_CATEGORY, category_name)
            else:
                category = plan.ensure(
                    MasterDataKind.ITEM_CATEGORY,
                    self.default_category,
                    description="Default category for orphaned items",
                )
                logger.info(
                    f"No category inferable for item '{row.item}', "
                    f"using '{category.name}'"
                )
            plan.ensure(MasterDataKind.ITEM, row.item, parent_id=category.id)

    def duplicate_message(self, row: AssetImportRow) -> str:
        return f"Duplicate Asset Tag '{row.asset_tag}' found in import data"

    def reconcile_row(
        self,
        row: AssetImportRow,
        context: ImportContext,
        writes: ReconcilePlan,
        project_id: Optional[str],
        actor_id: Optional[str],
    ) -> Asset:
        if not row.asset_tag:
            raise ValidationError("Asset Tag is required", field="asset_tag")
        if not row.asset_name:
            raise ValidationError("Asset Name is required", field="asset_name")
        if not row.item_category:
            raise ValidationError("Item Category is required", field="item_category")
        if not row.item:
            raise ValidationError("Item is required", field="item")

        if context.lookup(MasterDataKind.ITEM_CATEGORY, row.item_category) is None:
            raise ValidationError(
                f"Item Category '{row.item_category}' not found", field="item_category"
            )
        item = context.lookup(MasterDataKind.ITEM, row.item)
        if item is None:
            raise ValidationError(f"Item '{row.item}' not found", field="item")

        description = f"Imported: {row.item}"
        if row.serial_no:
            description = f"{description} ({row.serial_no})"

        existing = context.resources.get(row.natural_key)
        if existing is not None:
            existing.name = row.asset_name
            existing.description = description
            existing.condition = row.condition
            existing.item_id = item.id
            if row.serial_no:
                existing.serial_number = row.serial_no
            if project_id:
                existing.project_id = project_id
            existing.touch(actor_id)
            writes.record_update(existing)
            return existing

        asset = Asset(
            asset_tag=row.asset_tag,
            name=row.asset_name,
            description=description,
            serial_number=row.serial_no,
            status=AssetStatus.AVAILABLE,
            condition=row.condition,
            item_id=item.id,
            project_id=project_id,
            created_by=actor_id,
        )
        context.resources[row.natural_key] = asset
        writes.record_create(asset)
        return asset
