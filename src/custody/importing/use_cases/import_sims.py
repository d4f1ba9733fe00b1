"""Import SIM cards use case.

Upserts SIM cards by the account number + service number pair. SIM
types, providers and card plans referenced by the batch are
auto-created when missing; a new plan's provider is the one most often
paired with it in the batch.
"""

import logging
from datetime import date, datetime
from typing import Optional, Sequence

from ...catalog.domain.entities import (
    MasterDataKind,
    ResourceKind,
    SimCard,
    SimCardStatus,
)
from ...common.exceptions import ValidationError
from ..domain.entities import SimImportRow
from .reconcile import BulkReconciler, ImportContext, MasterDataPlan, ReconcilePlan, majority_vote

logger = logging.getLogger(__name__)

START_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y")


def parse_start_date(value: Optional[str]) -> Optional[date]:
    """Parse an ISO date/datetime or a day-first date.

    Raises:
        ValueError: If the text matches no accepted format
    """
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    for fmt in START_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date '{value}'")


class ImportSimCardsUseCase(BulkReconciler[SimImportRow]):
    """Reconcile a batch of SIM card rows into the catalog."""

    kind = ResourceKind.SIM_CARD
    source = "SIM card"
    master_kinds = (
        MasterDataKind.SIM_TYPE,
        MasterDataKind.SIM_PROVIDER,
        MasterDataKind.SIM_CARD_PLAN,
    )

    def plan_master_data(self, rows: Sequence[SimImportRow], plan: MasterDataPlan) -> None:
        for row in rows:
            if row.sim_type:
                plan.ensure(MasterDataKind.SIM_TYPE, row.sim_type)
            if row.sim_provider:
                plan.ensure(MasterDataKind.SIM_PROVIDER, row.sim_provider)

        for row in rows:
            if not row.sim_card_plan or plan.find(MasterDataKind.SIM_CARD_PLAN, row.sim_card_plan):
                continue

            plan_key = row.sim_card_plan.lower()
            provider_name = majority_vote(
                r.sim_provider
                for r in rows
                if r.sim_card_plan and r.sim_card_plan.lower() == plan_key
            )
            provider = (
                plan.ensure(MasterDataKind.SIM_PROVIDER, provider_name)
                if provider_name
                else None
            )
            plan.ensure(
                MasterDataKind.SIM_CARD_PLAN,
                row.sim_card_plan,
                parent_id=provider.id if provider else None,
            )

    def duplicate_message(self, row: SimImportRow) -> str:
        return (
            f"Duplicate SIM card combination (Account: '{row.account_no}', "
            f"Service: '{row.service_no}') found in import data"
        )

    def reconcile_row(
        self,
        row: SimImportRow,
        context: ImportContext,
        writes: ReconcilePlan,
        project_id: Optional[str],
        actor_id: Optional[str],
    ) -> SimCard:
        if not row.account_no:
            raise ValidationError(
                "SIM Account Number is required for unique identification.",
                field="account_no",
            )
        if not row.service_no:
            raise ValidationError(
                "SIM Service Number is required for unique identification.",
                field="service_no",
            )

        try:
            start_date = parse_start_date(row.start_date)
        except ValueError:
            raise ValidationError(
                f"Invalid SIM Start Date '{row.start_date}'", field="start_date"
            )

        sim_type = context.lookup(MasterDataKind.SIM_TYPE, row.sim_type)
        provider = context.lookup(MasterDataKind.SIM_PROVIDER, row.sim_provider)
        card_plan = context.lookup(MasterDataKind.SIM_CARD_PLAN, row.sim_card_plan)
        status = SimCardStatus.parse(row.status)

        existing = context.resources.get(row.natural_key)
        if existing is not None:
            existing.service_no = row.service_no
            existing.status = status
            if start_date:
                existing.start_date = start_date
            if row.serial_no:
                existing.serial_no = row.serial_no
            if sim_type:
                existing.sim_type_id = sim_type.id
            if provider:
                existing.sim_provider_id = provider.id
            if card_plan:
                existing.sim_card_plan_id = card_plan.id
            if project_id:
                existing.project_id = project_id
            existing.touch(actor_id)
            writes.record_update(existing)
            return existing

        sim_card = SimCard(
            account_no=row.account_no,
            service_no=row.service_no,
            serial_no=row.serial_no,
            start_date=start_date,
            status=status,
            sim_type_id=sim_type.id if sim_type else None,
            sim_provider_id=provider.id if provider else None,
            sim_card_plan_id=card_plan.id if card_plan else None,
            project_id=project_id,
            created_by=actor_id,
        )
        context.resources[row.natural_key] = sim_card
        writes.record_create(sim_card)
        return sim_card
