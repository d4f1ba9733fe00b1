#!/usr/bin/env python3
"""Resource Custody CLI.

This module provides a command-line interface for importing asset and
SIM card spreadsheets and for recording assignments against a
PostgreSQL database.

Architecture:
    - PostgresUnitOfWork wraps an asyncpg pool with one transaction per call
    - Import commands parse the file with OpenpyxlSpreadsheetParser and
      reconcile it with the asset or SIM card importer
    - Assignment commands call the ledger use cases directly

Environment Variables Required:
    - DATABASE_URL: PostgreSQL connection string
    - LOG_LEVEL: Logging level (optional, default INFO)

Example Usage:
    $ python main.py init-db                                  # Create tables
    $ python main.py import-assets assets.xlsx --project P1   # Import assets
    $ python main.py import-sims sims.csv                     # Import SIM cards
    $ python main.py assign asset <asset-id> <employee-id>    # Assign an asset
    $ python main.py unassign accessory <id> --employee <e> --quantity 2
    $ python main.py transfer asset <asset-id> <from> <to>    # Reassign
    $ python main.py history asset <asset-id>                # Custody trail
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.custody.assignment.use_cases import (
    AssignResourceUseCase,
    CustodyHistoryUseCase,
    TransferResourceUseCase,
    UnassignResourceUseCase,
)
from src.custody.catalog.domain.entities import ResourceKind
from src.custody.common.database import close_pool, create_pool
from src.custody.common.exceptions import CustodyError
from src.custody.config import Settings
from src.custody.importing.adapters import OpenpyxlSpreadsheetParser
from src.custody.importing.schemas import ImportResultSchema
from src.custody.importing.use_cases import ImportAssetsUseCase, ImportSimCardsUseCase
from src.custody.persistence.adapters import PostgresUnitOfWork, ensure_schema

logger = logging.getLogger("custody.cli")


def print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_import(args: argparse.Namespace, uow: PostgresUnitOfWork, settings: Settings) -> int:
    """Parse a spreadsheet and reconcile it into the catalog.

    Returns:
        Process exit code
    """
    content = Path(args.file).read_bytes()
    parser = OpenpyxlSpreadsheetParser()

    try:
        if args.command == "import-assets":
            rows = parser.parse_assets(content)
            importer = ImportAssetsUseCase(
                uow,
                default_category=settings.import_default_category,
                warn_rows=settings.import_warn_rows,
            )
        else:
            rows = parser.parse_sim_cards(content)
            importer = ImportSimCardsUseCase(
                uow,
                default_category=settings.import_default_category,
                warn_rows=settings.import_warn_rows,
            )
    except ValueError as e:
        logger.error(f"Cannot read {args.file}: {e}")
        print_json({"success": False, "errors": [{"row": 0, "message": str(e)}]})
        return 1

    outcome = await importer.execute(rows, project_id=args.project, actor_id=args.actor)
    print_json(ImportResultSchema.from_outcome(outcome).model_dump())
    for warning in outcome.warnings:
        logger.warning(warning)
    return 0 if outcome.success else 1


async def run_ledger(args: argparse.Namespace, uow: PostgresUnitOfWork) -> int:
    """Run an assign, unassign, transfer or history command.

    Returns:
        Process exit code
    """
    kind = ResourceKind(args.kind)

    if args.command == "history":
        history = await CustodyHistoryUseCase(uow).for_resource(kind, args.resource_id)
        print_json({"resource_id": args.resource_id, "assignments": [a.to_dict() for a in history]})
        return 0

    if args.command == "assign":
        assignment = await AssignResourceUseCase(uow).execute(
            kind,
            args.resource_id,
            args.employee_id,
            quantity=args.quantity,
            notes=args.notes,
            actor_id=args.actor,
        )
    elif args.command == "unassign":
        assignment = await UnassignResourceUseCase(uow).execute(
            kind,
            resource_id=args.resource_id,
            employee_id=args.employee,
            quantity=args.quantity,
            notes=args.notes,
            actor_id=args.actor,
        )
    else:
        assignment = await TransferResourceUseCase(uow).execute(
            kind,
            args.resource_id,
            args.from_employee,
            args.to_employee,
            quantity=args.quantity,
            notes=args.notes,
            actor_id=args.actor,
        )

    print_json(assignment.to_dict())
    return 0


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Open the database pool and dispatch the command."""
    pool = await create_pool(
        settings.require_database_url(),
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )

    try:
        if args.command == "init-db":
            await ensure_schema(pool)
            print_json({"success": True})
            return 0

        uow = PostgresUnitOfWork(pool)
        if args.command in ("import-assets", "import-sims"):
            return await run_import(args, uow, settings)
        return await run_ledger(args, uow)

    finally:
        await close_pool(pool)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import resources and record custody assignments in PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  python main.py import-assets assets.xlsx --project <project-id>
  python main.py import-sims sims.csv --actor admin
  python main.py assign accessory <id> <employee-id> --quantity 3
  python main.py unassign asset <asset-id> --notes "Returned damaged"
  python main.py transfer software_license <id> <from-employee> <to-employee>
  python main.py history accessory <id>
        """
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--actor",
        type=str,
        metavar="ID",
        help="Acting user recorded in audit stamps"
    )

    kinds = [k.value for k in ResourceKind]
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the database schema")

    for name, label in (("import-assets", "assets"), ("import-sims", "SIM cards")):
        sub = subparsers.add_parser(name, parents=[common], help=f"Import {label} from Excel or CSV")
        sub.add_argument("file", help="Spreadsheet to import (.xlsx or .csv)")
        sub.add_argument(
            "--project",
            type=str,
            metavar="ID",
            help="Project every imported record belongs to"
        )

    assign = subparsers.add_parser("assign", parents=[common], help="Assign a resource")
    assign.add_argument("kind", choices=kinds)
    assign.add_argument("resource_id")
    assign.add_argument("employee_id")
    assign.add_argument("--quantity", type=int, help="Units to assign (accessories)")
    assign.add_argument("--notes", type=str, help="Assignment note")

    unassign = subparsers.add_parser("unassign", parents=[common], help="Return a resource")
    unassign.add_argument("kind", choices=kinds)
    unassign.add_argument("resource_id")
    unassign.add_argument("--employee", type=str, metavar="ID", help="Current holder")
    unassign.add_argument("--quantity", type=int, help="Units to return (accessories)")
    unassign.add_argument("--notes", type=str, help="Return note")

    transfer = subparsers.add_parser("transfer", parents=[common], help="Move a resource between employees")
    transfer.add_argument("kind", choices=kinds)
    transfer.add_argument("resource_id")
    transfer.add_argument("from_employee")
    transfer.add_argument("to_employee")
    transfer.add_argument("--quantity", type=int, help="Units to move (accessories)")
    transfer.add_argument("--notes", type=str, help="Transfer note")

    history = subparsers.add_parser("history", help="Show the custody trail of a resource")
    history.add_argument("kind", choices=kinds)
    history.add_argument("resource_id")

    return parser


def main():
    args = build_parser().parse_args()

    try:
        settings = Settings.from_env()
    except CustodyError as e:
        print(f"[Main] Configuration error: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        exit_code = asyncio.run(run(args, settings))
    except CustodyError as e:
        logger.error(f"{e.code}: {e.message}")
        print_json({"success": False, "error": e.to_dict()})
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
