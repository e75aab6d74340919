"""Scan, bulk action and migration engines."""

from fleet.services.bulk import BulkActionExecutor
from fleet.services.ledger import ResultLedger
from fleet.services.migration import MigrationEngine
from fleet.services.planner import RedeployPlanner, build_migration_plan
from fleet.services.scan import ScanEngine

__all__ = [
    "BulkActionExecutor",
    "MigrationEngine",
    "RedeployPlanner",
    "ResultLedger",
    "ScanEngine",
    "build_migration_plan",
]
