"""
Moving content between sites of a network.
"""

from .migrator import ContentMigrator
from .orchestrator import run_move
from .report import ItemResult, ItemStatus, MigrationReport

__all__ = ["ContentMigrator", "run_move", "ItemResult", "ItemStatus", "MigrationReport"]
