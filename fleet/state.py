"""Centralized enums for node status, batch actions and item progress.

Valid item stage transitions are defined in services/item_state.py.
"""

from enum import Enum


class NodeStatus(str, Enum):
    """Connectivity reported by the node registry."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class BulkAction(str, Enum):
    """Operations that can be applied to every match of a scan."""

    START = "start"
    STOP = "stop"
    DELETE = "delete"
    REDEPLOY = "redeploy"


class ItemStage(str, Enum):
    """How far a single batch item got before it finished or failed."""

    PENDING = "pending"  # Nothing done yet
    PLANNED = "planned"  # Launch configuration built
    SOURCE_STOPPED = "source_stopped"  # Redeploy: original stopped (best effort)
    SOURCE_REMOVED = "source_removed"  # Original container deleted
    TARGET_CREATED = "target_created"  # Replacement / copy created
    DONE = "done"  # Every step of the item succeeded


class Operation(str, Enum):
    """Batch operation label used for logging and metrics."""

    BULK = "bulk"
    MIGRATION = "migration"
