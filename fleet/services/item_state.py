"""State machine for multi-step batch items.

Redeploy and move-mode migration are not transactional. Each item walks
through explicit stages so a failed result reports exactly how far the
item got instead of a flattened ok/fail.

Item stage lifecycle:
    pending -> done (start / stop / delete)
    pending -> planned -> source_stopped -> source_removed -> target_created -> done (redeploy)
    pending -> planned -> target_created -> source_removed -> done (migration, move)
    pending -> planned -> target_created -> done (migration, copy)
"""

from fleet.state import ItemStage


class ItemStateMachine:
    """Centralized stage transition rules for batch items."""

    VALID_TRANSITIONS: dict[ItemStage, set[ItemStage]] = {
        ItemStage.PENDING: {ItemStage.PLANNED, ItemStage.DONE},
        ItemStage.PLANNED: {ItemStage.SOURCE_STOPPED, ItemStage.SOURCE_REMOVED, ItemStage.TARGET_CREATED},
        ItemStage.SOURCE_STOPPED: {ItemStage.SOURCE_REMOVED},
        ItemStage.SOURCE_REMOVED: {ItemStage.TARGET_CREATED, ItemStage.DONE},
        ItemStage.TARGET_CREATED: {ItemStage.SOURCE_REMOVED, ItemStage.DONE},
        ItemStage.DONE: set(),
    }

    # Stages after which a remote node has been changed
    MUTATED_STAGES: set[ItemStage] = {
        ItemStage.SOURCE_STOPPED,
        ItemStage.SOURCE_REMOVED,
        ItemStage.TARGET_CREATED,
        ItemStage.DONE,
    }

    @classmethod
    def can_transition(cls, current: ItemStage, target: ItemStage) -> bool:
        """Check if a stage transition is valid."""
        if current == target:
            return True
        return target in cls.VALID_TRANSITIONS.get(current, set())

    @classmethod
    def has_mutated(cls, stage: ItemStage) -> bool:
        """Whether an item that stopped at this stage changed remote state."""
        return stage in cls.MUTATED_STAGES


class ItemProgress:
    """Tracks the current stage of one batch item."""

    def __init__(self) -> None:
        self.stage = ItemStage.PENDING

    def advance(self, target: ItemStage) -> None:
        if not ItemStateMachine.can_transition(self.stage, target):
            raise ValueError(f"Invalid item transition {self.stage.value} -> {target.value}")
        self.stage = target
