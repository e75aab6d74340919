"""Apply one action to every match of a scan.

Matches are processed strictly one at a time, in scan order. A failing
item is recorded in the ledger and never aborts its siblings.

Redeploy is stop (best effort) -> delete -> create and is NOT
transactional: if the create fails after the delete succeeded, the
container is gone. The item result carries the stage it reached so the
operator can see that.
"""

from __future__ import annotations

import logging
from typing import Iterable

from fleet.config import settings
from fleet.errors import PreconditionFailure, ValidationFailure, error_message
from fleet.metrics import record_item
from fleet.naming import short_container_id
from fleet.schemas import ItemResult, Match, RedeployOverrides
from fleet.services.item_state import ItemProgress, ItemStateMachine
from fleet.services.ledger import ResultLedger
from fleet.services.planner import RedeployPlanner
from fleet.session import OperatorSession
from fleet.state import BulkAction, ItemStage, Operation

logger = logging.getLogger(__name__)

_SIMPLE_ACTION_MESSAGES = {
    BulkAction.START: "started",
    BulkAction.STOP: "stopped",
    BulkAction.DELETE: "deleted",
}


class BulkActionExecutor:
    """Sequential single-worker executor for bulk actions."""

    def __init__(self, session: OperatorSession, planner: RedeployPlanner | None = None):
        self.session = session
        self.client = session.client
        self.planner = planner or RedeployPlanner(session.client)

    async def run(
        self,
        matches: Iterable[Match],
        action: BulkAction | str,
        overrides: RedeployOverrides | None = None,
    ) -> ResultLedger:
        """Run ``action`` against every match and return the ledger.

        Raises:
            PreconditionFailure: There is nothing to run against
            ValidationFailure: The action is unknown
        """
        items = list(matches or [])
        if not items:
            raise PreconditionFailure("no matches to run against")
        try:
            action = BulkAction(action)
        except ValueError:
            raise ValidationFailure(f"unknown action: {action}")
        overrides = overrides or RedeployOverrides()

        logger.info(f"Running {action.value} on {len(items)} container(s)")
        ledger = ResultLedger()
        for match in items:
            if self.session.cancel_token.cancelled:
                ledger.cancelled = True
                logger.info(f"Bulk {action.value} cancelled after {len(ledger)} item(s)")
                break
            ledger.append(await self._run_item(match, action, overrides))

        await self.session.notify_refresh()
        logger.info(f"Bulk {action.value} finished: {ledger.summary()}")
        return ledger

    async def _run_item(
        self,
        match: Match,
        action: BulkAction,
        overrides: RedeployOverrides,
    ) -> ItemResult:
        progress = ItemProgress()
        try:
            if action == BulkAction.REDEPLOY:
                message = await self._redeploy(match, overrides, progress)
            else:
                message = await self._simple_action(match, action, progress)
            ok = True
        except Exception as e:
            ok = False
            message = error_message(e, "operation failed")
            if action == BulkAction.REDEPLOY and progress.stage == ItemStage.SOURCE_REMOVED:
                message = f"removed but not recreated: {message}"
            logger.warning(f"Bulk {action.value} failed for {match.key}: {message}")
            if ItemStateMachine.has_mutated(progress.stage):
                logger.warning(f"{match.key} left partially applied at stage {progress.stage.value}")

        record_item(Operation.BULK.value, ok)
        return ItemResult(
            key=match.key,
            ok=ok,
            node_display_name=match.node_display_name,
            container_id_short=short_container_id(match.container.id, settings.container_id_short_len),
            container_name=match.container.primary_name,
            message=message,
            stage=progress.stage,
        )

    async def _simple_action(self, match: Match, action: BulkAction, progress: ItemProgress) -> str:
        node_id, container_id = match.node_id, match.container.id
        if action == BulkAction.START:
            await self.client.start_container(node_id, container_id)
        elif action == BulkAction.STOP:
            await self.client.stop_container(node_id, container_id)
        else:
            await self.client.delete_container(node_id, container_id)
        progress.advance(ItemStage.DONE)
        return _SIMPLE_ACTION_MESSAGES[action]

    async def _redeploy(self, match: Match, overrides: RedeployOverrides, progress: ItemProgress) -> str:
        node_id, container_id = match.node_id, match.container.id
        plan = await self.planner.plan(match, overrides)
        progress.advance(ItemStage.PLANNED)

        try:
            await self.client.stop_container(node_id, container_id)
            progress.advance(ItemStage.SOURCE_STOPPED)
        except Exception as e:
            # Already stopped is expected here
            logger.debug(f"Ignoring stop failure for {match.key}: {e}")

        await self.client.delete_container(node_id, container_id)
        progress.advance(ItemStage.SOURCE_REMOVED)

        await self.client.create_container(node_id, plan)
        progress.advance(ItemStage.TARGET_CREATED)
        progress.advance(ItemStage.DONE)
        return f"recreated as {plan.name}" if plan.name else "recreated"
