"""Move or copy every container from one node to another.

Containers are processed strictly one at a time so results come back in
source-list order and neither node agent sees more than one request at a
time from a run.

Move mode creates on the target first and only then deletes the source.
If that delete fails the target copy is NOT rolled back: both copies
exist and the item is reported as failed at stage ``target_created``.
"""

from __future__ import annotations

import logging

from fleet.config import settings
from fleet.errors import PreconditionFailure, error_message, is_name_conflict
from fleet.metrics import record_item
from fleet.naming import migrated_name, short_container_id
from fleet.schemas import ContainerPlan, ContainerSummary, ItemResult, Node
from fleet.services.item_state import ItemProgress
from fleet.services.ledger import ResultLedger
from fleet.services.planner import build_migration_plan
from fleet.session import OperatorSession
from fleet.state import ItemStage, Operation

logger = logging.getLogger(__name__)


class MigrationEngine:
    """Sequential node-to-node container migration."""

    def __init__(self, session: OperatorSession):
        self.session = session
        self.client = session.client

    async def _resolve_nodes(self, source_node_id: str, target_node_id: str) -> tuple[Node, Node]:
        nodes = {node.id: node for node in await self.client.list_nodes()}
        resolved = []
        for node_id in (source_node_id, target_node_id):
            node = nodes.get(node_id)
            if node is None:
                raise PreconditionFailure(f"node {node_id} not found")
            if not node.is_connected:
                raise PreconditionFailure(f"node {node.display_name} is not connected")
            resolved.append(node)
        return resolved[0], resolved[1]

    async def migrate(
        self,
        source_node_id: str,
        target_node_id: str,
        keep_source: bool = False,
        confirmed: bool = True,
    ) -> ResultLedger:
        """Recreate every source container on the target node.

        Args:
            source_node_id: Node to take containers from
            target_node_id: Node to create them on
            keep_source: Copy instead of move
            confirmed: Operator confirmation gate for the run

        Raises:
            PreconditionFailure: Unconfirmed run, same or missing node,
                disconnected node, or nothing to migrate
            NodeUnreachable: The registry or the source list call failed
        """
        if not confirmed:
            raise PreconditionFailure("migration not confirmed")
        if not source_node_id or not target_node_id:
            raise PreconditionFailure("source and target nodes required")
        if source_node_id == target_node_id:
            raise PreconditionFailure("source and target must be different nodes")

        source, target = await self._resolve_nodes(source_node_id, target_node_id)
        containers = await self.client.list_containers(source.id)
        if not containers:
            raise PreconditionFailure("no containers to migrate")

        mode = "copy" if keep_source else "move"
        logger.info(
            f"Starting {mode} of {len(containers)} container(s) "
            f"from {source.display_name} to {target.display_name}"
        )

        ledger = ResultLedger()
        for index, container in enumerate(containers, start=1):
            if self.session.cancel_token.cancelled:
                ledger.cancelled = True
                logger.info(f"Migration cancelled after {len(ledger)} item(s)")
                break
            ledger.append(await self._migrate_one(source, target, container, index, keep_source))

        await self.session.notify_refresh()
        logger.info(f"Migration {source.display_name} -> {target.display_name} finished: {ledger.summary()}")
        return ledger

    async def _create_on_target(self, node_id: str, plan: ContainerPlan, index: int) -> str:
        """Create the container, retrying once under a new name on conflict."""
        try:
            await self.client.create_container(node_id, plan)
            return plan.name
        except Exception as e:
            if not plan.name or not is_name_conflict(e):
                raise
            renamed = plan.model_copy(
                update={"name": migrated_name(plan.name, index, settings.migration_suffix)}
            )
            logger.info(f"Name {plan.name!r} taken on target, retrying as {renamed.name!r}")
            await self.client.create_container(node_id, renamed)
            return renamed.name

    async def _migrate_one(
        self,
        source: Node,
        target: Node,
        container: ContainerSummary,
        index: int,
        keep_source: bool,
    ) -> ItemResult:
        progress = ItemProgress()
        short_id = short_container_id(container.id, settings.container_id_short_len)
        ok = True
        try:
            snapshot = await self.client.inspect_container(source.id, container.id)
            plan = build_migration_plan(container, snapshot)
            progress.advance(ItemStage.PLANNED)

            final_name = await self._create_on_target(target.id, plan, index)
            progress.advance(ItemStage.TARGET_CREATED)

            message = f"created on {target.display_name}"
            if final_name:
                message += f" as {final_name}"

            if keep_source:
                message += "; source kept"
                progress.advance(ItemStage.DONE)
            else:
                try:
                    await self.client.delete_container(source.id, container.id)
                except Exception as e:
                    ok = False
                    message += f"; failed to remove from source: {error_message(e, 'delete failed')}"
                    logger.warning(
                        f"Container {short_id} copied to {target.display_name} "
                        f"but still present on {source.display_name}"
                    )
                else:
                    progress.advance(ItemStage.SOURCE_REMOVED)
                    progress.advance(ItemStage.DONE)
                    message += "; removed from source"
        except Exception as e:
            ok = False
            message = error_message(e, "migration failed")
            logger.warning(f"Migration of {short_id} from {source.display_name} failed: {message}")

        record_item(Operation.MIGRATION.value, ok)
        return ItemResult(
            key=f"{source.id}:{container.id}",
            ok=ok,
            node_display_name=source.display_name,
            container_id_short=short_id,
            container_name=container.primary_name or short_id,
            message=message,
            stage=progress.stage,
        )
