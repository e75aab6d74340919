"""Build launch plans for redeploys and migrations.

Planning is pure apart from the inspect call in ``RedeployPlanner.plan``:
nothing here changes a container.
"""

from __future__ import annotations

import logging

from fleet.errors import ValidationFailure
from fleet.naming import resolve_name_template
from fleet.schemas import (
    ContainerPlan,
    ContainerSummary,
    InspectSnapshot,
    Match,
    PortMapping,
    RedeployOverrides,
)

logger = logging.getLogger(__name__)


def _lines(text: str | None) -> list[str]:
    return [line.strip() for line in str(text or "").splitlines() if line.strip()]


def parse_env_text(text: str | None) -> list[str]:
    """Parse one KEY=VALUE per line, dropping blank lines."""
    return _lines(text)


def parse_ports_text(text: str | None) -> list[PortMapping]:
    """Parse one host:container pair per line.

    Lines missing either side are dropped.
    """
    ports = []
    for line in _lines(text):
        parts = [part.strip() for part in line.split(":")]
        host = parts[0] if parts else ""
        container = parts[1] if len(parts) > 1 else ""
        if host and container:
            ports.append(PortMapping(host=host, container=container))
    return ports


def canonical_name(container: ContainerSummary, snapshot: InspectSnapshot) -> str:
    """Current name of a container: inspect name, else its first listed name."""
    return snapshot.canonical_name or container.primary_name


class RedeployPlanner:
    """Derive a create payload from a container's current config plus overrides."""

    def __init__(self, client):
        self.client = client

    async def plan(self, match: Match, overrides: RedeployOverrides) -> ContainerPlan:
        """Inspect the match's container and resolve its redeploy plan.

        Raises:
            NodeUnreachable: The inspect call failed
            ValidationFailure: No image could be resolved
        """
        snapshot = await self.client.inspect_container(match.node_id, match.container.id)
        plan = self.build(match, snapshot, overrides)
        logger.debug(f"Planned redeploy of {match.key} as {plan.name!r} ({plan.image})")
        return plan

    def build(
        self,
        match: Match,
        snapshot: InspectSnapshot,
        overrides: RedeployOverrides,
    ) -> ContainerPlan:
        """Resolve every plan field independently from overrides and snapshot."""
        container = match.container
        old_name = canonical_name(container, snapshot)

        image = overrides.image.strip() or snapshot.image or container.image.strip()
        if not image:
            raise ValidationFailure("image required")

        name = resolve_name_template(
            overrides.name_template,
            match.node_display_name or match.node_id,
            container.primary_name,
            old_name,
        )
        env = parse_env_text(overrides.env_text) if overrides.env_text.strip() else list(snapshot.env)
        ports = parse_ports_text(overrides.ports_text) if overrides.ports_text.strip() else snapshot.ports()

        return ContainerPlan(
            image=image,
            name=name,
            env=env,
            ports=ports,
            auto_restart=overrides.auto_restart,
        )


def build_migration_plan(container: ContainerSummary, snapshot: InspectSnapshot) -> ContainerPlan:
    """Reconstruct a container's launch configuration for another node.

    Raises:
        ValidationFailure: Neither inspect nor the summary carries an image
    """
    image = snapshot.image or container.image.strip()
    if not image:
        raise ValidationFailure("image not found in inspect")

    restart_policy = snapshot.restart_policy_name
    return ContainerPlan(
        image=image,
        name=canonical_name(container, snapshot),
        env=list(snapshot.env),
        ports=snapshot.ports(),
        auto_restart=restart_policy != "no",
        restart_policy=restart_policy if restart_policy != "no" else None,
    )
