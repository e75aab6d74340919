"""Scan selected nodes for containers matching a text filter.

Fans one list call out per node concurrently. By default the scan is
all-or-nothing: if any node fails, no matches are returned at all, unlike
the batch executors which isolate failures per item. ``scan_report`` is
the opt-in best-effort variant.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from fleet.errors import PreconditionFailure, ScanFailure, error_message
from fleet.metrics import scan_failures_total
from fleet.schemas import ContainerSummary, Match, Node, ScanReport
from fleet.session import OperatorSession

logger = logging.getLogger(__name__)


def _unique_nodes(nodes: Iterable[Node]) -> list[Node]:
    by_id: dict[str, Node] = {}
    for node in nodes:
        by_id.setdefault(node.id, node)
    return list(by_id.values())


def select_nodes(available: Iterable[Node], node_refs: Iterable[str]) -> list[Node]:
    """Pick registry nodes by id or name, in the order requested.

    Raises:
        PreconditionFailure: A reference matches no known node
    """
    by_ref: dict[str, Node] = {}
    for node in available:
        if node.name:
            by_ref.setdefault(node.name, node)
        by_ref[node.id] = node

    selected = []
    for ref in node_refs:
        node = by_ref.get(ref)
        if node is None:
            raise PreconditionFailure(f"node {ref} not found")
        selected.append(node)
    return _unique_nodes(selected)


def filter_containers(
    node: Node,
    containers: Iterable[ContainerSummary],
    filter_text: str,
) -> list[Match]:
    """Build matches for one node's containers.

    Matching is a case-insensitive substring test over id, image, status,
    state and names. A blank filter matches every container.
    """
    query = (filter_text or "").strip().lower()
    seen: set[str] = set()
    matches = []
    for container in containers:
        if container.id in seen:
            continue
        seen.add(container.id)
        if query and query not in container.search_text():
            continue
        matches.append(Match(
            node_id=node.id,
            node_display_name=node.display_name,
            container=container,
        ))
    return matches


def sort_matches(matches: list[Match]) -> list[Match]:
    """Order matches by (node display name, container id)."""
    return sorted(matches, key=lambda m: (m.node_display_name, m.container.id))


class ScanEngine:
    """Concurrent multi-node container scan."""

    def __init__(self, session: OperatorSession):
        self.session = session

    async def _list_all(
        self, nodes: list[Node]
    ) -> list[tuple[Node, list[ContainerSummary] | Exception]]:
        results = await asyncio.gather(
            *(self.session.client.list_containers(node.id) for node in nodes),
            return_exceptions=True,
        )
        outcomes = []
        for node, result in zip(nodes, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            outcomes.append((node, result))
        return outcomes

    def _prepare(self, nodes: Iterable[Node]) -> list[Node]:
        selected = _unique_nodes(nodes or [])
        if not selected:
            raise PreconditionFailure("no nodes selected")
        return selected

    async def scan(self, nodes: Iterable[Node], filter_text: str = "") -> list[Match]:
        """Return every matching container across the selected nodes.

        Raises:
            PreconditionFailure: No nodes were selected
            ScanFailure: At least one node failed to list its containers
        """
        selected = self._prepare(nodes)
        logger.info(f"Scanning {len(selected)} node(s) for filter {filter_text!r}")

        matches: list[Match] = []
        node_errors: dict[str, str] = {}
        for node, result in await self._list_all(selected):
            if isinstance(result, Exception):
                node_errors[node.id] = error_message(result, "failed to list containers")
                continue
            matches.extend(filter_containers(node, result, filter_text))

        if node_errors:
            scan_failures_total.inc()
            by_name = {n.id: n.display_name for n in selected}
            detail = "; ".join(
                f"{by_name[node_id]}: {message}" for node_id, message in node_errors.items()
            )
            logger.warning(f"Scan aborted, {len(node_errors)} of {len(selected)} node(s) failed: {detail}")
            raise ScanFailure(f"Failed to list containers ({detail})", node_errors)

        matches = sort_matches(matches)
        logger.info(f"Scan found {len(matches)} match(es)")
        return matches

    async def scan_report(self, nodes: Iterable[Node], filter_text: str = "") -> ScanReport:
        """Best-effort scan: keep matches from nodes that answered.

        Raises:
            PreconditionFailure: No nodes were selected
        """
        selected = self._prepare(nodes)
        report = ScanReport()
        matches: list[Match] = []
        for node, result in await self._list_all(selected):
            if isinstance(result, Exception):
                report.errors[node.id] = error_message(result, "failed to list containers")
                continue
            matches.extend(filter_containers(node, result, filter_text))
        report.matches = sort_matches(matches)
        if report.errors:
            logger.warning(f"Partial scan: {len(report.errors)} node(s) failed")
        return report
