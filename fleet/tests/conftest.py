"""Shared pytest fixtures for orchestrator tests."""
from __future__ import annotations

import itertools

import pytest

from fleet.config import settings
from fleet.errors import ErrorKind, NodeUnreachable
from fleet.schemas import ContainerPlan, ContainerSummary, InspectSnapshot, Node
from fleet.session import OperatorSession


class FakeControlClient:
    """In-memory stand-in for ContainerControlClient.

    Behaves like a plain-text node agent: a name clash on create fails with
    the Docker daemon message and no structured kind.
    """

    def __init__(self) -> None:
        self.nodes: dict[str, Node] = {}
        self.containers: dict[str, list[dict]] = {}
        self.inspect_docs: dict[tuple[str, str], dict] = {}
        self.failures: dict[tuple, list[Exception]] = {}
        self.calls: list[tuple] = []
        self._ids = itertools.count(1)

    # --- setup helpers ---

    def add_node(self, node_id: str, name: str = "", status: str = "connected") -> Node:
        node = Node(node_id=node_id, name=name, status=status, remote_addr=f"10.0.0.{len(self.nodes) + 1}")
        self.nodes[node_id] = node
        self.containers.setdefault(node_id, [])
        return node

    def add_container(
        self,
        node_id: str,
        container_id: str,
        name: str,
        image: str = "alpine:3.19",
        state: str = "running",
        env: list[str] | None = None,
        ports: dict[str, str] | None = None,
        restart_policy: str = "no",
    ) -> None:
        self.containers[node_id].append({
            "Id": container_id,
            "Image": image,
            "Names": [f"/{name}"],
            "Status": "Up 2 hours" if state == "running" else "Exited (0)",
            "State": state,
        })
        self.inspect_docs[(node_id, container_id)] = {
            "Name": f"/{name}",
            "Config": {"Image": image, "Env": list(env or [])},
            "HostConfig": {
                "PortBindings": {
                    f"{container}/tcp": [{"HostIp": "", "HostPort": host}]
                    for host, container in (ports or {}).items()
                },
                "RestartPolicy": {"Name": restart_policy},
            },
        }

    def fail(self, op: str, node_id: str, target: str | None = None, *errors: Exception) -> None:
        """Queue errors for the next calls of ``op`` on node/target."""
        errs = list(errors) or [NodeUnreachable(f"{op} failed", node_id=node_id)]
        self.failures.setdefault((op, node_id, target), []).extend(errs)

    def names_on(self, node_id: str) -> list[str]:
        return [c["Names"][0].lstrip("/") for c in self.containers[node_id]]

    def _maybe_fail(self, op: str, node_id: str, target: str | None = None) -> None:
        queued = self.failures.get((op, node_id, target))
        if queued:
            raise queued.pop(0)

    def _find(self, node_id: str, container_id: str) -> dict:
        for container in self.containers.get(node_id, []):
            if container["Id"] == container_id:
                return container
        raise NodeUnreachable(
            f"No such container: {container_id}",
            node_id=node_id,
            kind=ErrorKind.NOT_FOUND,
            status_code=404,
        )

    # --- ContainerControlClient surface ---

    async def list_nodes(self) -> list[Node]:
        self.calls.append(("list_nodes",))
        return list(self.nodes.values())

    async def list_containers(self, node_id: str) -> list[ContainerSummary]:
        self.calls.append(("list", node_id))
        self._maybe_fail("list", node_id)
        return [ContainerSummary.model_validate(c) for c in self.containers.get(node_id, [])]

    async def inspect_container(self, node_id: str, container_id: str) -> InspectSnapshot:
        self.calls.append(("inspect", node_id, container_id))
        self._maybe_fail("inspect", node_id, container_id)
        self._find(node_id, container_id)
        return InspectSnapshot.from_inspect(self.inspect_docs.get((node_id, container_id)))

    async def start_container(self, node_id: str, container_id: str) -> None:
        self.calls.append(("start", node_id, container_id))
        self._maybe_fail("start", node_id, container_id)
        self._find(node_id, container_id)["State"] = "running"

    async def stop_container(self, node_id: str, container_id: str) -> None:
        self.calls.append(("stop", node_id, container_id))
        self._maybe_fail("stop", node_id, container_id)
        self._find(node_id, container_id)["State"] = "exited"

    async def delete_container(self, node_id: str, container_id: str) -> None:
        self.calls.append(("delete", node_id, container_id))
        self._maybe_fail("delete", node_id, container_id)
        container = self._find(node_id, container_id)
        self.containers[node_id].remove(container)

    async def create_container(self, node_id: str, plan: ContainerPlan) -> None:
        self.calls.append(("create", node_id, plan.name))
        self._maybe_fail("create", node_id, plan.name)
        if plan.name and plan.name in self.names_on(node_id):
            raise NodeUnreachable(
                f'Conflict. The container name "/{plan.name}" is already in use',
                node_id=node_id,
                status_code=500,
            )
        container_id = f"{next(self._ids):064x}"
        self.add_container(
            node_id,
            container_id,
            plan.name or container_id[:12],
            image=plan.image,
            state="created",
            env=plan.env,
            ports={p.host: p.container for p in plan.ports},
            restart_policy=plan.restart_policy or "no",
        )

    async def aclose(self) -> None:
        pass

    async def __aenter__(self) -> "FakeControlClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


@pytest.fixture
def fake_client() -> FakeControlClient:
    return FakeControlClient()


@pytest.fixture
def refresh_calls() -> list[int]:
    return []


@pytest.fixture
def session(fake_client, refresh_calls) -> OperatorSession:
    return OperatorSession(client=fake_client, on_refresh=lambda: refresh_calls.append(1))


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch):
    """Keep retry backoff out of the test run time."""
    monkeypatch.setattr(settings, "retry_backoff_base", 0.0)
    monkeypatch.setattr(settings, "retry_backoff_max", 0.0)
    monkeypatch.setattr(settings, "operator_secret", "")
    yield
