"""Orchestrator data model.

These Pydantic models describe the node registry and container control
payloads consumed by the orchestrator, the launch plans it builds, and
the per-item results it reports.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleet.naming import node_display_name, strip_name
from fleet.state import BulkAction, ItemStage, NodeStatus


def normalize_restart_policy(value: Any) -> str:
    """Normalize a Docker restart policy name; blank or "none" means "no"."""
    policy = str(value or "").strip().lower()
    if not policy or policy == "none":
        return "no"
    return policy


# --- Node registry ---

class Node(BaseModel):
    """A managed host as reported by the node registry."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="node_id")
    name: str = ""
    status: NodeStatus = NodeStatus.DISCONNECTED
    address: str = Field(default="", alias="remote_addr")
    version: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> NodeStatus:
        if str(value or "").lower() == NodeStatus.CONNECTED.value:
            return NodeStatus.CONNECTED
        return NodeStatus.DISCONNECTED

    @field_validator("name", "address", "version", mode="before")
    @classmethod
    def _none_to_blank(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def display_name(self) -> str:
        return node_display_name(self.id, self.name)

    @property
    def is_connected(self) -> bool:
        return self.status == NodeStatus.CONNECTED


# --- Container control payloads ---

class ContainerSummary(BaseModel):
    """One entry of a node's container list (Docker list format)."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="Id")
    image: str = Field(default="", alias="Image")
    names: list[str] = Field(default_factory=list, alias="Names")
    status: str = Field(default="", alias="Status")
    state: str = Field(default="", alias="State")

    @field_validator("names", mode="before")
    @classmethod
    def _strip_names(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [strip_name(name) for name in value if name]

    @field_validator("image", "status", "state", mode="before")
    @classmethod
    def _none_to_blank(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def primary_name(self) -> str:
        return self.names[0] if self.names else ""

    def search_text(self) -> str:
        """Lower-cased haystack that scan filters are matched against."""
        parts = [self.id, self.image, self.status, self.state, " ".join(self.names)]
        return " ".join(part for part in parts if part).lower()


class PortMapping(BaseModel):
    """Host port published for a container port, as sent on create."""
    host: str
    container: str

    @field_validator("host", "container", mode="before")
    @classmethod
    def _to_str(cls, value: Any) -> str:
        return str(value).strip()


class PortBinding(BaseModel):
    """A raw HostConfig.PortBindings entry ("80/tcp" -> host port)."""
    container_port: str
    host_port: str = ""

    def to_mapping(self) -> PortMapping | None:
        container = self.container_port.split("/")[0].strip()
        host = self.host_port.strip()
        if not host or not container:
            return None
        return PortMapping(host=host, container=container)


class InspectSnapshot(BaseModel):
    """Point-in-time launch configuration of an existing container."""
    image: str = ""
    env: list[str] = Field(default_factory=list)
    port_bindings: list[PortBinding] = Field(default_factory=list)
    restart_policy_name: str = "no"
    canonical_name: str = ""

    @classmethod
    def from_inspect(cls, raw: dict[str, Any] | None) -> "InspectSnapshot":
        """Build a snapshot from a raw Docker inspect document."""
        raw = raw or {}
        config = raw.get("Config") or {}
        host_config = raw.get("HostConfig") or {}

        bindings: list[PortBinding] = []
        for container_port, host_bindings in (host_config.get("PortBindings") or {}).items():
            if not isinstance(host_bindings, list):
                continue
            for binding in host_bindings:
                bindings.append(PortBinding(
                    container_port=str(container_port),
                    host_port=str((binding or {}).get("HostPort") or ""),
                ))

        env = config.get("Env")
        return cls(
            image=str(config.get("Image") or "").strip(),
            env=list(env) if isinstance(env, list) else [],
            port_bindings=bindings,
            restart_policy_name=normalize_restart_policy(
                (host_config.get("RestartPolicy") or {}).get("Name")
            ),
            canonical_name=strip_name(raw.get("Name")),
        )

    def ports(self) -> list[PortMapping]:
        """Port mappings derived from the bindings, in binding order."""
        mappings = (binding.to_mapping() for binding in self.port_bindings)
        return [m for m in mappings if m is not None]


# --- Plans ---

class ContainerPlan(BaseModel):
    """Launch configuration for a container about to be created.

    Used both for redeploys and migrations. Never persisted.
    """
    image: str
    name: str = ""
    env: list[str] = Field(default_factory=list)
    ports: list[PortMapping] = Field(default_factory=list)
    auto_restart: bool = False
    restart_policy: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Create request body for the control API."""
        payload: dict[str, Any] = {
            "image": self.image,
            "name": self.name,
            "ports": [p.model_dump() for p in self.ports],
            "env": list(self.env),
            "auto_restart": self.auto_restart,
        }
        if self.restart_policy:
            payload["restart_policy"] = self.restart_policy
        return payload


class RedeployOverrides(BaseModel):
    """Operator overrides applied on top of a container's current config."""
    image: str = ""
    name_template: str = ""
    env_text: str = ""
    ports_text: str = ""
    auto_restart: bool = True


# --- Scan and results ---

class Match(BaseModel):
    """A (node, container) pair that satisfied a scan filter."""
    node_id: str
    node_display_name: str
    container: ContainerSummary

    @property
    def key(self) -> str:
        return f"{self.node_id}:{self.container.id}"


class ScanReport(BaseModel):
    """Best-effort scan outcome with per-node errors."""
    matches: list[Match] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)


class ItemResult(BaseModel):
    """Outcome of one item of a bulk action or migration run."""
    model_config = ConfigDict(frozen=True)

    key: str
    ok: bool
    node_display_name: str
    container_id_short: str
    container_name: str
    message: str
    stage: ItemStage = ItemStage.PENDING


# --- HTTP API request/response bodies ---

class ScanRequest(BaseModel):
    node_ids: list[str] = Field(default_factory=list)
    filter: str = ""


class ScanResponse(BaseModel):
    matches: list[Match]


class BulkRequest(ScanRequest):
    action: BulkAction
    overrides: RedeployOverrides | None = None


class MigrationRequest(BaseModel):
    source_node_id: str
    target_node_id: str
    keep_source: bool = False
    confirmed: bool = False


class LedgerResponse(BaseModel):
    items: list[ItemResult]
    ok_count: int
    failed_count: int
    cancelled: bool = False
    summary: str
