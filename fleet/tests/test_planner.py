"""Tests for redeploy and migration planning."""
from __future__ import annotations

import pytest

from fleet.errors import ValidationFailure
from fleet.schemas import (
    ContainerSummary,
    InspectSnapshot,
    Match,
    PortBinding,
    PortMapping,
    RedeployOverrides,
)
from fleet.services.planner import (
    RedeployPlanner,
    build_migration_plan,
    parse_env_text,
    parse_ports_text,
)


def _match(image: str = "nginx:1.25", name: str = "web", node_name: str = "edge-1") -> Match:
    return Match(
        node_id="node-1",
        node_display_name=node_name,
        container=ContainerSummary(Id="abc123", Image=image, Names=[f"/{name}"]),
    )


def _snapshot(**kwargs) -> InspectSnapshot:
    defaults = {
        "image": "nginx:1.25",
        "env": ["A=1"],
        "port_bindings": [PortBinding(container_port="80/tcp", host_port="8080")],
        "canonical_name": "web",
    }
    defaults.update(kwargs)
    return InspectSnapshot(**defaults)


class TestRedeployPlanner:

    def test_no_overrides_reproduces_snapshot(self):
        plan = RedeployPlanner(client=None).build(
            _match(), _snapshot(), RedeployOverrides(auto_restart=True),
        )

        assert plan.image == "nginx:1.25"
        assert plan.name == "web"
        assert plan.env == ["A=1"]
        assert plan.ports == [PortMapping(host="8080", container="80")]
        assert plan.auto_restart is True
        assert plan.restart_policy is None

    def test_overrides_win_field_by_field(self):
        overrides = RedeployOverrides(
            image=" nginx:1.27 ",
            env_text="B=2\n\n  C=3  \n",
            ports_text="9090:80\n",
            auto_restart=False,
        )
        plan = RedeployPlanner(client=None).build(_match(), _snapshot(), overrides)

        assert plan.image == "nginx:1.27"
        assert plan.env == ["B=2", "C=3"]
        assert plan.ports == [PortMapping(host="9090", container="80")]
        assert plan.auto_restart is False
        assert plan.name == "web"

    def test_image_falls_back_to_summary(self):
        plan = RedeployPlanner(client=None).build(
            _match(image="busybox"), _snapshot(image=""), RedeployOverrides(),
        )

        assert plan.image == "busybox"

    def test_missing_image_is_validation_failure(self):
        with pytest.raises(ValidationFailure, match="image required"):
            RedeployPlanner(client=None).build(
                _match(image=""), _snapshot(image=""), RedeployOverrides(),
            )

    def test_name_template_expands_node_and_name(self):
        overrides = RedeployOverrides(name_template="{name}-{node}")
        plan = RedeployPlanner(client=None).build(
            _match(node_name="edge 1/eu"), _snapshot(), overrides,
        )

        assert plan.name == "web-edge-1-eu"

    def test_name_without_inspect_name_uses_primary(self):
        plan = RedeployPlanner(client=None).build(
            _match(name="api"), _snapshot(canonical_name=""), RedeployOverrides(),
        )

        assert plan.name == "api"

    @pytest.mark.asyncio
    async def test_plan_inspects_the_match(self, fake_client):
        fake_client.add_node("node-1", "edge-1")
        fake_client.add_container(
            "node-1", "abc123", "web", image="nginx:1.25",
            env=["A=1"], ports={"8080": "80"},
        )

        plan = await RedeployPlanner(fake_client).plan(_match(), RedeployOverrides(auto_restart=True))

        assert ("inspect", "node-1", "abc123") in fake_client.calls
        assert plan.to_payload() == {
            "image": "nginx:1.25",
            "name": "web",
            "ports": [{"host": "8080", "container": "80"}],
            "env": ["A=1"],
            "auto_restart": True,
        }


class TestMigrationPlan:

    def test_restart_policy_carried_when_set(self):
        container = ContainerSummary(Id="abc", Image="redis:7", Names=["/cache"])
        plan = build_migration_plan(container, _snapshot(restart_policy_name="unless-stopped"))

        assert plan.auto_restart is True
        assert plan.restart_policy == "unless-stopped"
        assert plan.to_payload()["restart_policy"] == "unless-stopped"

    def test_no_restart_policy_omitted(self):
        container = ContainerSummary(Id="abc", Image="redis:7", Names=["/cache"])
        plan = build_migration_plan(container, _snapshot(restart_policy_name="no"))

        assert plan.auto_restart is False
        assert "restart_policy" not in plan.to_payload()

    def test_missing_image(self):
        container = ContainerSummary(Id="abc", Image="", Names=["/cache"])

        with pytest.raises(ValidationFailure, match="image not found in inspect"):
            build_migration_plan(container, _snapshot(image=""))


class TestParsers:

    def test_env_drops_blank_lines(self):
        assert parse_env_text("A=1\n\n   \nB=two words\n") == ["A=1", "B=two words"]

    def test_ports_drop_incomplete_lines(self):
        assert parse_ports_text("8080:80\n:443\n9000\n 53 : 53 ") == [
            PortMapping(host="8080", container="80"),
            PortMapping(host="53", container="53"),
        ]
