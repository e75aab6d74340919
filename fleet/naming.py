"""Centralized naming helpers for nodes and containers.

Everything that derives a display name, a short id, or a container name
from a template MUST use these functions so results and payloads agree.
"""

import re

NAME_TEMPLATE_NODE = "{node}"
NAME_TEMPLATE_NAME = "{name}"

# Fallback container name when neither the template nor the container has one
DEFAULT_CONTAINER_NAME = "container"


def strip_name(value: str | None) -> str:
    """Strip the leading slash Docker puts on container names."""
    return str(value or "").strip().lstrip("/")


def sanitize_node_token(value: str) -> str:
    """Sanitize a node name for use inside container names.

    Replaces every character except alphanumeric, underscore, dot and dash
    with a dash.
    """
    return re.sub(r"[^a-zA-Z0-9_.-]", "-", value)


def node_display_name(node_id: str, name: str | None = None) -> str:
    """Human label for a node: its alias, else the first 8 chars of its id."""
    alias = str(name or "").strip()
    if alias:
        return alias
    return str(node_id or "")[:8] + "..."


def short_container_id(container_id: str, length: int = 12) -> str:
    """Return the Docker-style short id."""
    return str(container_id or "")[:length]


def resolve_name_template(
    template: str | None,
    node_token: str,
    primary_name: str,
    fallback: str,
) -> str:
    """Expand a container name template.

    Supports ``{node}`` (sanitized node token) and ``{name}`` (the
    container's current primary name). A blank template yields ``fallback``.

    Args:
        template: Operator supplied template, e.g. "{name}-{node}"
        node_token: Raw node label, sanitized here
        primary_name: Current primary name of the container
        fallback: Name used when no template is given
    """
    value = str(template or "").strip()
    if not value:
        return fallback
    node = sanitize_node_token(node_token or "node")
    name = primary_name or fallback or DEFAULT_CONTAINER_NAME
    return value.replace(NAME_TEMPLATE_NODE, node).replace(NAME_TEMPLATE_NAME, name)


def migrated_name(name: str, index: int, suffix: str = "-migrated-") -> str:
    """Name used for the single retry after a name conflict on the target."""
    return f"{name}{suffix}{index}"
