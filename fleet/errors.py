"""Error taxonomy for scan, bulk action and migration runs."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Structured classification of a control API failure."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


# Legacy phrasing used by node agents that only report plain-text errors
_CONFLICT_PHRASES = ("already in use", "conflict")


def kind_from_status(status_code: int | None) -> ErrorKind:
    """Map an HTTP status code onto an ErrorKind."""
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 409:
        return ErrorKind.CONFLICT
    if status_code in (401, 403):
        return ErrorKind.UNAUTHORIZED
    return ErrorKind.UNKNOWN


class FleetError(Exception):
    """Base exception for orchestrator errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NodeUnreachable(FleetError):
    """A node call failed in transport or returned a non-2xx response."""

    def __init__(
        self,
        message: str,
        node_id: str | None = None,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.node_id = node_id
        self.kind = kind
        self.status_code = status_code


class ValidationFailure(FleetError):
    """Locally detected invalid input, raised before any create call."""


class PreconditionFailure(FleetError):
    """Batch-level gate failed; nothing was changed on any node."""


class ScanFailure(FleetError):
    """At least one node failed to list its containers.

    Attributes:
        node_errors: node_id -> error message for every failed node
    """

    def __init__(self, message: str, node_errors: dict[str, str] | None = None):
        super().__init__(message)
        self.node_errors = node_errors or {}


def is_name_conflict(err: BaseException) -> bool:
    """Return True if a create failure was caused by the name being taken.

    The structured kind is authoritative. Substring matching on the message
    is a best-effort fallback for agents that answer with a generic status.
    """
    if isinstance(err, NodeUnreachable) and err.kind == ErrorKind.CONFLICT:
        return True
    message = str(getattr(err, "message", "") or err).lower()
    return any(phrase in message for phrase in _CONFLICT_PHRASES)


def error_message(err: BaseException, default: str) -> str:
    """Human-readable message for a per-item failure."""
    message = getattr(err, "message", None) or str(err)
    return message.strip() or default
