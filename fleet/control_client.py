"""Client for the per-node container control API and the node registry."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from fleet.config import settings
from fleet.errors import NodeUnreachable, kind_from_status
from fleet.metrics import control_request_duration
from fleet.schemas import ContainerPlan, ContainerSummary, InspectSnapshot, Node


logger = logging.getLogger(__name__)

# Transient HTTP errors that are worth retrying
TRANSIENT_HTTP_CODES = {429, 502, 503, 504}


def _get_auth_headers(token: str | None) -> dict[str, str]:
    """Return bearer auth headers if a token is configured."""
    if token:
        return {"Authorization": f"Bearer {token}"}
    return {}


def _error_from_response(response: httpx.Response, node_id: str | None) -> NodeUnreachable:
    """Convert a non-2xx response into a NodeUnreachable.

    Failure bodies are plain text; the body is the message.
    """
    body = ""
    try:
        body = response.text.strip()
    except Exception:
        pass
    return NodeUnreachable(
        body[:500] or f"Request failed: {response.status_code}",
        node_id=node_id,
        kind=kind_from_status(response.status_code),
        status_code=response.status_code,
    )


def _backoff_delay(attempt: int) -> float:
    return min(
        settings.retry_backoff_base * (2 ** attempt),
        settings.retry_backoff_max,
    )


async def with_retry(
    func: Callable[..., Any],
    *args,
    max_retries: int | None = None,
    node_id: str | None = None,
    idempotent: bool = True,
    **kwargs,
) -> Any:
    """Execute an async function with exponential backoff retry logic.

    Retries on:
    - Connection errors and connect timeouts
    - Read timeouts, for idempotent requests only
    - Transient HTTP errors (429, 502, 503, 504), for idempotent requests only

    A non-idempotent request that reached the server is sent exactly once:
    a 502/504 may arrive after the node already applied it. Every failure
    that escapes is a NodeUnreachable.
    """
    if max_retries is None:
        max_retries = settings.max_retries

    retry_on: tuple[type[Exception], ...] = (httpx.ConnectError, httpx.ConnectTimeout)
    if idempotent:
        retry_on = retry_on + (httpx.ReadTimeout,)

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            if attempt < max_retries:
                delay = _backoff_delay(attempt)
                logger.warning(
                    f"Node request failed (attempt {attempt + 1}/{max_retries + 1}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)
                continue
            logger.error(f"Node request failed after {max_retries + 1} attempts: {e}")
            raise NodeUnreachable(
                f"Node unreachable after {max_retries + 1} attempts: {e}",
                node_id=node_id,
            )
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if idempotent and status_code in TRANSIENT_HTTP_CODES and attempt < max_retries:
                delay = _backoff_delay(attempt)
                logger.warning(
                    f"Node returned {status_code} (attempt {attempt + 1}/{max_retries + 1}), "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
                continue
            logger.error(f"Node returned error: {status_code}")
            raise _error_from_response(e.response, node_id)
        except httpx.HTTPError as e:
            raise NodeUnreachable(f"Node request failed: {e}", node_id=node_id)

    raise NodeUnreachable("Node request failed for unknown reason", node_id=node_id)


class ContainerControlClient:
    """Async client for the container control API.

    One instance owns a pooled httpx.AsyncClient. Every call is
    authenticated with the configured bearer token.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.hub_url).rstrip("/")
        self.max_retries = max_retries
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=_get_auth_headers(token if token is not None else settings.api_token),
            limits=httpx.Limits(
                max_connections=100,
                max_keepalive_connections=20,
            ),
            timeout=httpx.Timeout(timeout or settings.http_timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "ContainerControlClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the pooled HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        node_id: str | None = None,
        json_body: dict | None = None,
        idempotent: bool = True,
    ) -> Any:
        """Make a control API request with standardized retry/error handling."""

        async def _do_request() -> Any:
            response = await self._client.request(method, path, json=json_body)
            response.raise_for_status()
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return None

        status = "success"
        t0 = time.monotonic()
        try:
            return await with_retry(
                _do_request,
                max_retries=self.max_retries,
                node_id=node_id,
                idempotent=idempotent,
            )
        except Exception:
            status = "error"
            raise
        finally:
            try:
                control_request_duration.labels(
                    operation=operation,
                    status=status,
                ).observe(time.monotonic() - t0)
            except Exception:
                pass

    # --- Node registry ---

    async def list_nodes(self) -> list[Node]:
        """Fetch every node known to the registry with its connectivity."""
        data = await self._request("GET", "/nodes", operation="list_nodes")
        raw_nodes = data.get("nodes") if isinstance(data, dict) else None
        if not isinstance(raw_nodes, list):
            return []
        return [Node.model_validate(n) for n in raw_nodes if isinstance(n, dict) and n.get("node_id")]

    # --- Containers ---

    async def list_containers(self, node_id: str) -> list[ContainerSummary]:
        data = await self._request(
            "GET", f"/nodes/{node_id}/containers",
            operation="list", node_id=node_id,
        )
        if not isinstance(data, list):
            return []
        return [ContainerSummary.model_validate(c) for c in data if isinstance(c, dict) and c.get("Id")]

    async def inspect_container(self, node_id: str, container_id: str) -> InspectSnapshot:
        data = await self._request(
            "GET", f"/nodes/{node_id}/containers/{container_id}/inspect",
            operation="inspect", node_id=node_id,
        )
        return InspectSnapshot.from_inspect(data if isinstance(data, dict) else None)

    async def start_container(self, node_id: str, container_id: str) -> None:
        await self._request(
            "POST", f"/nodes/{node_id}/containers/{container_id}/start",
            operation="start", node_id=node_id,
        )

    async def stop_container(self, node_id: str, container_id: str) -> None:
        await self._request(
            "POST", f"/nodes/{node_id}/containers/{container_id}/stop",
            operation="stop", node_id=node_id,
        )

    async def delete_container(self, node_id: str, container_id: str) -> None:
        await self._request(
            "DELETE", f"/nodes/{node_id}/containers/{container_id}",
            operation="delete", node_id=node_id,
        )

    async def create_container(self, node_id: str, plan: ContainerPlan) -> None:
        await self._request(
            "POST", f"/nodes/{node_id}/containers",
            operation="create", node_id=node_id,
            json_body=plan.to_payload(),
            idempotent=False,
        )
