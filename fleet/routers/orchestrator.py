"""Scan, bulk action and migration endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from fleet.auth import verify_operator_secret
from fleet.control_client import ContainerControlClient
from fleet.errors import FleetError, NodeUnreachable, PreconditionFailure, ScanFailure, ValidationFailure
from fleet.schemas import (
    BulkRequest,
    LedgerResponse,
    MigrationRequest,
    Node,
    ScanRequest,
    ScanResponse,
)
from fleet.services import BulkActionExecutor, MigrationEngine, ScanEngine
from fleet.services.scan import select_nodes
from fleet.session import OperatorSession

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/orchestrator",
    tags=["orchestrator"],
    dependencies=[Depends(verify_operator_secret)],
)


def get_control_client(request: Request) -> ContainerControlClient:
    """Control client owned by the application lifespan."""
    return request.app.state.control_client


def get_operator_session(
    client: ContainerControlClient = Depends(get_control_client),
) -> OperatorSession:
    # HTTP callers refresh their own view from the response
    return OperatorSession(client=client)


def _raise_http(e: FleetError) -> None:
    if isinstance(e, (PreconditionFailure, ValidationFailure)):
        raise HTTPException(status_code=400, detail=e.message)
    if isinstance(e, ScanFailure):
        raise HTTPException(
            status_code=502,
            detail={"message": e.message, "node_errors": e.node_errors},
        )
    if isinstance(e, NodeUnreachable):
        raise HTTPException(status_code=502, detail=e.message)
    raise HTTPException(status_code=500, detail=e.message)


async def _selected_nodes(session: OperatorSession, node_ids: list[str]) -> list[Node]:
    available = await session.client.list_nodes()
    return select_nodes(available, node_ids)


@router.get("/nodes")
async def list_nodes(session: OperatorSession = Depends(get_operator_session)) -> dict:
    """List registry nodes with their connectivity."""
    try:
        nodes = await session.client.list_nodes()
    except FleetError as e:
        _raise_http(e)
    return {"nodes": [node.model_dump() | {"display_name": node.display_name} for node in nodes]}


@router.post("/scan", response_model=ScanResponse, response_model_by_alias=False)
async def scan(
    payload: ScanRequest,
    session: OperatorSession = Depends(get_operator_session),
) -> ScanResponse:
    """Find containers matching the filter on the selected nodes."""
    try:
        nodes = await _selected_nodes(session, payload.node_ids)
        matches = await ScanEngine(session).scan(nodes, payload.filter)
    except FleetError as e:
        _raise_http(e)
    return ScanResponse(matches=matches)


@router.post("/bulk", response_model=LedgerResponse)
async def run_bulk_action(
    payload: BulkRequest,
    session: OperatorSession = Depends(get_operator_session),
) -> LedgerResponse:
    """Scan the selected nodes and apply the action to every match."""
    try:
        nodes = await _selected_nodes(session, payload.node_ids)
        matches = await ScanEngine(session).scan(nodes, payload.filter)
        ledger = await BulkActionExecutor(session).run(matches, payload.action, payload.overrides)
    except FleetError as e:
        _raise_http(e)
    return ledger.to_response()


@router.post("/migrate", response_model=LedgerResponse)
async def migrate(
    payload: MigrationRequest,
    session: OperatorSession = Depends(get_operator_session),
) -> LedgerResponse:
    """Move or copy every container from the source node to the target node."""
    try:
        ledger = await MigrationEngine(session).migrate(
            payload.source_node_id,
            payload.target_node_id,
            keep_source=payload.keep_source,
            confirmed=payload.confirmed,
        )
    except FleetError as e:
        _raise_http(e)
    return ledger.to_response()
