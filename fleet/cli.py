"""Command line interface for scans, bulk actions and migrations."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from fleet.config import settings
from fleet.control_client import ContainerControlClient
from fleet.errors import FleetError, PreconditionFailure, ScanFailure, ValidationFailure
from fleet.logging_config import setup_logging
from fleet.schemas import RedeployOverrides
from fleet.services import BulkActionExecutor, MigrationEngine, ScanEngine
from fleet.services.ledger import ResultLedger
from fleet.services.scan import select_nodes
from fleet.session import OperatorSession
from fleet.state import BulkAction

EXIT_OK = 0
EXIT_ITEMS_FAILED = 1
EXIT_REJECTED = 2
EXIT_UNREACHABLE = 3


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _print_ledger(ledger: ResultLedger, as_json: bool) -> int:
    if as_json:
        _print_json(ledger.to_response().model_dump(mode="json"))
    else:
        for item in ledger:
            mark = "ok  " if item.ok else "FAIL"
            print(
                f"{mark} {item.node_display_name:<20} {item.container_id_short:<12} "
                f"{item.container_name:<24} {item.message}"
            )
        print(ledger.summary())
    return EXIT_ITEMS_FAILED if ledger.failed_count else EXIT_OK


async def _cmd_nodes(session: OperatorSession, args: argparse.Namespace) -> int:
    nodes = await session.client.list_nodes()
    if args.json:
        _print_json([node.model_dump(mode="json") for node in nodes])
        return EXIT_OK
    for node in nodes:
        print(f"{node.id:<36} {node.display_name:<20} {node.status.value:<12} {node.address}")
    return EXIT_OK


async def _scan(session: OperatorSession, args: argparse.Namespace):
    available = await session.client.list_nodes()
    refs = args.node or [node.id for node in available if node.is_connected]
    return await ScanEngine(session).scan(select_nodes(available, refs), args.filter)


async def _cmd_scan(session: OperatorSession, args: argparse.Namespace) -> int:
    matches = await _scan(session, args)
    if args.json:
        _print_json([m.model_dump(mode="json") | {"key": m.key} for m in matches])
        return EXIT_OK
    for m in matches:
        c = m.container
        print(f"{m.node_display_name:<20} {c.id[:12]:<12} {c.primary_name:<24} {c.image:<30} {c.state}")
    print(f"{len(matches)} match(es)")
    return EXIT_OK


async def _cmd_run(session: OperatorSession, args: argparse.Namespace) -> int:
    matches = await _scan(session, args)
    overrides = RedeployOverrides(
        image=args.image or "",
        name_template=args.name_template or "",
        env_text="\n".join(args.env or []),
        ports_text="\n".join(args.port or []),
        auto_restart=not args.no_auto_restart,
    )
    ledger = await BulkActionExecutor(session).run(matches, args.action, overrides)
    return _print_ledger(ledger, args.json)


async def _cmd_migrate(session: OperatorSession, args: argparse.Namespace) -> int:
    ledger = await MigrationEngine(session).migrate(
        args.source,
        args.target,
        keep_source=args.keep_source,
        confirmed=args.yes,
    )
    return _print_ledger(ledger, args.json)


_COMMANDS = {
    "nodes": _cmd_nodes,
    "scan": _cmd_scan,
    "run": _cmd_run,
    "migrate": _cmd_migrate,
}


async def _dispatch(args: argparse.Namespace) -> int:
    async with ContainerControlClient(base_url=args.hub_url, token=args.token) as client:
        session = OperatorSession(client=client)
        try:
            return await _COMMANDS[args.command](session, args)
        except (PreconditionFailure, ValidationFailure) as e:
            print(f"error: {e.message}", file=sys.stderr)
            return EXIT_REJECTED
        except ScanFailure as e:
            print(f"error: {e.message}", file=sys.stderr)
            for node_id, message in e.node_errors.items():
                print(f"  {node_id}: {message}", file=sys.stderr)
            return EXIT_UNREACHABLE
        except FleetError as e:
            print(f"error: {e.message}", file=sys.stderr)
            return EXIT_UNREACHABLE


def _add_scan_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--node",
        action="append",
        help="Node id or name to include (repeatable, default: all connected nodes).",
    )
    parser.add_argument("--filter", default="", help="Case-insensitive substring filter.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleet", description="Multi-node container bulk actions.")
    parser.add_argument("--hub-url", default=None, help="Control API base URL.")
    parser.add_argument("--token", default=None, help="Bearer token for the control API.")
    parser.add_argument("--json", action="store_true", help="Output JSON only.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("nodes", help="List registry nodes.")

    scan = sub.add_parser("scan", help="Find matching containers.")
    _add_scan_args(scan)

    run = sub.add_parser("run", help="Apply an action to every matching container.")
    _add_scan_args(run)
    run.add_argument("action", choices=[a.value for a in BulkAction])
    run.add_argument("--image", help="Redeploy: replacement image.")
    run.add_argument("--name-template", help="Redeploy: name template, supports {node} and {name}.")
    run.add_argument("--env", action="append", help="Redeploy: KEY=VALUE (repeatable).")
    run.add_argument("--port", action="append", help="Redeploy: host:container (repeatable).")
    run.add_argument("--no-auto-restart", action="store_true", help="Redeploy: disable auto restart.")

    migrate = sub.add_parser("migrate", help="Move or copy every container to another node.")
    migrate.add_argument("source", help="Source node id.")
    migrate.add_argument("target", help="Target node id.")
    migrate.add_argument("--keep-source", action="store_true", help="Copy instead of move.")
    migrate.add_argument("--yes", action="store_true", help="Confirm the migration.")

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "serve":
        import uvicorn

        uvicorn.run("fleet.main:app", host=args.host, port=args.port, reload=False)
        return EXIT_OK

    return asyncio.run(_dispatch(args))


if __name__ == "__main__":
    sys.exit(main())
