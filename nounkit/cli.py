"""
Command-line interface for nounkit.

Commands:
    search  Find instances of a type, optionally filtered
    fetch   Get one instance, optionally resolving relationships
    do      Run a verb (create, update, delete or a custom verb)
    status  Show backend, context, per-type counts and alerts
    serve   Expose a tenant context over HTTP (FastAPI + uvicorn)
    schema  Print registered entity types as JSON
    events  Print the local backend's event journal as NDJSON

Entity types are declared by importing a Python module (``--module``)
that calls ``define``/``parse_definition`` against the process-wide
registry at import time. Data commands default to the local backend so
that successive invocations see the same data.

Usage:
    nounkit do create --module myapp.nouns --type Contact --data '{"name": "Alice"}'
    nounkit do qualify --module myapp.nouns --type Contact --id contact_aB3xK9qZ
    nounkit search --module myapp.nouns --type Contact --where '{"stage": "Lead"}'
    nounkit fetch --module myapp.nouns --type Company --id company_x --include contacts
    nounkit status --module myapp.nouns
    nounkit serve --module myapp.nouns --tenant acme --mode local --port 8000
    nounkit schema --module myapp.nouns -o schema.json
    nounkit events --tenant acme --type Contact
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import uvicorn

from .api.http_server import create_app
from .config import Settings
from .errors import NounKitError
from .logging_config import setup_logging
from .providers.local import LocalNounProvider
from .schema.registry import get_registry
from .tenant import TenantContext, create_tenant

logger = logging.getLogger(__name__)


def _load_module(module: Optional[str]) -> None:
    """Import a module that declares entity types."""
    if not module:
        return
    importlib.import_module(module)
    logger.info("Loaded entity definitions", extra={"module": module, "types": get_registry().names()})


def _json_object(raw: Optional[str], flag: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object argument.

    Raises:
        NounKitError: If the value is not a JSON object
    """
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise NounKitError(f"{flag} must be a JSON object: {e}", code="INVALID_ARGUMENT") from e
    if not isinstance(value, dict):
        raise NounKitError(f"{flag} must be a JSON object", code="INVALID_ARGUMENT")
    return value


def _tenant(args: argparse.Namespace, settings: Settings) -> TenantContext:
    _load_module(args.module)
    return create_tenant(
        args.tenant or settings.tenant or "default",
        mode=args.mode,
        data_dir=args.data_dir,
        endpoint=args.endpoint,
        settings=settings,
    )


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2))


def cmd_search(args: argparse.Namespace, settings: Settings) -> int:
    where = _json_object(args.where, "--where")
    tenant = _tenant(args, settings)

    async def run() -> List[Dict[str, Any]]:
        try:
            return await tenant.search(args.type, where)
        finally:
            await tenant.close()

    _print_json(asyncio.run(run()))
    return 0


def cmd_fetch(args: argparse.Namespace, settings: Settings) -> int:
    include = [n.strip() for n in args.include.split(",") if n.strip()] if args.include else None
    tenant = _tenant(args, settings)

    async def run() -> Optional[Dict[str, Any]]:
        try:
            return await tenant.fetch(args.type, args.id, include=include)
        finally:
            await tenant.close()

    instance = asyncio.run(run())
    if instance is None:
        print(f"Error: {args.type} not found: {args.id}", file=sys.stderr)
        return 1
    _print_json(instance)
    return 0


def cmd_do(args: argparse.Namespace, settings: Settings) -> int:
    data = _json_object(args.data, "--data") or {}
    if args.verb != "create" and not args.id:
        raise NounKitError(f"--id is required for '{args.verb}'", code="INVALID_ARGUMENT")
    tenant = _tenant(args, settings)
    entity = tenant.entities.get(args.type)
    if entity is None:
        raise NounKitError(f"Unknown entity type: {args.type}", code="UNKNOWN_TYPE")

    async def run() -> Any:
        try:
            if args.verb == "create":
                return await entity.create(data)
            return await entity.perform(args.verb, args.id, data, actor=args.actor)
        finally:
            await tenant.close()

    result = asyncio.run(run())
    if result is False:
        print(f"Error: {args.type} not found: {args.id}", file=sys.stderr)
        return 1
    _print_json(result)
    return 0


def cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    tenant = _tenant(args, settings)

    async def run() -> Dict[str, Any]:
        try:
            return await tenant.status()
        finally:
            await tenant.close()

    status = asyncio.run(run())
    _print_json({"tenant": tenant.tenant, **status})
    return 0


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    tenant = _tenant(args, settings)
    app = create_app(tenant, api_key=args.auth_token, base_path=args.base_path)
    logger.info(
        "Serving tenant",
        extra={"tenant": tenant.tenant, "backend": tenant.provider.kind, "port": args.port},
    )
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


def cmd_schema(args: argparse.Namespace, settings: Settings) -> int:
    _load_module(args.module)
    output = json.dumps(get_registry().to_dict(), indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(output)
        print(f"Schema exported to {args.output}", file=sys.stderr)
    else:
        print(output)
    return 0


def cmd_events(args: argparse.Namespace, settings: Settings) -> int:
    tenant = args.tenant or settings.tenant
    context = (
        f"{settings.context_base.rstrip('/')}/~{tenant}" if tenant else settings.default_context
    )
    provider = LocalNounProvider(args.data_dir or settings.data_dir, context=context)
    for event in provider.read_events(type_name=args.type, entity_id=args.id):
        print(json.dumps(event))
    return 0


def _add_tenant_arguments(parser: argparse.ArgumentParser, default_mode: str) -> None:
    parser.add_argument("--module", help="Python module declaring entity types")
    parser.add_argument("--tenant", help="Tenant identifier (default: NOUNKIT_TENANT)")
    parser.add_argument(
        "--mode", choices=["memory", "local", "remote"], default=default_mode, help="Storage backend"
    )
    parser.add_argument("--data-dir", help="Local backend directory")
    parser.add_argument("--endpoint", help="Remote base URL")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nounkit", description="nounkit entity toolkit")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Find instances of a type")
    _add_tenant_arguments(search_parser, default_mode="local")
    search_parser.add_argument("--type", required=True, help="Entity type name")
    search_parser.add_argument("--where", help="JSON filter, e.g. '{\"stage\": \"Lead\"}'")
    search_parser.set_defaults(handler=cmd_search)

    fetch_parser = subparsers.add_parser("fetch", help="Get one instance")
    _add_tenant_arguments(fetch_parser, default_mode="local")
    fetch_parser.add_argument("--type", required=True, help="Entity type name")
    fetch_parser.add_argument("--id", required=True, help="Instance id")
    fetch_parser.add_argument("--include", help="Comma-separated relationships to resolve")
    fetch_parser.set_defaults(handler=cmd_fetch)

    do_parser = subparsers.add_parser("do", help="Run a verb on a type")
    do_parser.add_argument("verb", help="create, update, delete or a custom verb")
    _add_tenant_arguments(do_parser, default_mode="local")
    do_parser.add_argument("--type", required=True, help="Entity type name")
    do_parser.add_argument("--id", help="Instance id (all verbs except create)")
    do_parser.add_argument("--data", help="JSON object of attributes")
    do_parser.add_argument("--actor", help="Recorded as the verb's actor")
    do_parser.set_defaults(handler=cmd_do)

    status_parser = subparsers.add_parser("status", help="Show backend status")
    _add_tenant_arguments(status_parser, default_mode="local")
    status_parser.set_defaults(handler=cmd_status)

    serve_parser = subparsers.add_parser("serve", help="Serve a tenant context over HTTP")
    _add_tenant_arguments(serve_parser, default_mode="memory")
    serve_parser.add_argument("--auth-token", help="Bearer token required from HTTP clients")
    serve_parser.add_argument("--base-path", default="/api", help="Route prefix")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(handler=cmd_serve)

    schema_parser = subparsers.add_parser("schema", help="Export entity types as JSON")
    schema_parser.add_argument("--module", help="Python module declaring entity types")
    schema_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    schema_parser.set_defaults(handler=cmd_schema)

    events_parser = subparsers.add_parser("events", help="Print the local event journal")
    events_parser.add_argument("--tenant", help="Tenant identifier (default: NOUNKIT_TENANT)")
    events_parser.add_argument("--data-dir", help="Local backend directory")
    events_parser.add_argument("--type", help="Only events for this entity type")
    events_parser.add_argument("--id", help="Only events for this instance")
    events_parser.set_defaults(handler=cmd_events)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    setup_logging(settings)
    try:
        return args.handler(args, settings)
    except NounKitError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
