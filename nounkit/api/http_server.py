"""
REST mapping for a nounkit context.

Translates HTTP routes into calls on the context's entities. No business
logic lives here; every rule is enforced by the entity engine.

Routes (relative to base_path, default /api):
    GET    /                      list entity types
    GET    /{type}                find (query params are equality filters,
                                  ?where= takes a JSON filter)
    POST   /{type}                create                       -> 201
    GET    /{type}/{id}           get (?include=a,b resolves relationships)
    PUT    /{type}/{id}           update
    DELETE /{type}/{id}           delete                       -> {"deleted": true}
    POST   /{type}/{id}/{verb}    custom verb

Status codes:
    400  malformed body or filter
    401  missing or wrong bearer token (when api_key is configured)
    404  unknown entity type or missing instance
    405  verb not declared or disabled on the type
    500  anything else

Invariants:
    - Every response body is JSON
    - Errors are {"error": message, "error_code": code}
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from ..context import UniversalContext
from ..engine.entity import NounEntity
from ..errors import NotFoundError, NounKitError, QueryError, UnknownVerbError

logger = logging.getLogger(__name__)

RESERVED_QUERY_PARAMS = frozenset({"where", "include"})


def _error(status: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message, "error_code": code})


def create_router(context: UniversalContext, api_key: Optional[str] = None) -> APIRouter:
    """Build the entity router for a context.

    Args:
        context: Universal or tenant context to expose
        api_key: Required bearer token; None disables auth

    Returns:
        APIRouter with CRUD and verb routes
    """

    def require_auth(request: Request) -> None:
        if api_key is None:
            return
        header = request.headers.get("Authorization", "")
        token = header[7:] if header.startswith("Bearer ") else ""
        if token != api_key:
            raise HTTPException(status_code=401, detail="Unauthorized")

    router = APIRouter(tags=["nounkit"], dependencies=[Depends(require_auth)])

    def entity_or_404(type_name: str) -> NounEntity:
        entity = context.entities.get(type_name)
        if entity is None:
            raise HTTPException(status_code=404, detail=f"Unknown entity type: {type_name}")
        return entity

    async def json_body(request: Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Request body must be valid JSON")
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")
        return body

    @router.get("")
    async def list_types() -> Dict[str, Any]:
        return {"types": context.entities.names()}

    @router.get("/{type_name}")
    async def find(type_name: str, request: Request) -> Any:
        entity = entity_or_404(type_name)
        where: Dict[str, Any] = {
            k: v for k, v in request.query_params.items() if k not in RESERVED_QUERY_PARAMS
        }
        raw_where = request.query_params.get("where")
        if raw_where:
            try:
                parsed = json.loads(raw_where)
            except json.JSONDecodeError:
                raise HTTPException(status_code=400, detail="where must be a JSON object")
            if not isinstance(parsed, dict):
                raise HTTPException(status_code=400, detail="where must be a JSON object")
            where.update(parsed)
        return await entity.find(where or None)

    @router.post("/{type_name}", status_code=201)
    async def create(type_name: str, request: Request) -> Any:
        entity = entity_or_404(type_name)
        if entity.schema.verb("create") is None:
            raise UnknownVerbError(type_name, "create", disabled=True)
        return await entity.create(await json_body(request))

    @router.get("/{type_name}/{entity_id}")
    async def get(type_name: str, entity_id: str, include: Optional[str] = None) -> Any:
        entity_or_404(type_name)
        names = [n.strip() for n in include.split(",") if n.strip()] if include else None
        instance = await context.fetch(type_name, entity_id, include=names)
        if instance is None:
            raise HTTPException(status_code=404, detail=f"{type_name} not found: {entity_id}")
        return instance

    @router.put("/{type_name}/{entity_id}")
    async def update(type_name: str, entity_id: str, request: Request) -> Any:
        entity = entity_or_404(type_name)
        body = await json_body(request)
        return await entity.perform("update", entity_id, body)

    @router.delete("/{type_name}/{entity_id}")
    async def delete(type_name: str, entity_id: str) -> Any:
        entity = entity_or_404(type_name)
        removed = await entity.perform("delete", entity_id)
        if not removed:
            raise HTTPException(status_code=404, detail=f"{type_name} not found: {entity_id}")
        return {"deleted": True}

    @router.post("/{type_name}/{entity_id}/{verb}")
    async def perform(type_name: str, entity_id: str, verb: str, request: Request) -> Any:
        entity = entity_or_404(type_name)
        body = await json_body(request) if await request.body() else {}
        return await entity.perform(verb, entity_id, body)

    return router


def create_app(
    context: UniversalContext,
    api_key: Optional[str] = None,
    base_path: str = "/api",
) -> FastAPI:
    """Create a FastAPI application exposing a context.

    Args:
        context: Universal or tenant context
        api_key: Required bearer token; None disables auth
        base_path: Prefix for all entity routes

    Returns:
        FastAPI application
    """
    app = FastAPI(title="nounkit", description="REST mapping for nounkit entities")
    app.include_router(create_router(context, api_key=api_key), prefix=base_path.rstrip("/"))

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
        codes = {400: "BAD_REQUEST", 401: "UNAUTHORIZED", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}
        return _error(exc.status_code, str(exc.detail), codes.get(exc.status_code, "HTTP_ERROR"))

    @app.exception_handler(NounKitError)
    async def nounkit_error(request: Request, exc: NounKitError) -> JSONResponse:
        if isinstance(exc, NotFoundError):
            return _error(404, exc.message, exc.code)
        if isinstance(exc, UnknownVerbError):
            return _error(405, exc.message, exc.code)
        if isinstance(exc, QueryError):
            return _error(400, exc.message, exc.code)
        logger.error(f"HTTP handler error: {exc}", exc_info=True)
        return _error(500, exc.message, exc.code)

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"HTTP handler error: {exc}", exc_info=True)
        return _error(500, str(exc), "INTERNAL")

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "healthy", "service": "nounkit"}

    return app
