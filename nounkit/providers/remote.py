"""
Remote storage provider over HTTP.

Every provider operation is exactly one HTTP call:

    POST {endpoint}/{collection}/{operation}
    Authorization: Bearer <api_key>        (when configured)
    Content-Type: application/json

    {"type": "Contact", "id": "...", "data": {...}, "where": {...}, "verb": "..."}

The collection is derived from the type name (Contact -> contacts,
Company -> companies). Responses may wrap the result as {"data": ...}.

Invariants:
    - One request per operation, no retries
    - 404 maps to None (get), False (delete), NotFoundError (update, perform)
    - Any other non-2xx status, transport failure or non-JSON success body
      raises RemoteProviderError
    - The remote side owns ids, versions and timestamps
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..errors import NotFoundError, RemoteProviderError
from ..schema.linguistic import to_collection_name
from .base import DEFAULT_CONTEXT, Instance, ProviderKind

logger = logging.getLogger(__name__)


class RemoteNounProvider:
    """httpx-backed implementation of NounProvider.

    Attributes:
        endpoint: Base URL of the remote backend
        api_key: Bearer credential (optional)
        timeout: Request timeout in seconds

    Example:
        >>> provider = RemoteNounProvider("https://db.headless.ly/~acme", api_key="key_...")
        >>> await provider.find("Contact", {"stage": "Lead"})
        >>> await provider.close()
    """

    kind = ProviderKind.REMOTE.value

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        context: str = DEFAULT_CONTEXT,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the remote provider.

        Args:
            endpoint: Base URL; collections are appended as path segments
            api_key: Sent as a bearer token when present
            context: Tenant context URL this provider serves
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.context = context
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json", "Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def url_for(self, type_name: str, operation: str) -> str:
        return f"{self.endpoint}/{to_collection_name(type_name)}/{operation}"

    async def _call(
        self,
        type_name: str,
        operation: str,
        body: Dict[str, Any],
    ) -> Optional[Any]:
        """POST one operation; returns None on 404.

        Raises:
            RemoteProviderError: On transport failure, non-2xx status or a
                non-JSON success body
        """
        url = self.url_for(type_name, operation)
        body = {"type": type_name, **body}
        try:
            response = await self._get_client().post(url, json=body)
        except httpx.HTTPError as e:
            logger.error(
                "Remote call failed",
                extra={"url": url, "operation": operation, "error": str(e)},
            )
            raise RemoteProviderError(f"Remote call to {url} failed: {e}", url=url) from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise RemoteProviderError(
                f"Remote {operation} on {type_name} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
                url=url,
            )

        logger.debug(
            "Remote call completed",
            extra={"url": url, "operation": operation, "status": response.status_code},
        )
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteProviderError(
                f"Remote {operation} on {type_name} returned a non-JSON body",
                status_code=response.status_code,
                url=url,
            ) from e
        if isinstance(payload, dict) and "data" in payload and "$id" not in payload:
            return payload["data"]
        return payload

    async def create(self, type_name: str, data: Mapping[str, Any]) -> Instance:
        result = await self._call(type_name, "create", {"data": dict(data)})
        if result is None:
            raise RemoteProviderError(
                f"Remote create on {type_name} returned 404",
                status_code=404,
                url=self.url_for(type_name, "create"),
            )
        return result

    async def find(
        self,
        type_name: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[Instance]:
        body: Dict[str, Any] = {}
        if where:
            body["where"] = dict(where)
        result = await self._call(type_name, "find", body)
        return list(result or [])

    async def get(self, type_name: str, entity_id: str) -> Optional[Instance]:
        result = await self._call(type_name, "get", {"id": entity_id})
        return result or None

    async def update(
        self,
        type_name: str,
        entity_id: str,
        data: Mapping[str, Any],
    ) -> Instance:
        result = await self._call(type_name, "update", {"id": entity_id, "data": dict(data)})
        if result is None:
            raise NotFoundError(type_name, entity_id)
        return result

    async def delete(self, type_name: str, entity_id: str) -> bool:
        result = await self._call(type_name, "delete", {"id": entity_id})
        if result is None:
            return False
        if isinstance(result, dict):
            return bool(result.get("deleted", True))
        return bool(result)

    async def perform(
        self,
        type_name: str,
        verb: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> Instance:
        body: Dict[str, Any] = {"verb": verb, "id": entity_id}
        if data is not None:
            body["data"] = dict(data)
        result = await self._call(type_name, "perform", body)
        if result is None:
            raise NotFoundError(type_name, entity_id)
        return result

    async def count(self, type_name: str) -> int:
        result = await self._call(type_name, "count", {})
        if isinstance(result, dict):
            return int(result.get("count", 0))
        return int(result or 0)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
