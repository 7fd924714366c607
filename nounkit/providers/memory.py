"""
In-memory storage provider.

This module provides the ephemeral backend used for:
- Unit and integration tests
- Prototyping without external dependencies
- The default backend when nothing else is configured

Invariants:
    - All data is lost on process exit
    - Every mutation runs under one asyncio lock (no partial writes visible)
    - Callers receive copies; mutating a returned dict never touches the store
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from ..errors import NotFoundError
from ..query import matches
from .base import DEFAULT_CONTEXT, Instance, ProviderKind, apply_changes, new_instance

logger = logging.getLogger(__name__)


class MemoryNounProvider:
    """Dict-backed implementation of NounProvider.

    Thread safety:
        Uses an asyncio lock around mutations. Safe to use from
        multiple coroutines on one event loop.

    Example:
        >>> provider = MemoryNounProvider(context="https://headless.ly/~acme")
        >>> deal = await provider.create("Deal", {"value": 500})
        >>> await provider.find("Deal", {"value": {"$gte": 100}})
        [{'value': 500, '$id': 'deal_...', ...}]
    """

    kind = ProviderKind.MEMORY.value

    def __init__(self, context: str = DEFAULT_CONTEXT) -> None:
        self.context = context
        self._store: Dict[str, Dict[str, Instance]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def create(self, type_name: str, data: Mapping[str, Any]) -> Instance:
        data = copy.deepcopy(dict(data))
        async with self._lock:
            instance = new_instance(type_name, data, self.context)
            bucket = self._store[type_name]
            while instance["$id"] in bucket:
                instance = new_instance(type_name, data, self.context)
            bucket[instance["$id"]] = instance
        logger.debug("Created instance", extra={"type": type_name, "id": instance["$id"]})
        return copy.deepcopy(instance)

    async def find(
        self,
        type_name: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[Instance]:
        return [
            copy.deepcopy(instance)
            for instance in self._store.get(type_name, {}).values()
            if matches(instance, where)
        ]

    async def get(self, type_name: str, entity_id: str) -> Optional[Instance]:
        instance = self._store.get(type_name, {}).get(entity_id)
        return copy.deepcopy(instance) if instance is not None else None

    async def update(
        self,
        type_name: str,
        entity_id: str,
        data: Mapping[str, Any],
    ) -> Instance:
        return await self._merge(type_name, entity_id, data)

    async def delete(self, type_name: str, entity_id: str) -> bool:
        async with self._lock:
            removed = self._store.get(type_name, {}).pop(entity_id, None)
        return removed is not None

    async def perform(
        self,
        type_name: str,
        verb: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> Instance:
        instance = await self._merge(type_name, entity_id, data)
        logger.debug("Performed verb", extra={"type": type_name, "verb": verb, "id": entity_id})
        return instance

    async def count(self, type_name: str) -> int:
        return len(self._store.get(type_name, {}))

    async def close(self) -> None:
        """Nothing to release; data stays until clear()."""

    def clear(self) -> None:
        """Drop all stored instances (testing helper)."""
        self._store.clear()

    async def _merge(
        self,
        type_name: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]],
    ) -> Instance:
        async with self._lock:
            bucket = self._store.get(type_name, {})
            existing = bucket.get(entity_id)
            if existing is None:
                raise NotFoundError(type_name, entity_id)
            updated = apply_changes(existing, copy.deepcopy(dict(data or {})))
            bucket[entity_id] = updated
        return copy.deepcopy(updated)
