"""
Base protocol and helpers for storage providers.

This module defines the NounProvider protocol that all storage backends
must implement, along with the shared instance metadata rules.

Instance metadata:
    $id         {slug}_{8 random url-safe chars}, immutable
    $type       Entity type name, immutable
    $context    Tenant context URL, immutable
    $version    1 on create, +1 on every update or verb
    $createdAt  ISO-8601 UTC, immutable
    $updatedAt  ISO-8601 UTC, advances on every mutation

Invariants:
    - get() returns None and delete() returns False for absent ids
    - update() and perform() raise NotFoundError for absent ids
    - Unknown attributes passed to create() are stored, never dropped
    - find() only returns instances of the requested type and context

How to change safely:
    - Protocol changes require updating all three implementations
    - Keep new_instance()/apply_changes() the single source of the
      metadata rules so providers cannot drift apart
"""

from __future__ import annotations

import logging
import secrets
import string
from abc import abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from ..schema.linguistic import slugify

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = "https://headless.ly"

META_ID = "$id"
META_TYPE = "$type"
META_CONTEXT = "$context"
META_VERSION = "$version"
META_CREATED_AT = "$createdAt"
META_UPDATED_AT = "$updatedAt"

META_KEYS = frozenset({
    META_ID, META_TYPE, META_CONTEXT, META_VERSION, META_CREATED_AT, META_UPDATED_AT,
})

SQID_CHARS = string.ascii_letters + string.digits

Instance = Dict[str, Any]


class ProviderKind(str, Enum):
    """Available storage backends."""

    MEMORY = "memory"
    LOCAL = "local"
    REMOTE = "remote"


@runtime_checkable
class NounProvider(Protocol):
    """Protocol for entity storage backends.

    Every operation is scoped by an entity type name. Providers store
    plain attribute maps and know nothing about hooks or verbs beyond
    merging the state changes the engine hands to perform().

    Example:
        >>> provider = MemoryNounProvider()
        >>> contact = await provider.create("Contact", {"name": "Alice"})
        >>> contact["$version"]
        1
    """

    kind: str
    context: str

    @abstractmethod
    async def create(self, type_name: str, data: Mapping[str, Any]) -> Instance:
        """Assign metadata, persist and return the new instance."""
        ...

    @abstractmethod
    async def find(
        self,
        type_name: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[Instance]:
        """Return instances of a type matching the filter (all when omitted)."""
        ...

    @abstractmethod
    async def get(self, type_name: str, entity_id: str) -> Optional[Instance]:
        """Return one instance, or None when absent."""
        ...

    @abstractmethod
    async def update(
        self,
        type_name: str,
        entity_id: str,
        data: Mapping[str, Any],
    ) -> Instance:
        """Merge data over an instance.

        Raises:
            NotFoundError: If the id does not exist
        """
        ...

    @abstractmethod
    async def delete(self, type_name: str, entity_id: str) -> bool:
        """Remove an instance; False when it did not exist."""
        ...

    @abstractmethod
    async def perform(
        self,
        type_name: str,
        verb: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> Instance:
        """Apply a verb's state changes to an instance.

        Raises:
            NotFoundError: If the id does not exist
        """
        ...

    @abstractmethod
    async def count(self, type_name: str) -> int:
        """Number of stored instances of a type."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connections and file handles."""
        ...


def generate_sqid(length: int = 8) -> str:
    return "".join(secrets.choice(SQID_CHARS) for _ in range(length))


def generate_id(type_name: str) -> str:
    """Contact -> contact_aB3xK9qZ."""
    return f"{slugify(type_name)}_{generate_sqid()}"


def now_iso() -> str:
    """Current UTC time, ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def strip_meta(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop reserved metadata keys from caller-supplied attributes."""
    return {k: v for k, v in (data or {}).items() if k not in META_KEYS}


def new_instance(type_name: str, data: Mapping[str, Any], context: str) -> Instance:
    """Build a fresh instance at version 1."""
    now = now_iso()
    instance: Instance = strip_meta(data)
    instance.update({
        META_ID: generate_id(type_name),
        META_TYPE: type_name,
        META_CONTEXT: context,
        META_VERSION: 1,
        META_CREATED_AT: now,
        META_UPDATED_AT: now,
    })
    return instance


def apply_changes(existing: Mapping[str, Any], data: Optional[Mapping[str, Any]]) -> Instance:
    """Merge changes over an instance, advancing version and update time."""
    merged: Instance = dict(existing)
    merged.update(strip_meta(data))
    merged[META_VERSION] = int(existing.get(META_VERSION, 0)) + 1
    now = now_iso()
    # Never move updatedAt backwards, even if the clock does
    merged[META_UPDATED_AT] = max(now, str(existing.get(META_UPDATED_AT, now)))
    return merged


def create_provider(kind: str = ProviderKind.MEMORY, **options: Any) -> NounProvider:
    """Factory function to create a provider by kind.

    Args:
        kind: memory, local or remote
        **options: Keyword arguments for the provider constructor

    Returns:
        Appropriate NounProvider implementation

    Raises:
        ValueError: If the kind is not supported
    """
    from .local import LocalNounProvider
    from .memory import MemoryNounProvider
    from .remote import RemoteNounProvider

    kind = ProviderKind(kind)
    if kind == ProviderKind.MEMORY:
        return MemoryNounProvider(**options)
    elif kind == ProviderKind.LOCAL:
        return LocalNounProvider(**options)
    elif kind == ProviderKind.REMOTE:
        return RemoteNounProvider(**options)
    else:
        raise ValueError(f"Unsupported provider kind: {kind}")
