"""
Entity registry and universal context.

The UniversalContext is the single facade over every registered entity
type. It provides:
- Name-indexed access to NounEntity objects (``ctx.Contact``, ``ctx["Contact"]``)
- Cross-type operations: search, fetch (with includes), do
- Event subscription across all types
- A status snapshot of the active backend

Unknown entity names resolve to None, never an exception.

Invariants:
    - One NounEntity per (context, type name); repeated lookups return
      the same object
    - Entities resolve the provider on every call, so backend swaps and
      lazy initialization are visible immediately
    - In lazy mode, entity lookup, search, fetch and do initialize the
      backend; status() never does
    - do() passes the registry to the routine and propagates its errors

Example:
    >>> ctx = UniversalContext(backend=FixedBackend(MemoryNounProvider()))
    >>> ctx.define("Contact", {"name": "string!", "qualify": "Qualified"})
    >>> alice = await ctx.Contact.create({"name": "Alice"})
    >>> await ctx.search("Contact", {"name": "Alice"})
    [{'name': 'Alice', '$id': 'contact_...', ...}]
    >>> ctx.Nope is None
    True
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol

from .engine.entity import NounEntity
from .engine.events import EventBus
from .engine.hooks import HookRegistry
from .engine.relations import RelationshipResolver
from .errors import NotInitializedError
from .providers.base import NounProvider, ProviderKind
from .schema.parser import parse_definition
from .schema.registry import SchemaRegistry
from .schema.types import NounSchema

logger = logging.getLogger(__name__)

EPHEMERAL_ALERT = "Using ephemeral in-memory backend; data is lost when the process exits"


class Backend(Protocol):
    """Source of the active provider for a context."""

    @property
    def is_initialized(self) -> bool: ...

    @property
    def alerts(self) -> List[str]: ...

    def get_active(self) -> Optional[NounProvider]: ...


class FixedBackend:
    """Backend bound to a single provider for its whole life."""

    def __init__(self, provider: NounProvider) -> None:
        self.provider = provider

    @property
    def is_initialized(self) -> bool:
        return True

    @property
    def alerts(self) -> List[str]:
        if self.provider.kind == ProviderKind.MEMORY.value:
            return [EPHEMERAL_ALERT]
        return []

    def get_active(self) -> Optional[NounProvider]:
        return self.provider


class EntityRegistry:
    """Name-indexed view of every registered entity type.

    Entities are created on first lookup from the schema registry and
    cached; a schema removed from the registry stops resolving.
    """

    def __init__(
        self,
        schemas: SchemaRegistry,
        provider: Callable[[], NounProvider],
        hooks: HookRegistry,
        events: EventBus,
    ) -> None:
        self.schemas = schemas
        self._provider = provider
        self._hooks = hooks
        self._events = events
        self._entities: Dict[str, NounEntity] = {}

    def get(self, name: str) -> Optional[NounEntity]:
        """Entity for a type name, or None when not registered."""
        schema = self.schemas.get(name)
        if schema is None:
            return None
        entity = self._entities.get(name)
        if entity is None or entity.schema is not schema:
            entity = NounEntity(schema, self._provider, self._hooks, self._events, self)
            self._entities[name] = entity
        return entity

    def has(self, name: str) -> bool:
        return self.schemas.has(name)

    def names(self) -> List[str]:
        return self.schemas.names()

    def __getattr__(self, name: str) -> Optional[NounEntity]:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __getitem__(self, name: str) -> Optional[NounEntity]:
        return self.get(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __iter__(self) -> Iterator[NounEntity]:
        for name in self.names():
            entity = self.get(name)
            if entity is not None:
                yield entity

    def __len__(self) -> int:
        return len(self.schemas)


class UniversalContext:
    """Facade over all entity types plus cross-cutting operations."""

    def __init__(
        self,
        backend: Backend,
        schemas: Optional[SchemaRegistry] = None,
        events: Optional[EventBus] = None,
        hooks: Optional[HookRegistry] = None,
    ) -> None:
        """Create a context.

        Args:
            backend: Supplies the active provider
            schemas: Entity types visible in this context (new registry when omitted)
            events: Event bus (new bus when omitted)
            hooks: Hook chains (new registry when omitted)
        """
        self._backend = backend
        self.schemas = schemas if schemas is not None else SchemaRegistry()
        self.events = events if events is not None else EventBus()
        self.hooks = hooks if hooks is not None else HookRegistry()
        self.entities = EntityRegistry(self.schemas, self._require_provider, self.hooks, self.events)
        self._resolver = RelationshipResolver(self.entities)

    def _activate(self) -> None:
        # Lazy mode initializes on first use of the context
        self._backend.get_active()

    def _require_provider(self) -> NounProvider:
        provider = self._backend.get_active()
        if provider is None:
            raise NotInitializedError()
        return provider

    def __getattr__(self, name: str) -> Optional[NounEntity]:
        if name.startswith("_"):
            raise AttributeError(name)
        self._activate()
        return self.entities.get(name)

    def __getitem__(self, name: str) -> Optional[NounEntity]:
        self._activate()
        return self.entities.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.entities

    # --- Registration ---

    def register(self, schema: NounSchema) -> NounEntity:
        """Register a schema and return its entity."""
        self.schemas.register(schema)
        entity = self.entities.get(schema.name)
        assert entity is not None
        return entity

    def define(self, name: str, definition: Mapping[str, Optional[str]]) -> NounEntity:
        """Parse a declarative definition, register it and return its entity."""
        return self.register(parse_definition(name, definition))

    # --- Cross-type operations ---

    async def search(
        self,
        type: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """find() on a type by name; [] for an unknown type."""
        self._activate()
        entity = self.entities.get(type)
        if entity is None:
            return []
        return await entity.find(where)

    async def fetch(
        self,
        type: str,
        id: str,
        include: Optional[Iterable[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """get() on a type by name, optionally resolving relationships.

        Returns:
            The instance with resolved includes merged in, or None for an
            unknown type or missing id
        """
        self._activate()
        entity = self.entities.get(type)
        if entity is None:
            return None
        instance = await entity.get(id)
        if instance is None:
            return None
        if include:
            resolved = await self._resolver.resolve(instance, entity.schema, include)
            instance = {**instance, **resolved}
        return instance

    async def do(self, fn: Callable[[EntityRegistry], Any]) -> Any:
        """Run a routine with the entity registry; returns its result."""
        self._activate()
        result = fn(self.entities)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def status(self) -> Dict[str, Any]:
        """Snapshot of backend kind, initialization, counts and alerts.

        Read-only: a lazily configured backend is reported as
        uninitialized rather than initialized by this call.
        """
        provider = self._backend.get_active() if self._backend.is_initialized else None
        counts: Dict[str, int] = {}
        if provider is not None:
            for name in self.entities.names():
                counts[name] = await provider.count(name)
        return {
            "backend": provider.kind if provider is not None else None,
            "initialized": self._backend.is_initialized,
            "context": provider.context if provider is not None else None,
            "types": counts,
            "alerts": list(self._backend.alerts),
        }
