"""
Schema Registry for nounkit.

The SchemaRegistry is the central authority for entity type definitions.
It provides:
- Registration of entity types by name
- Lookup with explicit absence (None) for unknown names
- A full reset, used between test runs and tenant switches

Invariants:
    - Type names are unique within a registry
    - Registered schemas are never mutated or replaced
    - Iteration order is registration order

How to change safely:
    - Register types before handing the registry to contexts
    - Use reset_registry() only in tests or when switching tenants

Example:
    >>> registry = SchemaRegistry()
    >>> registry.register(parse_definition("Contact", {"name": "string!"}))
    >>> registry.has("Contact")
    True
    >>> registry.get("Nope") is None
    True
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterator, List, Optional

from ..errors import DuplicateRegistrationError
from .types import NounSchema

logger = logging.getLogger(__name__)

# Global registry instance
_global_registry: Optional[SchemaRegistry] = None
_registry_lock = threading.Lock()


class SchemaRegistry:
    """Name-indexed registry of entity type schemas.

    Thread-safety:
        Registration and clear() take an internal lock. Lookups read a
        plain dict and are safe alongside registration.
    """

    def __init__(self) -> None:
        self._schemas: Dict[str, NounSchema] = {}
        self._lock = threading.Lock()

    def register(self, schema: NounSchema) -> NounSchema:
        """Register an entity type.

        Args:
            schema: The schema to register

        Returns:
            The registered schema

        Raises:
            DuplicateRegistrationError: If the name is already registered
        """
        with self._lock:
            if schema.name in self._schemas:
                raise DuplicateRegistrationError(schema.name)
            self._schemas[schema.name] = schema
        logger.debug(
            "Registered entity type",
            extra={"type": schema.name, "verbs": [v.action for v in schema.verbs]},
        )
        return schema

    def get(self, name: str) -> Optional[NounSchema]:
        return self._schemas.get(name)

    def has(self, name: str) -> bool:
        return name in self._schemas

    def find_case_insensitive(self, name: str) -> Optional[NounSchema]:
        """Look up a type ignoring case (contact -> Contact)."""
        lowered = name.lower()
        for schema in self._schemas.values():
            if schema.name.lower() == lowered:
                return schema
        return None

    def names(self) -> List[str]:
        return list(self._schemas)

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()

    def __iter__(self) -> Iterator[NounSchema]:
        return iter(list(self._schemas.values()))

    def __len__(self) -> int:
        return len(self._schemas)

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def to_dict(self) -> Dict[str, Any]:
        """Convert registry to a JSON-serializable dictionary."""
        return {"types": [schema.to_dict() for schema in self._schemas.values()]}


def get_registry() -> SchemaRegistry:
    """Get the process-wide schema registry, creating it on first use."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = SchemaRegistry()
        return _global_registry


def reset_registry() -> None:
    """Drop every registered type from the process-wide registry."""
    global _global_registry
    with _registry_lock:
        if _global_registry is not None:
            _global_registry.clear()
