"""
Relationship resolution for fetch(include=[...]).

For each requested name:
    - declared BACKWARD relationship: find() on the target type filtered
      by the backref field equal to the base id; always a list
    - declared FORWARD relationship: get() the inline id on the target
      type (a list of gets for to-many)
    - no declared relationship: heuristic. Singularize the name, match a
      registered type case-insensitively, then look for a forward
      relationship on that type pointing back at the base type and
      find() by it
    - nothing matched: the key is omitted

Declared relationships always win over the heuristic. The heuristic only
knows regular English plurals (deals, companies, matches); irregular
plurals such as "people" do not resolve.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional

from ..providers.base import META_ID
from ..schema.linguistic import singularize
from ..schema.types import Direction, NounSchema, RelationshipDef

if TYPE_CHECKING:
    from ..context import EntityRegistry

logger = logging.getLogger(__name__)


class RelationshipResolver:
    """Resolves include names against the entity registry."""

    def __init__(self, registry: EntityRegistry) -> None:
        self._registry = registry

    async def resolve(
        self,
        instance: Mapping[str, Any],
        schema: NounSchema,
        include: Iterable[str],
    ) -> Dict[str, Any]:
        """Resolve include names for one instance.

        Args:
            instance: Base instance
            schema: Schema of the base instance
            include: Requested relationship names

        Returns:
            Mapping of resolved names to related instances; unmatched
            names are absent
        """
        resolved: Dict[str, Any] = {}
        for name in include:
            relationship = schema.relationship(name)
            if relationship is not None:
                resolved[name] = await self._resolve_declared(instance, relationship)
                continue
            value = await self._resolve_heuristic(instance, schema, name)
            if value is not None:
                resolved[name] = value
            else:
                logger.debug(
                    "Include did not match any relationship",
                    extra={"type": schema.name, "include": name},
                )
        return resolved

    async def _resolve_declared(
        self,
        instance: Mapping[str, Any],
        relationship: RelationshipDef,
    ) -> Any:
        target = self._registry.get(relationship.target_type)

        if relationship.direction == Direction.BACKWARD:
            if target is None or not relationship.backref:
                return []
            return await target.find({relationship.backref: instance.get(META_ID)})

        ref = instance.get(relationship.name)
        if target is None or ref is None:
            return [] if relationship.is_array else None
        if isinstance(ref, list):
            related = [await target.get(item) for item in ref]
            return [item for item in related if item is not None]
        return await target.get(ref)

    async def _resolve_heuristic(
        self,
        instance: Mapping[str, Any],
        schema: NounSchema,
        name: str,
    ) -> Optional[List[Dict[str, Any]]]:
        target_schema = self._registry.schemas.find_case_insensitive(singularize(name))
        if target_schema is None:
            return None
        for relationship in target_schema.relationships:
            if (
                relationship.direction == Direction.FORWARD
                and relationship.target_type == schema.name
            ):
                target = self._registry.get(target_schema.name)
                if target is None:
                    return None
                return await target.find({relationship.name: instance.get(META_ID)})
        return None
