"""
Runtime object for one entity type.

NounEntity wraps every CRUD operation and custom verb of a schema in the
same pipeline:

    1. Resolve the verb (UnknownVerbError if undeclared or disabled)
    2. Run before-hooks in order; each may replace parts of the payload
       or raise to abort before anything is persisted
    3. Execute the storage operation on the active provider
    4. Publish a NounEvent to the event bus
    5. Run after-hooks in order with (instance, registry)
    6. Return the instance

Custom verbs resolve their state change in two tiers: if the declared
target is a member of the conventional enum field (``status``, else the
first enum containing it) that field is set through the enum path;
otherwise ``status`` is written with the literal target anyway.

Public surface, for a schema declaring ``qualify: 'Qualified'``:

    await Contact.create({...})          Contact.creating(fn)  Contact.created(fn)
    await Contact.update(id, {...})      Contact.updating(fn)  Contact.updated(fn)
    await Contact.delete(id)             Contact.deleting(fn)  Contact.deleted(fn)
    await Contact.qualify(id)            Contact.qualifying(fn) Contact.qualified(fn)

A disabled verb is exposed as None (``Contact.update is None``).

Invariants:
    - No hook chain is reordered or batched
    - Errors from before-hooks, storage and after-hooks reach the caller unchanged
    - After-hooks never run when the storage operation failed
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional

from ..errors import UnknownVerbError
from ..providers.base import META_ID, NounProvider, now_iso
from ..schema.types import CRUD_VERBS, NounSchema, VerbConjugation
from .events import EventBus, NounEvent
from .hooks import AFTER, BEFORE, HookRegistry, Unsubscribe

if TYPE_CHECKING:
    from ..context import EntityRegistry

logger = logging.getLogger(__name__)

STATUS_FIELD = "status"


class NounEntity:
    """Uniform CRUD, verb and hook surface over one entity type.

    Attributes:
        schema: The entity type definition
        name: Entity type name
    """

    def __init__(
        self,
        schema: NounSchema,
        provider: Callable[[], NounProvider],
        hooks: HookRegistry,
        events: EventBus,
        registry: EntityRegistry,
    ) -> None:
        """Bind a schema to its collaborators.

        Args:
            schema: Entity type definition
            provider: Returns the active provider (resolved per call so
                backends can be swapped or lazily initialized)
            hooks: Hook chains shared by the owning context
            events: Event bus shared by the owning context
            registry: Handle passed to after-hooks
        """
        self.schema = schema
        self.name = schema.name
        self._provider = provider
        self._hooks = hooks
        self._events = events
        self._registry = registry
        for verb in schema.disabled_verbs:
            if verb in CRUD_VERBS:
                # Shadow the class method so the disabled verb reads as None
                setattr(self, verb, None)

        self._by_activity: Dict[str, VerbConjugation] = {v.activity: v for v in schema.verbs}
        self._by_event: Dict[str, VerbConjugation] = {v.event: v for v in schema.verbs}

    def __repr__(self) -> str:
        return f"NounEntity({self.name!r})"

    def __getattr__(self, attr: str) -> Any:
        if attr.startswith("_"):
            raise AttributeError(attr)
        conj = self.schema.verb(attr)
        if conj is not None and not conj.is_crud:
            return functools.partial(self.perform, attr)
        if attr in self.schema.disabled_verbs:
            return None
        if attr in self._by_activity:
            return functools.partial(self.before, self._by_activity[attr].action)
        if attr in self._by_event:
            return functools.partial(self.after, self._by_event[attr].action)
        raise AttributeError(f"{self.name} has no attribute or verb '{attr}'")

    # --- Hook registration ---

    def _require_verb(self, verb: str) -> VerbConjugation:
        conj = self.schema.verb(verb)
        if conj is None:
            raise UnknownVerbError(self.name, verb, disabled=verb in self.schema.disabled_verbs)
        return conj

    def before(self, verb: str, fn: Callable[..., Any]) -> Unsubscribe:
        """Register a before-hook; returns its unsubscribe handle."""
        self._require_verb(verb)
        return self._hooks.register(self.name, BEFORE, verb, fn)

    def after(self, verb: str, fn: Callable[..., Any]) -> Unsubscribe:
        """Register an after-hook; returns its unsubscribe handle."""
        self._require_verb(verb)
        return self._hooks.register(self.name, AFTER, verb, fn)

    # --- Reads ---

    async def get(self, entity_id: str) -> Optional[Dict[str, Any]]:
        return await self._provider().get(self.name, entity_id)

    async def find(self, where: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self._provider().find(self.name, where)

    async def find_one(self, where: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
        results = await self.find(where)
        return results[0] if results else None

    async def count(self) -> int:
        return await self._provider().count(self.name)

    # --- Mutations ---

    async def create(self, data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Create an instance.

        Args:
            data: Attribute values; unknown attributes are kept

        Returns:
            Stored instance at version 1
        """
        conj = self._require_verb("create")
        payload = await self._hooks.run_before(self.name, "create", data or {})
        instance = await self._provider().create(self.name, payload)
        await self._finish(conj, instance)
        return instance

    async def update(self, entity_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge attributes over an instance.

        Raises:
            NotFoundError: If the id does not exist
        """
        conj = self._require_verb("update")
        payload = await self._hooks.run_before(self.name, "update", data)
        instance = await self._provider().update(self.name, entity_id, payload)
        await self._finish(conj, instance)
        return instance

    async def delete(self, entity_id: str) -> bool:
        """Delete an instance.

        Before-hooks receive the stored instance. Deleting an absent id
        returns False without running hooks.
        """
        conj = self._require_verb("delete")
        provider = self._provider()
        existing = await provider.get(self.name, entity_id)
        if existing is None:
            return False
        await self._hooks.run_before(self.name, "delete", existing)
        removed = await provider.delete(self.name, entity_id)
        if removed:
            await self._finish(conj, existing)
        return removed

    async def perform(
        self,
        verb: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Execute a verb on an instance.

        Args:
            verb: Verb action name
            entity_id: Target instance id
            data: Extra attributes to merge
            actor: Recorded in the verb's ``{event}By`` field when given

        Returns:
            Updated instance

        Raises:
            UnknownVerbError: If the verb is undeclared or disabled
            NotFoundError: If the id does not exist
        """
        conj = self._require_verb(verb)
        if conj.action == "update":
            return await self.update(entity_id, data or {})
        if conj.action == "delete":
            return await self.delete(entity_id)
        if conj.action == "create":
            return await self.create(data)

        payload = await self._hooks.run_before(self.name, verb, data or {})
        changes = {**payload, **self.resolve_transition(conj), conj.reverse_at: now_iso()}
        if actor is not None:
            changes[conj.reverse_by] = actor
        instance = await self._provider().perform(self.name, verb, entity_id, changes)
        await self._finish(conj, instance)
        return instance

    def resolve_transition(self, conj: VerbConjugation) -> Dict[str, Any]:
        """State change applied by a custom verb (empty when it has no target)."""
        if conj.target is None:
            return {}
        field_name = self._state_field(conj.target)
        field_def = self.schema.field(field_name)
        if field_def is not None and field_def.is_enum and conj.target in field_def.enum_values:
            return {field_name: conj.target}
        return {STATUS_FIELD: conj.target}

    def _state_field(self, target: str) -> str:
        if self.schema.field(STATUS_FIELD) is not None:
            return STATUS_FIELD
        for field_def in self.schema.enum_fields:
            if target in field_def.enum_values:
                return field_def.name
        return STATUS_FIELD

    async def _finish(self, conj: VerbConjugation, instance: Dict[str, Any]) -> None:
        event = NounEvent(
            entity_type=self.name,
            entity_id=str(instance.get(META_ID, "")),
            action=conj.action,
            event=conj.event,
            instance=instance,
            context=getattr(self._provider(), "context", None),
        )
        logger.debug(
            "Entity mutation",
            extra={"event_type": event.type, "entity_id": event.entity_id},
        )
        await self._events.publish(event)
        await self._hooks.run_after(self.name, conj.action, instance, self._registry)
