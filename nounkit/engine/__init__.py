"""
Verb/hook engine for nounkit.

This module provides the runtime pieces between schemas and providers:
- NounEntity: CRUD, custom verbs and hook registration per entity type
- HookRegistry: Ordered before/after hook chains
- EventBus: Mutation notifications with isolated subscribers
- RelationshipResolver: include resolution for fetch()
"""

from .entity import NounEntity
from .events import EventBus, NounEvent
from .hooks import AFTER, BEFORE, HookRegistry
from .relations import RelationshipResolver

__all__ = [
    "AFTER",
    "BEFORE",
    "EventBus",
    "HookRegistry",
    "NounEntity",
    "NounEvent",
    "RelationshipResolver",
]
