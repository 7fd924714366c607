"""
Schema model for nounkit.

Exports the immutable entity type definitions, the declarative parser
and the name-indexed registry.
"""

from .linguistic import conjugate, pluralize, singularize, slugify, to_collection_name
from .parser import parse_definition
from .registry import SchemaRegistry, get_registry, reset_registry
from .types import (
    CRUD_VERBS,
    Direction,
    FieldDef,
    FieldKind,
    FieldModifiers,
    NounSchema,
    RelationshipDef,
    VerbConjugation,
)

__all__ = [
    "CRUD_VERBS",
    "Direction",
    "FieldDef",
    "FieldKind",
    "FieldModifiers",
    "NounSchema",
    "RelationshipDef",
    "SchemaRegistry",
    "VerbConjugation",
    "conjugate",
    "get_registry",
    "parse_definition",
    "pluralize",
    "reset_registry",
    "singularize",
    "slugify",
    "to_collection_name",
]
