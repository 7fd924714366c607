"""
Type definitions for nounkit entity schemas.

This module defines the normalized, immutable form of one entity type:
- FieldDef: A plain or enumerated attribute
- RelationshipDef: A forward or backward reference to another type
- VerbConjugation: The derived forms of one verb
- NounSchema: The complete entity type

Invariants:
    - All definitions are frozen dataclasses (hashable, never mutated)
    - Enum values keep their declared order
    - Field, relationship and verb names never overlap within one schema
    - create/update/delete are present in ``verbs`` unless disabled

How to change safely:
    - Add new optional attributes with defaults
    - Never reorder enum_values after a schema is registered
    - Keep to_dict() output stable, it backs introspection endpoints

Example:
    >>> schema = NounSchema.build(
    ...     "Campaign",
    ...     fields=[
    ...         FieldDef("name", FieldKind.STRING, FieldModifiers(required=True)),
    ...         FieldDef.enum("status", ["Draft", "Active", "Paused"]),
    ...     ],
    ...     verbs={"launch": "Launched", "pause": "Paused"},
    ... )
    >>> schema.verb("launch").event
    'launched'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import SchemaError
from .linguistic import conjugate, lower_first, pluralize, slugify

CRUD_VERBS = ("create", "update", "delete")


class FieldKind(str, Enum):
    """Value types a field can hold."""

    STRING = "string"
    NUMBER = "number"
    INT = "int"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    JSON = "json"
    ID = "id"
    ENUM = "enum"


class Direction(str, Enum):
    """Relationship direction.

    FORWARD: the base instance stores the related id inline.
    BACKWARD: related instances store the base id in their backref field.
    """

    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(frozen=True)
class FieldModifiers:
    """Declaration flags on a field."""

    required: bool = False
    unique: bool = False
    indexed: bool = False
    array: bool = False


@dataclass(frozen=True)
class FieldDef:
    """A plain or enumerated attribute.

    Attributes:
        name: Attribute name on instances
        kind: Value type
        modifiers: required/unique/indexed/array flags
        enum_values: Allowed values for ENUM fields, in declared order
    """

    name: str
    kind: FieldKind = FieldKind.STRING
    modifiers: FieldModifiers = field(default_factory=FieldModifiers)
    enum_values: Tuple[str, ...] = ()

    @classmethod
    def enum(
        cls,
        name: str,
        values: Iterable[str],
        modifiers: Optional[FieldModifiers] = None,
    ) -> FieldDef:
        """Build an ENUM field, keeping first occurrence of repeated values."""
        ordered: List[str] = []
        for value in values:
            if value not in ordered:
                ordered.append(value)
        return cls(
            name=name,
            kind=FieldKind.ENUM,
            modifiers=modifiers or FieldModifiers(),
            enum_values=tuple(ordered),
        )

    @property
    def is_enum(self) -> bool:
        return self.kind == FieldKind.ENUM

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
            "required": self.modifiers.required,
            "unique": self.modifiers.unique,
            "indexed": self.modifiers.indexed,
            "array": self.modifiers.array,
        }
        if self.is_enum:
            result["values"] = list(self.enum_values)
        return result


@dataclass(frozen=True)
class RelationshipDef:
    """A reference from this type to another registered type.

    Attributes:
        name: Attribute name used for includes (and the inline id for forward)
        direction: FORWARD or BACKWARD
        target_type: Name of the related entity type
        backref: Field on the related side (required for BACKWARD)
        is_array: Whether the relationship is to-many
    """

    name: str
    direction: Direction
    target_type: str
    backref: Optional[str] = None
    is_array: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "direction": self.direction.value,
            "target": self.target_type,
            "backref": self.backref,
            "array": self.is_array,
        }


@dataclass(frozen=True)
class VerbConjugation:
    """Derived forms of a verb.

    Attributes:
        action: Imperative form, also the method name (qualify)
        activity: Present participle, names the before-hook (qualifying)
        event: Past participle, names the after-hook (qualified)
        reverse_by: Actor attribution field (qualifiedBy)
        reverse_at: Timestamp attribution field (qualifiedAt)
        target: Declared target state for custom verbs (Qualified)
    """

    action: str
    activity: str
    event: str
    reverse_by: str
    reverse_at: str
    target: Optional[str] = None

    @classmethod
    def of(cls, verb: str, target: Optional[str] = None) -> VerbConjugation:
        action, activity, event = conjugate(verb)
        return cls(
            action=action,
            activity=activity,
            event=event,
            reverse_by=f"{event}By",
            reverse_at=f"{event}At",
            target=target,
        )

    @property
    def is_crud(self) -> bool:
        return self.action in CRUD_VERBS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "activity": self.activity,
            "event": self.event,
            "reverseBy": self.reverse_by,
            "reverseAt": self.reverse_at,
            "target": self.target,
        }


@dataclass(frozen=True)
class NounSchema:
    """Complete definition of one entity type.

    Prefer NounSchema.build(), which derives naming forms and adds the
    CRUD verbs.

    Attributes:
        name: PascalCase type name (Contact)
        singular: Lower camel singular (contact)
        plural: Lower camel plural, also the remote collection (contacts)
        slug: Kebab-case slug, prefixes instance ids (contact)
        fields: Attribute definitions in declaration order
        relationships: Relationship definitions in declaration order
        verbs: Enabled verbs, CRUD first
        disabled_verbs: Verbs removed from the public surface
    """

    name: str
    singular: str
    plural: str
    slug: str
    fields: Tuple[FieldDef, ...] = ()
    relationships: Tuple[RelationshipDef, ...] = ()
    verbs: Tuple[VerbConjugation, ...] = ()
    disabled_verbs: frozenset = frozenset()

    def __post_init__(self) -> None:
        seen: Dict[str, str] = {}
        for kind, names in (
            ("field", [f.name for f in self.fields]),
            ("relationship", [r.name for r in self.relationships]),
            ("verb", [v.action for v in self.verbs]),
        ):
            for name in names:
                if name in seen:
                    raise SchemaError(
                        f"'{name}' declared as both {seen[name]} and {kind} on {self.name}",
                        type_name=self.name,
                    )
                seen[name] = kind

    @classmethod
    def build(
        cls,
        name: str,
        fields: Iterable[FieldDef] = (),
        relationships: Iterable[RelationshipDef] = (),
        verbs: Optional[Mapping[str, Optional[str]]] = None,
        disabled_verbs: Iterable[str] = (),
    ) -> NounSchema:
        """Build a schema, deriving naming forms and adding CRUD verbs.

        Args:
            name: PascalCase type name
            fields: Field definitions
            relationships: Relationship definitions
            verbs: Custom verb name -> declared target state
            disabled_verbs: Verb names to remove (CRUD or custom)

        Raises:
            SchemaError: If names overlap or the type name is empty
        """
        if not name:
            raise SchemaError("Entity type name must not be empty")
        disabled = frozenset(disabled_verbs)
        conjugations = [VerbConjugation.of(v) for v in CRUD_VERBS if v not in disabled]
        for verb, target in (verbs or {}).items():
            if verb in CRUD_VERBS or verb in disabled:
                continue
            conjugations.append(VerbConjugation.of(verb, target))
        singular = lower_first(name)
        return cls(
            name=name,
            singular=singular,
            plural=pluralize(singular),
            slug=slugify(name),
            fields=tuple(fields),
            relationships=tuple(relationships),
            verbs=tuple(conjugations),
            disabled_verbs=disabled,
        )

    def field(self, name: str) -> Optional[FieldDef]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def relationship(self, name: str) -> Optional[RelationshipDef]:
        for r in self.relationships:
            if r.name == name:
                return r
        return None

    def verb(self, name: str) -> Optional[VerbConjugation]:
        """Look up an enabled verb by action name."""
        for v in self.verbs:
            if v.action == name:
                return v
        return None

    def has_verb(self, name: str) -> bool:
        return self.verb(name) is not None

    @property
    def custom_verbs(self) -> Tuple[VerbConjugation, ...]:
        return tuple(v for v in self.verbs if not v.is_crud)

    @property
    def enum_fields(self) -> Tuple[FieldDef, ...]:
        return tuple(f for f in self.fields if f.is_enum)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "name": self.name,
            "singular": self.singular,
            "plural": self.plural,
            "slug": self.slug,
            "fields": [f.to_dict() for f in self.fields],
            "relationships": [r.to_dict() for r in self.relationships],
            "verbs": [v.to_dict() for v in self.verbs],
            "disabledVerbs": sorted(self.disabled_verbs),
        }
