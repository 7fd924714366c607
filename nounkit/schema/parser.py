"""
Declarative entity definitions.

Turns a compact mapping of attribute name -> declaration string into a
NounSchema. The rest of nounkit only ever sees the resulting schema.

Declaration grammar:
    'string'            plain field (also number, int, boolean, date,
                        datetime, json, id and a few string aliases)
    'string!'           required
    'string#'           indexed
    'string##'          unique and indexed
    'string[]'          array
    'A | B | C'         enumeration, values kept in declared order
    '-> Target'         forward relationship (inline foreign id)
    '-> Target.field'   forward relationship with backref on Target
    '-> Target[]'       forward to-many relationship
    '<- Target.field[]' backward relationship through Target.field
    'Qualified'         custom verb (lower-case key) with its target state
    None                disable the verb named by the key

Example:
    >>> schema = parse_definition("Contact", {
    ...     "name": "string!",
    ...     "email": "string##",
    ...     "stage": "Lead | Qualified | Customer",
    ...     "company": "-> Company.contacts",
    ...     "deals": "<- Deal.contact[]",
    ...     "qualify": "Qualified",
    ... })
    >>> schema.field("stage").enum_values
    ('Lead', 'Qualified', 'Customer')
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional

from ..errors import SchemaError
from .types import Direction, FieldDef, FieldKind, FieldModifiers, NounSchema, RelationshipDef

TYPE_ALIASES: Dict[str, FieldKind] = {
    "string": FieldKind.STRING,
    "text": FieldKind.STRING,
    "markdown": FieldKind.STRING,
    "email": FieldKind.STRING,
    "url": FieldKind.STRING,
    "number": FieldKind.NUMBER,
    "decimal": FieldKind.NUMBER,
    "float": FieldKind.NUMBER,
    "int": FieldKind.INT,
    "integer": FieldKind.INT,
    "boolean": FieldKind.BOOLEAN,
    "bool": FieldKind.BOOLEAN,
    "date": FieldKind.DATE,
    "datetime": FieldKind.DATETIME,
    "timestamp": FieldKind.DATETIME,
    "json": FieldKind.JSON,
    "object": FieldKind.JSON,
    "id": FieldKind.ID,
}

_RELATION_RE = re.compile(r"^(->|<-)\s*([A-Z][A-Za-z0-9]*)(?:\.([A-Za-z_][A-Za-z0-9_]*))?\s*(\[\])?$")
_FIELD_RE = re.compile(r"^([a-z]+)(\[\])?(##|#)?(!)?(\[\])?\??$")
_VERB_KEY_RE = re.compile(r"^[a-z][a-zA-Z]*$")
_TARGET_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")


def parse_definition(name: str, definition: Mapping[str, Optional[str]]) -> NounSchema:
    """Parse a declarative definition into a NounSchema.

    Args:
        name: PascalCase entity type name
        definition: Attribute name -> declaration string (or None)

    Returns:
        The normalized schema

    Raises:
        SchemaError: If a declaration cannot be parsed or names overlap
    """
    fields: List[FieldDef] = []
    relationships: List[RelationshipDef] = []
    verbs: Dict[str, Optional[str]] = {}
    disabled: List[str] = []

    for key, raw in definition.items():
        if raw is None:
            disabled.append(key)
            continue
        if not isinstance(raw, str):
            raise SchemaError(
                f"Declaration for {name}.{key} must be a string or None, got {type(raw).__name__}",
                type_name=name,
            )
        decl = raw.strip()

        if decl.startswith(("->", "<-")):
            relationships.append(_parse_relationship(name, key, decl))
        elif "|" in decl:
            values = [v.strip() for v in decl.split("|") if v.strip()]
            fields.append(FieldDef.enum(key, values))
        elif _TARGET_RE.match(decl) and _VERB_KEY_RE.match(key):
            verbs[key] = decl
        else:
            fields.append(_parse_field(name, key, decl))

    return NounSchema.build(
        name,
        fields=fields,
        relationships=relationships,
        verbs=verbs,
        disabled_verbs=disabled,
    )


def _parse_relationship(type_name: str, key: str, decl: str) -> RelationshipDef:
    match = _RELATION_RE.match(decl)
    if not match:
        raise SchemaError(f"Invalid relationship {type_name}.{key}: {decl!r}", type_name=type_name)
    arrow, target, backref, array = match.groups()
    direction = Direction.FORWARD if arrow == "->" else Direction.BACKWARD
    if direction == Direction.BACKWARD and not backref:
        raise SchemaError(
            f"Backward relationship {type_name}.{key} must name the field on {target}",
            type_name=type_name,
        )
    return RelationshipDef(
        name=key,
        direction=direction,
        target_type=target,
        backref=backref,
        is_array=bool(array),
    )


def _parse_field(type_name: str, key: str, decl: str) -> FieldDef:
    match = _FIELD_RE.match(decl)
    if not match or match.group(1) not in TYPE_ALIASES:
        raise SchemaError(f"Invalid field {type_name}.{key}: {decl!r}", type_name=type_name)
    base, array_before, index_marks, required, array_after = match.groups()
    modifiers = FieldModifiers(
        required=bool(required),
        unique=index_marks == "##",
        indexed=bool(index_marks),
        array=bool(array_before or array_after),
    )
    return FieldDef(name=key, kind=TYPE_ALIASES[base], modifiers=modifiers)
