"""
Unit tests for schema types and the declarative parser.

Tests cover:
- Naming forms and CRUD verbs
- Name exclusivity between fields, relationships and verbs
- Enum order preservation
- Parsing of field modifiers, relationships, verbs and disabled verbs
"""

import pytest

from nounkit.errors import SchemaError
from nounkit.schema.parser import parse_definition
from nounkit.schema.types import (
    Direction,
    FieldDef,
    FieldKind,
    NounSchema,
    RelationshipDef,
)


class TestNounSchema:
    """Tests for NounSchema construction."""

    def test_naming_forms(self):
        """Singular, plural and slug are derived from the name."""
        schema = NounSchema.build("FeatureFlag")

        assert schema.singular == "featureFlag"
        assert schema.plural == "featureFlags"
        assert schema.slug == "feature-flag"

    def test_crud_verbs_always_present(self):
        """create/update/delete exist without being declared."""
        schema = NounSchema.build("Note")

        assert [v.action for v in schema.verbs] == ["create", "update", "delete"]
        assert schema.custom_verbs == ()

    def test_disabled_verbs_removed(self):
        """Disabled verbs are not in verbs but are recorded."""
        schema = NounSchema.build("Event", disabled_verbs=["update", "delete"])

        assert schema.has_verb("create")
        assert not schema.has_verb("update")
        assert schema.disabled_verbs == frozenset({"update", "delete"})

    def test_custom_verb_conjugation(self):
        """Custom verbs carry conjugation and target."""
        schema = NounSchema.build("Contact", verbs={"qualify": "Qualified"})
        conj = schema.verb("qualify")

        assert conj.activity == "qualifying"
        assert conj.event == "qualified"
        assert conj.reverse_by == "qualifiedBy"
        assert conj.reverse_at == "qualifiedAt"
        assert conj.target == "Qualified"
        assert not conj.is_crud

    def test_field_and_relationship_name_clash(self):
        """A name cannot be both a field and a relationship."""
        with pytest.raises(SchemaError):
            NounSchema.build(
                "Contact",
                fields=[FieldDef("company")],
                relationships=[RelationshipDef("company", Direction.FORWARD, "Company")],
            )

    def test_field_and_verb_name_clash(self):
        """A name cannot be both a field and a verb."""
        with pytest.raises(SchemaError):
            NounSchema.build("Contact", fields=[FieldDef("qualify")], verbs={"qualify": "Qualified"})

    def test_enum_order_preserved(self):
        """Enum values keep declaration order, first occurrence wins."""
        field_def = FieldDef.enum("status", ["Paused", "Active", "Draft", "Active"])

        assert field_def.enum_values == ("Paused", "Active", "Draft")
        assert field_def.is_enum

    def test_to_dict(self):
        """Schema serializes for introspection."""
        schema = NounSchema.build("Contact", fields=[FieldDef("name")], verbs={"qualify": "Qualified"})
        data = schema.to_dict()

        assert data["name"] == "Contact"
        assert data["fields"][0]["name"] == "name"
        assert [v["action"] for v in data["verbs"]] == ["create", "update", "delete", "qualify"]


class TestParser:
    """Tests for parse_definition."""

    def test_field_modifiers(self):
        """Suffixes map to modifiers."""
        schema = parse_definition("Contact", {
            "name": "string!",
            "email": "string##",
            "phone": "string#",
            "tags": "string[]",
            "score": "number",
            "visits": "int",
            "active": "boolean",
        })

        assert schema.field("name").modifiers.required
        assert schema.field("email").modifiers.unique
        assert schema.field("email").modifiers.indexed
        assert schema.field("phone").modifiers.indexed
        assert not schema.field("phone").modifiers.unique
        assert schema.field("tags").modifiers.array
        assert schema.field("score").kind == FieldKind.NUMBER
        assert schema.field("visits").kind == FieldKind.INT
        assert schema.field("active").kind == FieldKind.BOOLEAN

    def test_enum(self):
        """Pipe-separated values become an enum in order."""
        schema = parse_definition("Deal", {"stage": "Prospecting | Negotiation | Won | Lost"})

        assert schema.field("stage").enum_values == ("Prospecting", "Negotiation", "Won", "Lost")

    def test_relationships(self):
        """Arrows declare forward and backward relationships."""
        schema = parse_definition("Project", {
            "organization": "-> Organization",
            "owner": "-> Contact.projects",
            "issues": "<- Issue.project[]",
        })

        org = schema.relationship("organization")
        assert org.direction == Direction.FORWARD
        assert org.target_type == "Organization"
        assert schema.relationship("owner").backref == "projects"

        issues = schema.relationship("issues")
        assert issues.direction == Direction.BACKWARD
        assert issues.target_type == "Issue"
        assert issues.backref == "project"
        assert issues.is_array

    def test_verbs_and_disabled(self):
        """PascalCase values declare verbs, None disables."""
        schema = parse_definition("Invoice", {
            "amount": "number!",
            "pay": "Paid",
            "void": "Voided",
            "delete": None,
        })

        assert schema.verb("pay").target == "Paid"
        assert schema.verb("void").target == "Voided"
        assert not schema.has_verb("delete")
        assert "delete" in schema.disabled_verbs

    def test_backward_without_backref_rejected(self):
        """Backward relationships must name the backing field."""
        with pytest.raises(SchemaError):
            parse_definition("Company", {"contacts": "<- Contact[]"})

    def test_unknown_type_rejected(self):
        """Unknown base types are errors."""
        with pytest.raises(SchemaError):
            parse_definition("Contact", {"name": "strang"})
