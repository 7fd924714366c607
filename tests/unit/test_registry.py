"""
Unit tests for schema registry.

Tests cover:
- Type registration and lookup
- Duplicate detection
- Global registry reset
"""

import pytest

from nounkit.errors import DuplicateRegistrationError
from nounkit.schema.parser import parse_definition
from nounkit.schema.registry import SchemaRegistry, get_registry, reset_registry
from nounkit.schema.types import NounSchema


class TestSchemaRegistry:
    """Tests for SchemaRegistry."""

    def test_register_and_get(self):
        """Can register and look up a type."""
        registry = SchemaRegistry()
        contact = parse_definition("Contact", {"name": "string!"})

        registry.register(contact)

        assert registry.get("Contact") is contact
        assert registry.has("Contact")
        assert "Contact" in registry

    def test_unknown_returns_none(self):
        """Unknown names are absent, not errors."""
        registry = SchemaRegistry()

        assert registry.get("Nope") is None
        assert not registry.has("Nope")

    def test_duplicate_name_raises(self):
        """Registering the same name twice raises."""
        registry = SchemaRegistry()
        registry.register(NounSchema.build("Contact"))

        with pytest.raises(DuplicateRegistrationError):
            registry.register(NounSchema.build("Contact"))

    def test_names_in_registration_order(self):
        """names() follows registration order."""
        registry = SchemaRegistry()
        for name in ("Deal", "Contact", "Company"):
            registry.register(NounSchema.build(name))

        assert registry.names() == ["Deal", "Contact", "Company"]
        assert [s.name for s in registry] == ["Deal", "Contact", "Company"]

    def test_case_insensitive_lookup(self):
        """find_case_insensitive matches regardless of case."""
        registry = SchemaRegistry()
        registry.register(NounSchema.build("FeatureFlag"))

        assert registry.find_case_insensitive("featureflag").name == "FeatureFlag"
        assert registry.find_case_insensitive("missing") is None

    def test_to_dict(self):
        """Registry serializes every type."""
        registry = SchemaRegistry()
        registry.register(NounSchema.build("Contact"))

        assert [t["name"] for t in registry.to_dict()["types"]] == ["Contact"]


class TestGlobalRegistry:
    """Tests for the process-wide registry."""

    def test_get_registry_is_singleton(self):
        """get_registry() returns the same instance."""
        assert get_registry() is get_registry()

    def test_reset_registry_clears(self):
        """reset_registry() drops all types."""
        get_registry().register(NounSchema.build("Contact"))

        reset_registry()

        assert not get_registry().has("Contact")
        assert len(get_registry()) == 0
