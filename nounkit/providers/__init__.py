"""
Storage providers for nounkit.

This module provides the pluggable backend contract and its three
implementations:
- In-memory (tests, prototyping, default)
- Local (SQLite file, survives restarts)
- Remote (one HTTP call per operation)

Invariants:
    - Exactly one provider backs a context at a time
    - All providers share the metadata rules in base.py

How to change safely:
    - New backends must implement the NounProvider protocol
    - Run the shared provider contract tests against every backend
"""

from .base import (
    DEFAULT_CONTEXT,
    META_KEYS,
    NounProvider,
    ProviderKind,
    create_provider,
    generate_id,
    now_iso,
)
from .local import LocalNounProvider
from .memory import MemoryNounProvider
from .remote import RemoteNounProvider

__all__ = [
    # Protocol and helpers
    "NounProvider",
    "ProviderKind",
    "DEFAULT_CONTEXT",
    "META_KEYS",
    "generate_id",
    "now_iso",
    # Factory
    "create_provider",
    # Implementations
    "MemoryNounProvider",
    "LocalNounProvider",
    "RemoteNounProvider",
]
