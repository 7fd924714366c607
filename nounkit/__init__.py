"""
nounkit - schema-driven entity access with verbs, hooks and pluggable storage.

Declare entity types, initialize a backend, then work through the
universal context:

    >>> import nounkit
    >>> ctx = nounkit.init()
    >>> Contact = ctx.define("Contact", {
    ...     "name": "string!",
    ...     "stage": "Lead | Qualified | Customer",
    ...     "qualify": "Qualified",
    ... })
    >>> alice = await Contact.create({"name": "Alice", "stage": "Lead"})
    >>> alice = await Contact.qualify(alice["$id"])
    >>> alice["stage"]
    'Qualified'

For multi-tenant deployments use create_tenant().
"""

from ._version import __version__
from .config import Settings
from .context import EntityRegistry, FixedBackend, UniversalContext
from .engine import EventBus, HookRegistry, NounEntity, NounEvent
from .errors import (
    AlreadyInitializedError,
    DuplicateRegistrationError,
    InvalidEndpointError,
    NotFoundError,
    NotInitializedError,
    NounKitError,
    QueryError,
    RemoteProviderError,
    SchemaError,
    UnknownVerbError,
)
from .lifecycle import (
    InitOptions,
    LifecycleController,
    areconfigure,
    areset,
    enable_lazy,
    get_active,
    get_context,
    get_controller,
    init,
    is_initialized,
    reconfigure,
    reset,
)
from .logging_config import setup_logging
from .providers import (
    LocalNounProvider,
    MemoryNounProvider,
    NounProvider,
    RemoteNounProvider,
    create_provider,
)
from .query import filter_instances, matches
from .schema import NounSchema, SchemaRegistry, get_registry, parse_definition, reset_registry
from .tenant import TenantContext, create_tenant

__all__ = [
    "__version__",
    # Lifecycle
    "init",
    "reset",
    "reconfigure",
    "areset",
    "areconfigure",
    "enable_lazy",
    "is_initialized",
    "get_active",
    "get_context",
    "get_controller",
    "InitOptions",
    "LifecycleController",
    # Contexts
    "UniversalContext",
    "EntityRegistry",
    "FixedBackend",
    "TenantContext",
    "create_tenant",
    # Engine
    "NounEntity",
    "NounEvent",
    "EventBus",
    "HookRegistry",
    # Schema
    "NounSchema",
    "SchemaRegistry",
    "get_registry",
    "reset_registry",
    "parse_definition",
    # Providers
    "NounProvider",
    "MemoryNounProvider",
    "LocalNounProvider",
    "RemoteNounProvider",
    "create_provider",
    # Query
    "matches",
    "filter_instances",
    # Config
    "Settings",
    "setup_logging",
    # Errors
    "NounKitError",
    "AlreadyInitializedError",
    "NotInitializedError",
    "InvalidEndpointError",
    "UnknownVerbError",
    "NotFoundError",
    "SchemaError",
    "DuplicateRegistrationError",
    "QueryError",
    "RemoteProviderError",
]
