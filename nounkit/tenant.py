"""
Tenant-scoped contexts for multi-tenant deployments.

create_tenant() builds an isolated context bound to one tenant and one
provider instance:

    context URL      {context_base}/~{tenant}
    remote endpoint  {remote_base or endpoint}/~{tenant}

Entity types come from a schema registry (the process-wide one by
default); hooks, event subscriptions and stored data belong to the
tenant context alone.

Domain namespaces group entity types (``acme.crm.Contact``). A namespace
member is the same NounEntity object as the flat entry (``acme.Contact``).

The context is deliberately not awaitable-looking: ``then``, ``catch``
and ``finally`` read as None so async frameworks never treat it as a
promise or future.

Example:
    >>> acme = create_tenant("acme", namespaces={"crm": ["Contact", "Deal"]})
    >>> acme.context
    'https://headless.ly/~acme'
    >>> acme.crm.Contact is acme.Contact
    True
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import Settings
from .context import EntityRegistry, FixedBackend, UniversalContext
from .engine.entity import NounEntity
from .errors import NounKitError
from .lifecycle import validate_endpoint
from .providers.base import NounProvider, ProviderKind
from .providers.local import LocalNounProvider
from .providers.memory import MemoryNounProvider
from .providers.remote import RemoteNounProvider
from .schema.registry import SchemaRegistry, get_registry

logger = logging.getLogger(__name__)

THENABLE_NAMES = frozenset({"then", "catch", "finally"})

_TENANT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class DomainNamespace:
    """Named subset of a tenant's entity types."""

    def __init__(self, name: str, entities: EntityRegistry, type_names: Iterable[str]) -> None:
        self.name = name
        self._entities = entities
        self._type_names = tuple(type_names)

    @property
    def type_names(self) -> List[str]:
        return list(self._type_names)

    def __getattr__(self, attr: str) -> Optional[NounEntity]:
        if attr.startswith("_"):
            raise AttributeError(attr)
        if attr in self._type_names:
            return self._entities.get(attr)
        return None

    def __getitem__(self, attr: str) -> Optional[NounEntity]:
        return self.__getattr__(attr)

    def __repr__(self) -> str:
        return f"DomainNamespace({self.name!r}, {list(self._type_names)!r})"


class TenantContext(UniversalContext):
    """UniversalContext bound to one tenant and one provider.

    Attributes:
        tenant: Tenant identifier
        context: Tenant context URL
        mode: Backend kind
        provider: The tenant's own provider instance
        namespaces: Domain namespaces by name
    """

    def __init__(
        self,
        tenant: str,
        context: str,
        provider: NounProvider,
        schemas: SchemaRegistry,
        namespaces: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        super().__init__(backend=FixedBackend(provider), schemas=schemas)
        self.tenant = tenant
        self.context = context
        self.mode = provider.kind
        self.provider = provider
        self.namespaces: Dict[str, DomainNamespace] = {
            name: DomainNamespace(name, self.entities, types)
            for name, types in (namespaces or {}).items()
        }

    def __getattr__(self, name: str) -> Any:
        if name in THENABLE_NAMES:
            return None
        if name.startswith("_"):
            raise AttributeError(name)
        namespaces = self.__dict__.get("namespaces", {})
        if name in namespaces:
            return namespaces[name]
        return self.entities.get(name)

    def __repr__(self) -> str:
        return f"TenantContext(tenant={self.tenant!r}, mode={self.mode!r})"

    async def close(self) -> None:
        await self.provider.close()


def create_tenant(
    tenant: str,
    mode: str = ProviderKind.MEMORY.value,
    api_key: Optional[str] = None,
    endpoint: Optional[str] = None,
    namespaces: Optional[Mapping[str, Iterable[str]]] = None,
    data_dir: Optional[str] = None,
    schemas: Optional[SchemaRegistry] = None,
    settings: Optional[Settings] = None,
) -> TenantContext:
    """Create an isolated context for one tenant.

    Args:
        tenant: Tenant identifier (letters, digits, '-', '_', '.')
        mode: memory, local or remote
        api_key: Remote bearer credential (defaults to NOUNKIT_API_KEY)
        endpoint: Remote base URL; the tenant is appended as /~{tenant}
        namespaces: Domain name -> entity type names
        data_dir: Local backend directory
        schemas: Entity types to expose (process-wide registry by default)
        settings: Settings override (read from the environment by default)

    Returns:
        TenantContext with its own provider

    Raises:
        NounKitError: If the tenant identifier is invalid
        InvalidEndpointError: If the remote base URL is malformed
    """
    if not tenant or not _TENANT_RE.match(tenant):
        raise NounKitError(f"Invalid tenant identifier: {tenant!r}", code="INVALID_TENANT")
    settings = settings or Settings()
    context = f"{settings.context_base.rstrip('/')}/~{tenant}"

    kind = ProviderKind(mode)
    provider: NounProvider
    if kind == ProviderKind.REMOTE:
        base = validate_endpoint(endpoint if endpoint is not None else settings.remote_base)
        provider = RemoteNounProvider(
            f"{base.rstrip('/')}/~{tenant}",
            api_key=api_key if api_key is not None else settings.api_key,
            context=context,
            timeout=settings.timeout,
        )
    elif kind == ProviderKind.LOCAL:
        provider = LocalNounProvider(
            data_dir or settings.data_dir,
            context=context,
            journal=settings.journal,
        )
    else:
        provider = MemoryNounProvider(context=context)

    logger.debug("Created tenant context", extra={"tenant": tenant, "backend": provider.kind})
    return TenantContext(
        tenant=tenant,
        context=context,
        provider=provider,
        schemas=schemas if schemas is not None else get_registry(),
        namespaces=namespaces,
    )
