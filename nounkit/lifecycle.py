"""
Process-wide backend lifecycle.

The LifecycleController is the single cell holding the active provider
for the process-wide context. States and transitions:

    Uninitialized --init()--> Initialized
    Initialized   --reset()--> Uninitialized
    Initialized   --reconfigure()--> Initialized (new backend)
    Uninitialized --first access in lazy mode--> Initialized (memory)

Backend selection in init():
    - mode given explicitly: that backend
    - endpoint and api_key: remote
    - endpoint without api_key: memory, plus a warning and a status alert
    - nothing: memory

Invariants:
    - init() twice without reset() raises AlreadyInitializedError
    - reconfigure() never raises AlreadyInitializedError
    - A non-empty endpoint is validated before any provider is built
    - reset() drops the provider and every event subscription, and closes
      the outgoing provider
    - Lazy initialization happens at most once per reset cycle

Example:
    >>> ctx = init(endpoint="https://db.headless.ly/~acme", api_key="key_...")
    >>> await ctx.Contact.find()
    >>> reconfigure(mode="memory")
    >>> reset()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Set
from urllib.parse import urlparse

from .config import Settings
from .context import EPHEMERAL_ALERT, UniversalContext
from .engine.events import EventBus
from .errors import AlreadyInitializedError, InvalidEndpointError, NotInitializedError
from .providers.base import NounProvider, ProviderKind
from .providers.local import LocalNounProvider
from .providers.memory import MemoryNounProvider
from .providers.remote import RemoteNounProvider
from .schema.registry import get_registry

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_ALERT = (
    "Endpoint configured without an API key; falling back to the ephemeral in-memory backend"
)


@dataclass(frozen=True)
class InitOptions:
    """Options accepted by init() and reconfigure().

    Attributes left as None fall back to NOUNKIT_* environment settings.

    Attributes:
        endpoint: Remote backend URL
        api_key: Remote bearer credential
        mode: memory, local or remote (derived from the other options when None)
        data_dir: Directory for the local backend
        context: Context URL stamped on instances
        lazy: Defer initialization until first access
        timeout: Remote request timeout in seconds
    """

    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    mode: Optional[str] = None
    data_dir: Optional[str] = None
    context: Optional[str] = None
    lazy: bool = False
    timeout: Optional[float] = None


def validate_endpoint(endpoint: Any) -> str:
    """Check that an endpoint is an absolute http(s) URL.

    Raises:
        InvalidEndpointError: If empty, relative or using another scheme
    """
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise InvalidEndpointError(endpoint, "endpoint must be a non-empty URL")
    parsed = urlparse(endpoint.strip())
    if parsed.scheme not in ("http", "https"):
        raise InvalidEndpointError(endpoint, "scheme must be http or https")
    if not parsed.netloc:
        raise InvalidEndpointError(endpoint, "URL must be absolute")
    return endpoint.strip()


class LifecycleController:
    """Singleton state machine for the process-wide backend.

    Thread-safety:
        Transitions take an internal lock so concurrent init() calls
        cannot both succeed.

    Attributes:
        events: Event bus of the process-wide context; cleared on reset
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings
        self._provider: Optional[NounProvider] = None
        self._lazy = False
        self._lazy_options: Optional[InitOptions] = None
        self._alerts: List[str] = []
        self._lock = threading.RLock()
        self._pending_closes: Set["asyncio.Task[None]"] = set()
        self.events = EventBus()

    @property
    def settings(self) -> Settings:
        return self._settings if self._settings is not None else Settings()

    @property
    def is_initialized(self) -> bool:
        return self._provider is not None

    @property
    def is_lazy(self) -> bool:
        return self._lazy

    @property
    def alerts(self) -> List[str]:
        alerts = list(self._alerts)
        if self._provider is not None and self._provider.kind == ProviderKind.MEMORY.value:
            if EPHEMERAL_ALERT not in alerts:
                alerts.append(EPHEMERAL_ALERT)
        return alerts

    def init(self, options: Optional[InitOptions] = None, **kwargs: Any) -> Optional[NounProvider]:
        """Initialize the backend.

        Args:
            options: Init options (keyword arguments override its fields)
            **kwargs: InitOptions fields

        Returns:
            The active provider, or None when lazy mode deferred initialization

        Raises:
            AlreadyInitializedError: If already initialized
            InvalidEndpointError: If the endpoint is malformed
        """
        options = replace(options or InitOptions(), **kwargs)
        with self._lock:
            if self._provider is not None:
                raise AlreadyInitializedError()
            if options.endpoint is not None:
                validate_endpoint(options.endpoint)
            if options.lazy:
                self._lazy = True
                self._lazy_options = replace(options, lazy=False)
                logger.debug("Lazy initialization enabled")
                return None
            self._provider = self._build_provider(options)
        logger.info(
            "nounkit initialized",
            extra={"backend": self._provider.kind, "context": self._provider.context},
        )
        return self._provider

    def reset(self) -> None:
        """Return to Uninitialized, dropping the provider and all subscriptions.

        The outgoing provider is closed: on the running event loop when
        there is one (see ``pending_closes``), otherwise right away.
        """
        with self._lock:
            outgoing = self._detach()
        if outgoing is not None:
            self._schedule_close(outgoing)
        logger.debug("nounkit reset")

    async def areset(self) -> None:
        """reset() that waits for the outgoing provider to close."""
        with self._lock:
            outgoing = self._detach()
        if outgoing is not None:
            await outgoing.close()
        logger.debug("nounkit reset")

    def reconfigure(self, options: Optional[InitOptions] = None, **kwargs: Any) -> Optional[NounProvider]:
        """reset() followed by init() as one transition."""
        with self._lock:
            self.reset()
            return self.init(options, **kwargs)

    async def areconfigure(
        self,
        options: Optional[InitOptions] = None,
        **kwargs: Any,
    ) -> Optional[NounProvider]:
        """reconfigure() that waits for the outgoing provider to close."""
        outgoing: Optional[NounProvider] = None
        try:
            with self._lock:
                outgoing = self._detach()
                return self.init(options, **kwargs)
        finally:
            if outgoing is not None:
                await outgoing.close()

    @property
    def pending_closes(self) -> Set["asyncio.Task[None]"]:
        """Close tasks scheduled by reset() that have not finished yet."""
        return set(self._pending_closes)

    def _detach(self) -> Optional[NounProvider]:
        outgoing = self._provider
        self._provider = None
        self._lazy = False
        self._lazy_options = None
        self._alerts = []
        self.events.clear()
        return outgoing

    def _schedule_close(self, provider: NounProvider) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = asyncio.new_event_loop()
            try:
                loop.run_until_complete(provider.close())
            except RuntimeError as e:
                # Resources bound to an event loop that is already gone
                logger.warning(
                    "Could not close replaced provider",
                    extra={"backend": provider.kind, "error": str(e)},
                )
            finally:
                loop.close()
            return
        task = loop.create_task(provider.close())
        self._pending_closes.add(task)
        task.add_done_callback(self._close_done)

    def _close_done(self, task: "asyncio.Task[None]") -> None:
        self._pending_closes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Closing replaced provider failed",
                exc_info=task.exception(),
            )

    def enable_lazy(self) -> None:
        """Initialize with the default backend on first access."""
        with self._lock:
            self._lazy = True

    def get_active(self) -> Optional[NounProvider]:
        """Active provider; performs the deferred init in lazy mode."""
        if self._provider is None and self._lazy:
            with self._lock:
                if self._provider is None:
                    self._provider = self._build_provider(self._lazy_options or InitOptions())
                    logger.info(
                        "nounkit lazily initialized",
                        extra={"backend": self._provider.kind},
                    )
        return self._provider

    def ensure_initialized(self) -> NounProvider:
        """Active provider, or NotInitializedError when there is none.

        Raises:
            NotInitializedError: If init() was never called outside lazy mode
        """
        provider = self.get_active()
        if provider is None:
            raise NotInitializedError()
        return provider

    async def close(self) -> None:
        """Close the active provider and return to Uninitialized."""
        await self.areset()

    def _build_provider(self, options: InitOptions) -> NounProvider:
        settings = self.settings
        endpoint = options.endpoint if options.endpoint is not None else (settings.endpoint or None)
        api_key = options.api_key if options.api_key is not None else settings.api_key
        context = options.context or settings.default_context
        mode = options.mode
        self._alerts = []
        if endpoint:
            endpoint = validate_endpoint(endpoint)

        if mode is None:
            if endpoint and api_key:
                mode = ProviderKind.REMOTE.value
            else:
                if endpoint:
                    logger.warning(MISSING_CREDENTIAL_ALERT, extra={"endpoint": endpoint})
                    self._alerts.append(MISSING_CREDENTIAL_ALERT)
                mode = ProviderKind.MEMORY.value

        kind = ProviderKind(mode)
        if kind == ProviderKind.REMOTE:
            if not endpoint:
                raise InvalidEndpointError(endpoint, "remote mode requires an endpoint")
            return RemoteNounProvider(
                endpoint,
                api_key=api_key,
                context=context,
                timeout=options.timeout or settings.timeout,
            )
        if kind == ProviderKind.LOCAL:
            return LocalNounProvider(
                options.data_dir or settings.data_dir,
                context=context,
                journal=settings.journal,
            )
        return MemoryNounProvider(context=context)


# Global controller and context
_controller: Optional[LifecycleController] = None
_context: Optional[UniversalContext] = None
_global_lock = threading.Lock()


def get_controller() -> LifecycleController:
    """Process-wide lifecycle controller."""
    global _controller
    with _global_lock:
        if _controller is None:
            _controller = LifecycleController()
        return _controller


def get_context() -> UniversalContext:
    """Process-wide universal context over the global schema registry."""
    global _context
    controller = get_controller()
    with _global_lock:
        if _context is None:
            _context = UniversalContext(
                backend=controller,
                schemas=get_registry(),
                events=controller.events,
            )
        return _context


def init(options: Optional[InitOptions] = None, **kwargs: Any) -> UniversalContext:
    """Initialize the process-wide backend and return the context."""
    get_controller().init(options, **kwargs)
    return get_context()


def reconfigure(options: Optional[InitOptions] = None, **kwargs: Any) -> UniversalContext:
    """Swap the process-wide backend and return the context."""
    get_controller().reconfigure(options, **kwargs)
    return get_context()


def reset() -> None:
    get_controller().reset()


async def areset() -> None:
    await get_controller().areset()


async def areconfigure(options: Optional[InitOptions] = None, **kwargs: Any) -> UniversalContext:
    """Swap the process-wide backend, waiting for the old one to close."""
    await get_controller().areconfigure(options, **kwargs)
    return get_context()


def enable_lazy() -> None:
    get_controller().enable_lazy()


def is_initialized() -> bool:
    return get_controller().is_initialized


def get_active() -> Optional[NounProvider]:
    return get_controller().get_active()
