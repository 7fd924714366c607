"""
Unit tests for the lifecycle controller.

Tests cover:
- init / reset / reconfigure transitions
- Backend selection and credential fallback
- Endpoint validation
- Lazy initialization
- Environment defaults
"""

import asyncio

import pytest

import nounkit
from nounkit.config import Settings
from nounkit.errors import AlreadyInitializedError, InvalidEndpointError, NotInitializedError
from nounkit.lifecycle import (
    MISSING_CREDENTIAL_ALERT,
    InitOptions,
    LifecycleController,
    validate_endpoint,
)
from nounkit.providers.local import LocalNounProvider
from nounkit.providers.memory import MemoryNounProvider
from nounkit.providers.remote import RemoteNounProvider


class TestTransitions:
    """Tests for the controller state machine."""

    def test_init_defaults_to_memory(self):
        """No options select the in-memory backend."""
        controller = LifecycleController()

        provider = controller.init()

        assert isinstance(provider, MemoryNounProvider)
        assert controller.is_initialized
        assert controller.get_active() is provider

    def test_init_twice_raises(self):
        """A second init without reset fails."""
        controller = LifecycleController()
        controller.init()

        with pytest.raises(AlreadyInitializedError):
            controller.init()

    def test_reset_allows_init_again(self):
        """reset returns to uninitialized."""
        controller = LifecycleController()
        first = controller.init()

        controller.reset()

        assert not controller.is_initialized
        assert controller.get_active() is None
        assert controller.init() is not first

    def test_reconfigure_never_raises_already_initialized(self):
        """reconfigure swaps the backend in one call."""
        controller = LifecycleController()
        controller.init()

        provider = controller.reconfigure(endpoint="https://db.example.com/~acme", api_key="key_1")

        assert isinstance(provider, RemoteNounProvider)
        assert controller.get_active() is provider

    def test_reconfigure_from_uninitialized(self):
        """reconfigure also works before any init."""
        controller = LifecycleController()

        assert isinstance(controller.reconfigure(), MemoryNounProvider)

    def test_reset_clears_subscriptions(self):
        """reset tears down every event subscription."""
        controller = LifecycleController()
        controller.init()
        controller.events.subscribe(lambda e: None)

        controller.reset()

        assert controller.events.subscriber_count == 0


class TestBackendSelection:
    """Tests for backend choice in init()."""

    def test_endpoint_and_key_select_remote(self):
        """Endpoint plus credential selects the remote backend."""
        controller = LifecycleController()

        provider = controller.init(endpoint="https://db.example.com/~acme", api_key="key_1")

        assert isinstance(provider, RemoteNounProvider)
        assert provider.endpoint == "https://db.example.com/~acme"
        assert provider.api_key == "key_1"

    def test_endpoint_without_key_falls_back(self, caplog):
        """Endpoint without credential uses memory and warns."""
        controller = LifecycleController()

        with caplog.at_level("WARNING"):
            provider = controller.init(endpoint="https://db.example.com")

        assert isinstance(provider, MemoryNounProvider)
        assert MISSING_CREDENTIAL_ALERT in controller.alerts
        assert any(MISSING_CREDENTIAL_ALERT in r.getMessage() for r in caplog.records)

    def test_local_mode(self, tmp_path):
        """mode=local builds the SQLite backend in data_dir."""
        controller = LifecycleController()

        provider = controller.init(mode="local", data_dir=str(tmp_path))

        assert isinstance(provider, LocalNounProvider)
        assert provider.data_dir == tmp_path

    def test_options_object_with_overrides(self):
        """Keyword arguments override an InitOptions instance."""
        controller = LifecycleController()
        options = InitOptions(mode="memory", context="https://headless.ly/~acme")

        provider = controller.init(options, context="https://headless.ly/~beta")

        assert provider.context == "https://headless.ly/~beta"

    def test_environment_defaults(self):
        """Settings supply endpoint and credential when options omit them."""
        settings = Settings(endpoint="https://db.example.com/~env", api_key="key_env")
        controller = LifecycleController(settings=settings)

        provider = controller.init()

        assert isinstance(provider, RemoteNounProvider)
        assert provider.endpoint == "https://db.example.com/~env"

    def test_explicit_options_override_environment(self):
        """Explicit options win over settings."""
        settings = Settings(endpoint="https://db.example.com/~env", api_key="key_env")
        controller = LifecycleController(settings=settings)

        provider = controller.init(mode="memory")

        assert isinstance(provider, MemoryNounProvider)

    def test_env_variables_read(self, monkeypatch):
        """NOUNKIT_* variables are picked up by Settings."""
        monkeypatch.setenv("NOUNKIT_ENDPOINT", "https://db.example.com/~vars")
        monkeypatch.setenv("NOUNKIT_API_KEY", "key_vars")

        provider = LifecycleController().init()

        assert isinstance(provider, RemoteNounProvider)
        assert provider.api_key == "key_vars"


class TestEndpointValidation:
    """Tests for endpoint validation."""

    @pytest.mark.parametrize(
        "endpoint",
        ["", "   ", "db.example.com", "/relative/path", "ftp://db.example.com", "https://"],
    )
    def test_invalid_endpoints(self, endpoint):
        """Empty, relative and non-http endpoints fail fast."""
        controller = LifecycleController()

        with pytest.raises(InvalidEndpointError):
            controller.init(endpoint=endpoint, api_key="key_1")

        assert not controller.is_initialized

    def test_valid_endpoint(self):
        """http and https absolute URLs pass."""
        assert validate_endpoint("http://localhost:8787") == "http://localhost:8787"
        assert validate_endpoint("https://db.headless.ly/~acme") == "https://db.headless.ly/~acme"

    def test_remote_mode_requires_endpoint(self):
        """mode=remote without any endpoint is rejected."""
        with pytest.raises(InvalidEndpointError):
            LifecycleController().init(mode="remote", api_key="key_1")


class TestLazyMode:
    """Tests for lazy initialization."""

    def test_lazy_option_defers_init(self):
        """init(lazy=True) initializes on first access."""
        controller = LifecycleController()

        assert controller.init(lazy=True) is None
        assert not controller.is_initialized

        provider = controller.get_active()

        assert isinstance(provider, MemoryNounProvider)
        assert controller.is_initialized
        assert controller.get_active() is provider

    def test_enable_lazy(self):
        """enable_lazy() makes the first access initialize."""
        controller = LifecycleController()
        controller.enable_lazy()

        assert controller.get_active() is not None
        with pytest.raises(AlreadyInitializedError):
            controller.init()

    def test_no_lazy_no_provider(self):
        """Without lazy mode nothing initializes implicitly."""
        assert LifecycleController().get_active() is None

    def test_ensure_initialized(self):
        """ensure_initialized raises before init and returns the provider after."""
        controller = LifecycleController()

        with pytest.raises(NotInitializedError):
            controller.ensure_initialized()

        provider = controller.init()
        assert controller.ensure_initialized() is provider

    @pytest.mark.asyncio
    async def test_close_resets(self, tmp_path):
        """close() releases the provider and returns to uninitialized."""
        controller = LifecycleController()
        controller.init(mode="local", data_dir=str(tmp_path))

        await controller.close()

        assert not controller.is_initialized


class TestModuleApi:
    """Tests for the process-wide functions."""

    @pytest.mark.asyncio
    async def test_init_returns_global_context(self):
        """init() returns the process-wide context."""
        ctx = nounkit.init()
        ctx.define("Contact", {"name": "string!"})

        alice = await ctx.Contact.create({"name": "Alice"})

        assert nounkit.is_initialized()
        assert ctx is nounkit.get_context()
        assert (await nounkit.get_context().Contact.get(alice["$id"]))["name"] == "Alice"

    def test_init_twice_raises(self):
        """The module-level init enforces single initialization."""
        nounkit.init()

        with pytest.raises(AlreadyInitializedError):
            nounkit.init()

    @pytest.mark.asyncio
    async def test_reconfigure_swaps_data(self):
        """reconfigure gives a fresh backend."""
        ctx = nounkit.init()
        ctx.define("Contact", {"name": "string!"})
        await ctx.Contact.create({"name": "Alice"})

        ctx = nounkit.reconfigure(mode="memory")

        assert await ctx.Contact.count() == 0

    @pytest.mark.asyncio
    async def test_access_before_init_raises(self):
        """Using an entity before init outside lazy mode fails clearly."""
        ctx = nounkit.get_context()
        ctx.define("Contact", {"name": "string!"})

        with pytest.raises(NotInitializedError):
            await ctx.Contact.create({"name": "Alice"})

    @pytest.mark.asyncio
    async def test_lazy_first_access(self):
        """enable_lazy() initializes on first entity operation."""
        nounkit.enable_lazy()
        ctx = nounkit.get_context()
        ctx.define("Contact", {"name": "string!"})

        assert not nounkit.is_initialized()
        await ctx.Contact.create({"name": "Alice"})

        assert nounkit.is_initialized()
        assert isinstance(nounkit.get_active(), MemoryNounProvider)

    @pytest.mark.asyncio
    async def test_reset_drops_global_subscriptions(self):
        """reset() removes subscriptions made through the context."""
        ctx = nounkit.init()
        ctx.define("Contact", {"name": "string!"})
        received = []
        ctx.events.subscribe(received.append)

        nounkit.reset()
        nounkit.init()
        await ctx.Contact.create({"name": "Alice"})

        assert received == []


class TestLazyTriggers:
    """Tests for which context operations start a lazy backend."""

    def test_entity_lookup_initializes(self):
        """Looking up an entity type initializes the backend."""
        nounkit.enable_lazy()
        ctx = nounkit.get_context()
        ctx.define("Contact", {"name": "string!"})

        assert ctx.Contact is not None
        assert nounkit.is_initialized()

    def test_item_lookup_initializes(self):
        """ctx["Type"] initializes too, even for unknown names."""
        nounkit.enable_lazy()

        assert nounkit.get_context()["Unicorn"] is None
        assert nounkit.is_initialized()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["search", "fetch", "do"])
    async def test_cross_type_operations_initialize(self, operation):
        """search, fetch and do initialize even when they find nothing."""
        nounkit.enable_lazy()
        ctx = nounkit.get_context()

        if operation == "search":
            assert await ctx.search("Unicorn") == []
        elif operation == "fetch":
            assert await ctx.fetch("Unicorn", "unicorn_1") is None
        else:
            assert await ctx.do(lambda registry: registry.names()) == []

        assert nounkit.is_initialized()

    @pytest.mark.asyncio
    async def test_status_does_not_initialize(self):
        """status() reports a lazy backend without starting it."""
        nounkit.enable_lazy()

        status = await nounkit.get_context().status()

        assert status["initialized"] is False
        assert status["backend"] is None
        assert not nounkit.is_initialized()

    def test_define_does_not_initialize(self):
        """Declaring types alone leaves the backend untouched."""
        nounkit.enable_lazy()
        nounkit.get_context().define("Contact", {"name": "string!"})

        assert not nounkit.is_initialized()


class _ClosingProvider(MemoryNounProvider):
    """Memory provider that records close() calls."""

    def __init__(self):
        super().__init__()
        self.closed = 0

    async def close(self):
        self.closed += 1


class TestProviderRelease:
    """Tests for closing providers that are swapped out."""

    @pytest.mark.asyncio
    async def test_areconfigure_closes_remote_client(self):
        """Swapping away from a remote backend closes its HTTP client."""
        controller = LifecycleController()
        remote = controller.init(endpoint="https://db.example.com/~acme", api_key="key_1")
        client = remote._get_client()

        provider = await controller.areconfigure(mode="memory")

        assert isinstance(provider, MemoryNounProvider)
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_reconfigure_schedules_close(self):
        """The synchronous swap closes the outgoing client on the running loop."""
        controller = LifecycleController()
        remote = controller.init(endpoint="https://db.example.com/~acme", api_key="key_1")
        client = remote._get_client()

        controller.reconfigure(mode="memory")
        await asyncio.gather(*controller.pending_closes)

        assert client.is_closed
        assert controller.pending_closes == set()

    @pytest.mark.asyncio
    async def test_areset_closes_provider(self, monkeypatch):
        """areset() awaits close() on the outgoing provider."""
        controller = LifecycleController()
        provider = _ClosingProvider()
        monkeypatch.setattr(controller, "_build_provider", lambda options: provider)
        controller.init()

        await controller.areset()

        assert provider.closed == 1
        assert not controller.is_initialized

    def test_reset_without_loop_closes_provider(self, monkeypatch):
        """Outside an event loop reset() closes the provider right away."""
        controller = LifecycleController()
        provider = _ClosingProvider()
        monkeypatch.setattr(controller, "_build_provider", lambda options: provider)
        controller.init()

        controller.reset()

        assert provider.closed == 1

    @pytest.mark.asyncio
    async def test_module_areconfigure(self):
        """The process-wide areconfigure returns the context."""
        nounkit.init()

        ctx = await nounkit.areconfigure(mode="memory")

        assert ctx is nounkit.get_context()
        assert nounkit.is_initialized()
