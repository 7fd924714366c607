"""
Unit tests for hook chains and the event bus.

Tests cover:
- FIFO execution and payload threading
- Independent unsubscribe handles
- Async hooks
- Event filtering and subscriber error isolation
"""

import pytest

from nounkit.engine.events import EventBus, NounEvent
from nounkit.engine.hooks import AFTER, BEFORE, HookRegistry


class TestHookRegistry:
    """Tests for HookRegistry."""

    @pytest.mark.asyncio
    async def test_before_hooks_run_in_order(self):
        """Hooks run FIFO and see earlier transformations."""
        hooks = HookRegistry()
        seen = []

        def first(data):
            seen.append(("first", dict(data)))
            return {"step": 1}

        def second(data):
            seen.append(("second", dict(data)))
            return {"step": 2, "extra": True}

        hooks.register("Contact", BEFORE, "create", first)
        hooks.register("Contact", BEFORE, "create", second)

        result = await hooks.run_before("Contact", "create", {"name": "Alice"})

        assert [name for name, _ in seen] == ["first", "second"]
        assert seen[1][1] == {"name": "Alice", "step": 1}
        assert result == {"name": "Alice", "step": 2, "extra": True}

    @pytest.mark.asyncio
    async def test_none_return_keeps_payload(self):
        """Returning None leaves the payload as is."""
        hooks = HookRegistry()
        hooks.register("Contact", BEFORE, "create", lambda data: None)

        result = await hooks.run_before("Contact", "create", {"name": "Alice"})

        assert result == {"name": "Alice"}

    @pytest.mark.asyncio
    async def test_async_hooks(self):
        """Coroutine hooks are awaited."""
        hooks = HookRegistry()

        async def enrich(data):
            return {"enriched": True}

        hooks.register("Contact", BEFORE, "create", enrich)

        assert (await hooks.run_before("Contact", "create", {}))["enriched"] is True

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_only_one(self):
        """Unsubscribing hook i leaves the others in order."""
        hooks = HookRegistry()
        calls = []
        handles = [
            hooks.register("Contact", BEFORE, "create", lambda data, i=i: calls.append(i))
            for i in range(4)
        ]

        handles[1]()
        await hooks.run_before("Contact", "create", {})

        assert calls == [0, 2, 3]

    @pytest.mark.asyncio
    async def test_same_function_registered_twice(self):
        """Duplicate registrations get independent handles."""
        hooks = HookRegistry()
        calls = []

        def hook(data):
            calls.append(1)

        off_first = hooks.register("Contact", BEFORE, "create", hook)
        hooks.register("Contact", BEFORE, "create", hook)

        off_first()
        off_first()
        await hooks.run_before("Contact", "create", {})

        assert calls == [1]
        assert hooks.count("Contact", BEFORE, "create") == 1

    @pytest.mark.asyncio
    async def test_after_hooks_receive_registry(self):
        """After-hooks get the instance and registry handle."""
        hooks = HookRegistry()
        received = []
        hooks.register("Contact", AFTER, "create", lambda inst, reg: received.append((inst, reg)))

        registry = object()
        await hooks.run_after("Contact", "create", {"$id": "contact_1"}, registry)

        assert received == [({"$id": "contact_1"}, registry)]

    @pytest.mark.asyncio
    async def test_hook_error_propagates(self):
        """Exceptions from hooks are not caught."""
        hooks = HookRegistry()

        def reject(data):
            raise PermissionError("nope")

        hooks.register("Contact", BEFORE, "create", reject)

        with pytest.raises(PermissionError, match="nope"):
            await hooks.run_before("Contact", "create", {})

    def test_invalid_point(self):
        """Only before and after are valid points."""
        with pytest.raises(ValueError):
            HookRegistry().register("Contact", "during", "create", lambda d: None)


class TestEventBus:
    """Tests for EventBus."""

    def _event(self, entity_type="Contact", action="qualify", event="qualified"):
        return NounEvent(entity_type=entity_type, entity_id="x_1", action=action, event=event)

    @pytest.mark.asyncio
    async def test_subscribe_all(self):
        """Unfiltered subscribers receive everything."""
        bus = EventBus()
        received = []
        bus.subscribe(received.append)

        await bus.publish(self._event())
        await bus.publish(self._event("Deal", "create", "created"))

        assert [e.type for e in received] == ["Contact.qualified", "Deal.created"]

    @pytest.mark.asyncio
    async def test_filter_by_type_and_action(self):
        """Type and action filters narrow delivery."""
        bus = EventBus()
        by_type, by_action, by_past = [], [], []
        bus.subscribe(by_type.append, type="Deal")
        bus.subscribe(by_action.append, action="qualify")
        bus.subscribe(by_past.append, action="qualified")

        await bus.publish(self._event())
        await bus.publish(self._event("Deal", "create", "created"))

        assert [e.entity_type for e in by_type] == ["Deal"]
        assert [e.action for e in by_action] == ["qualify"]
        assert [e.action for e in by_past] == ["qualify"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self):
        """A raising subscriber does not stop delivery to others."""
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        async def works(event):
            received.append(event)

        bus.subscribe(broken)
        bus.subscribe(works)

        await bus.publish(self._event())

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_and_clear(self):
        """Unsubscribe handles and clear() stop delivery."""
        bus = EventBus()
        received = []
        off = bus.subscribe(received.append)
        bus.subscribe(received.append)

        off()
        await bus.publish(self._event())
        bus.clear()
        await bus.publish(self._event())

        assert len(received) == 1
        assert bus.subscriber_count == 0

    def test_event_to_dict(self):
        """Events serialize with qualified type."""
        data = self._event().to_dict()

        assert data["$type"] == "Contact.qualified"
        assert data["$id"].startswith("evt_")
