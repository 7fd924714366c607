"""
Ordered before/after hook chains per (entity type, verb).

Invariants:
    - Hooks run in registration order (FIFO), one at a time
    - Removing one registration never reorders or removes another, even
      when the same function was registered twice
    - A before-hook returning a dict merges it over the candidate payload;
      returning None leaves the payload unchanged
    - Exceptions raised by hooks propagate unchanged

Example:
    >>> hooks = HookRegistry()
    >>> off = hooks.register("Contact", BEFORE, "create", lambda data: {"source": "api"})
    >>> await hooks.run_before("Contact", "create", {"name": "Alice"})
    {'name': 'Alice', 'source': 'api'}
    >>> off()
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Mapping, Tuple

logger = logging.getLogger(__name__)

BEFORE = "before"
AFTER = "after"

Hook = Callable[..., Any]
Unsubscribe = Callable[[], None]


class _Registration:
    """Identity wrapper so duplicate functions get independent handles."""

    __slots__ = ("fn",)

    def __init__(self, fn: Hook) -> None:
        self.fn = fn


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class HookRegistry:
    """Hook chains keyed by (type name, point, verb)."""

    def __init__(self) -> None:
        self._chains: Dict[Tuple[str, str, str], List[_Registration]] = defaultdict(list)

    def register(self, type_name: str, point: str, verb: str, fn: Hook) -> Unsubscribe:
        """Append a hook to a chain.

        Args:
            type_name: Entity type name
            point: BEFORE or AFTER
            verb: Verb action name (create, qualify, ...)
            fn: Sync or async callable

        Returns:
            Callable that removes exactly this registration
        """
        if point not in (BEFORE, AFTER):
            raise ValueError(f"Unknown hook point: {point}")
        key = (type_name, point, verb)
        registration = _Registration(fn)
        self._chains[key].append(registration)

        def unsubscribe() -> None:
            chain = self._chains.get(key, [])
            for i, existing in enumerate(chain):
                if existing is registration:
                    del chain[i]
                    break

        return unsubscribe

    def count(self, type_name: str, point: str, verb: str) -> int:
        return len(self._chains.get((type_name, point, verb), []))

    async def run_before(
        self,
        type_name: str,
        verb: str,
        payload: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Run the before chain, threading the payload through each hook."""
        current = dict(payload)
        for registration in list(self._chains.get((type_name, BEFORE, verb), [])):
            result = await _call(registration.fn, current)
            if isinstance(result, Mapping):
                current = {**current, **result}
        return current

    async def run_after(
        self,
        type_name: str,
        verb: str,
        instance: Mapping[str, Any],
        registry: Any,
    ) -> None:
        """Run the after chain with the finalized instance and registry handle."""
        for registration in list(self._chains.get((type_name, AFTER, verb), [])):
            await _call(registration.fn, instance, registry)

    def clear(self) -> None:
        self._chains.clear()
