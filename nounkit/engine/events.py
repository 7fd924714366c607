"""
Process-wide event bus for entity mutations.

Every create/update/delete and custom verb publishes one NounEvent.
Subscribers may filter by entity type and/or action.

Invariants:
    - Subscribers are called in subscription order
    - A subscriber that raises is logged and skipped; delivery continues
      and the triggering operation is unaffected
    - clear() drops every subscription (used by lifecycle reset)
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..providers.base import generate_sqid, now_iso

logger = logging.getLogger(__name__)

Subscriber = Callable[["NounEvent"], Any]


@dataclass(frozen=True)
class NounEvent:
    """One mutation notification.

    Attributes:
        id: Event id (evt_...)
        type: Qualified event name (Contact.qualified)
        entity_type: Entity type name
        entity_id: Affected instance id
        action: Verb action (qualify)
        event: Past participle (qualified)
        instance: Instance after the mutation (before it, for delete)
        context: Tenant context URL
        timestamp: ISO-8601 UTC
    """

    entity_type: str
    entity_id: str
    action: str
    event: str
    instance: Dict[str, Any] = field(default_factory=dict)
    context: Optional[str] = None
    id: str = field(default_factory=lambda: f"evt_{generate_sqid(12)}")
    timestamp: str = field(default_factory=now_iso)

    @property
    def type(self) -> str:
        return f"{self.entity_type}.{self.event}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "$id": self.id,
            "$type": self.type,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "verb": self.action,
            "event": self.event,
            "instance": self.instance,
            "context": self.context,
            "timestamp": self.timestamp,
        }


@dataclass
class _Subscription:
    callback: Subscriber
    type: Optional[str] = None
    action: Optional[str] = None

    def accepts(self, event: NounEvent) -> bool:
        if self.type is not None and self.type != event.entity_type:
            return False
        if self.action is not None and self.action not in (event.action, event.event):
            return False
        return True


class EventBus:
    """Ordered publish/subscribe channel with per-listener error isolation.

    Example:
        >>> bus = EventBus()
        >>> off = bus.subscribe(print, type="Contact", action="qualify")
        >>> await bus.publish(NounEvent("Contact", "contact_1", "qualify", "qualified"))
        >>> off()
    """

    def __init__(self) -> None:
        self._subscriptions: List[_Subscription] = []

    def subscribe(
        self,
        callback: Subscriber,
        type: Optional[str] = None,
        action: Optional[str] = None,
    ) -> Callable[[], None]:
        """Register a listener.

        Args:
            callback: Sync or async callable receiving the NounEvent
            type: Only events for this entity type
            action: Only this verb (action or past-participle form)

        Returns:
            Callable that removes this subscription
        """
        subscription = _Subscription(callback=callback, type=type, action=action)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            for i, existing in enumerate(self._subscriptions):
                if existing is subscription:
                    del self._subscriptions[i]
                    break

        return unsubscribe

    async def publish(self, event: NounEvent) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.accepts(event):
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event subscriber failed",
                    extra={"event_type": event.type, "entity_id": event.entity_id},
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def clear(self) -> None:
        self._subscriptions.clear()
