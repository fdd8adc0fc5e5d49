"""Lifecycle events and the in-process bus that fans them out.

The scheduler publishes one event per applied change after its write has
committed. Handlers subscribe to an event class or to any of its bases,
so subscribing to ``LifecycleEvent`` receives everything.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Type

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LifecycleEvent:
    will_id: int
    old_status: str
    new_status: str
    occurred_at: datetime = field(default_factory=_utcnow)

    def describe(self) -> str:
        return f"Will {self.will_id}: {self.old_status} -> {self.new_status}"


@dataclass(frozen=True)
class WillStatusChanged(LifecycleEvent):
    """A Will moved forward one lifecycle step."""


@dataclass(frozen=True)
class EndRoomStatusChanged(LifecycleEvent):
    """The cached End Room status of a circle Will changed."""

    def describe(self) -> str:
        return f"Will {self.will_id} End Room: {self.old_status} -> {self.new_status}"


Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Async fan-out keyed by event class.

    Handlers registered for a base class also see its subclasses. Handler
    errors are logged and never reach the publisher.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type, List[Handler]] = {}

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def handlers_for(self, event: Any) -> List[Handler]:
        found: List[Handler] = []
        for cls in type(event).__mro__:
            found.extend(self._handlers.get(cls, ()))
        return found

    async def publish(self, event: Any) -> None:
        for handler in self.handlers_for(event):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "%s handler %s failed",
                    type(event).__name__,
                    getattr(handler, "__qualname__", repr(handler)),
                )

    async def dispatch(self, event: Any) -> None:
        """Satisfies ``NotificationDispatcher`` so the scheduler can notify through the bus."""
        await self.publish(event)
