"""Default event subscribers."""

import logging

from .events import EventBus, LifecycleEvent

logger = logging.getLogger(__name__)


class TransitionLogSubscriber:
    """Logs every lifecycle event.

    Push and email delivery live outside this service; this keeps a record
    of what they would have been told.
    """

    def register(self, bus: EventBus) -> None:
        bus.subscribe(LifecycleEvent, self.on_event)

    async def on_event(self, event: LifecycleEvent) -> None:
        logger.info(event.describe())
