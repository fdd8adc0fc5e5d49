"""
Service wiring.

``build_container`` registers every service the API and the scheduler
need, sharing one session factory, one clock and one event bus.

Usage:
    container = build_container(settings, session_factory=factory, clock=FrozenClock(t0))
    gate = container.get("review_gate")
"""

import logging
from typing import Optional

from ..domain.events import EventBus
from ..domain.interfaces import ClockSource
from ..domain.subscribers import TransitionLogSubscriber
from .clock import SystemClock
from .config import Settings, get_settings
from .container import ServiceContainer
from .database import SessionFactory

logger = logging.getLogger(__name__)


def build_container(
    settings: Optional[Settings] = None,
    session_factory: Optional[SessionFactory] = None,
    clock: Optional[ClockSource] = None,
    event_bus: Optional[EventBus] = None,
) -> ServiceContainer:
    """
    Register all application services.

    Args:
        settings: Application settings (defaults to get_settings())
        session_factory: Session factory; None uses the global engine
        clock: Clock source; None uses the wall clock
        event_bus: Notification bus; None creates one with the log subscriber
    """
    container = ServiceContainer()
    settings = settings or get_settings()

    if event_bus is None:
        event_bus = EventBus()
        TransitionLogSubscriber().register(event_bus)

    container.register_instance("settings", settings)
    container.register_instance("session_factory", session_factory)
    container.register_instance("clock", clock or SystemClock())
    container.register_instance("event_bus", event_bus)

    # ========================================================================
    # Member-facing services
    # ========================================================================

    def create_circle_service(c):
        from ..services.circle_service import CircleService

        return CircleService(c.get("session_factory"), c.get("clock"))

    container.register("circles", create_circle_service)

    def create_will_service(c):
        from ..services.will_service import WillService

        return WillService(
            c.get("session_factory"),
            c.get("clock"),
            default_timezone=c.get("settings").default_timezone,
        )

    container.register("wills", create_will_service)

    def create_check_in_service(c):
        from ..services.check_in_service import CheckInService

        return CheckInService(c.get("session_factory"), c.get("clock"))

    container.register("check_ins", create_check_in_service)

    def create_review_gate(c):
        from ..services.review_gate import ReviewGate

        return ReviewGate(c.get("session_factory"), c.get("clock"))

    container.register("review_gate", create_review_gate)

    # ========================================================================
    # Background
    # ========================================================================

    def create_scheduler(c):
        from ..services.lifecycle_scheduler import LifecycleScheduler

        return LifecycleScheduler(
            c.get("session_factory"),
            c.get("clock"),
            notifier=c.get("event_bus"),
            interval_seconds=c.get("settings").scheduler_interval_seconds,
        )

    container.register("scheduler", create_scheduler)

    logger.info("Services registered")
    return container
