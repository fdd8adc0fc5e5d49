"""
Service container.

Holds the services of one application instance. Factories are called
lazily with the container and their result is cached, so services share
the same session factory, clock and event bus. There is no process-wide
container: the app keeps its own on ``app.state.container``.

Usage:
    container = ServiceContainer()
    container.register_instance("clock", FrozenClock())
    container.register("check_ins", lambda c: CheckInService(clock=c.get("clock")))

    check_ins = container.get("check_ins")
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Factory = Callable[["ServiceContainer"], Any]


class ServiceContainer:
    def __init__(self) -> None:
        self._factories: Dict[str, Factory] = {}
        self._instances: Dict[str, Any] = {}

    def register(self, name: str, factory: Factory) -> None:
        """Register a lazy factory; replaces any previous registration under ``name``."""
        self._factories[name] = factory
        self._instances.pop(name, None)

    def register_instance(self, name: str, instance: Any) -> None:
        """Register a ready-made object; tests use this to swap one service out."""
        self._factories.pop(name, None)
        self._instances[name] = instance

    def get(self, name: str) -> Any:
        if name in self._instances:
            return self._instances[name]
        try:
            factory = self._factories[name]
        except KeyError:
            raise KeyError(f"Service '{name}' is not registered") from None

        instance = factory(self)
        self._instances[name] = instance
        logger.debug(f"Built service {name}: {type(instance).__name__}")
        return instance

    def has(self, name: str) -> bool:
        return name in self._factories or name in self._instances

    def names(self) -> List[str]:
        return sorted(set(self._factories) | set(self._instances))
