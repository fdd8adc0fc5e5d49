"""
Collaborator interfaces (Protocols).

Services depend on these rather than on concrete implementations; the
concrete adapter is wired at construction time.
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ClockSource(Protocol):
    """Supplies the current instant (timezone-aware UTC)."""

    def now(self) -> datetime: ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Fire-and-forget delivery of lifecycle events (push, email, ...)."""

    async def dispatch(self, event: Any) -> None: ...
