"""Event dispatch contract between the orchestrator and its plugins.

Plugins receive an EventDispatcher at initialization and keep the
Subscription handles they registered, so cleanup removes only their own
listeners. EventBus is the in-process implementation.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from .shared.logging import get_logger

logger = get_logger(__name__)


class EventTypes:
    """Event names emitted by the orchestrator."""

    BEFORE_STACK_DEPLOY = "orchestrator:before:stack-deploy"
    PLUGIN_ERROR = "plugin:error"


@dataclass
class Event:
    """Event delivered to handlers."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    source: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[Event], Awaitable[None] | None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe, used to unsubscribe one listener."""

    event_type: str
    id: int


@runtime_checkable
class EventDispatcher(Protocol):
    """What a plugin needs from the orchestrator's event bus."""

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription: ...

    def unsubscribe(self, subscription: Subscription) -> bool: ...

    def remove_all_listeners(self, event_type: str) -> None: ...

    async def emit(
        self, event_type: str, data: dict[str, Any] | None = None, source: str | None = None
    ) -> None: ...


class EventBus:
    """In-process publish/subscribe dispatcher.

    Handlers may be plain functions or coroutines. A failing handler is
    logged and does not prevent delivery to the remaining handlers.
    """

    _instance: EventBus | None = None

    def __init__(self) -> None:
        self._handlers: dict[str, dict[int, EventHandler]] = {}
        self._ids = itertools.count(1)

    @classmethod
    def get_instance(cls) -> EventBus:
        """Get the process-wide bus."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the process-wide bus (tests only)."""
        cls._instance = None

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
        sub = Subscription(event_type=event_type, id=next(self._ids))
        self._handlers.setdefault(event_type, {})[sub.id] = handler
        return sub

    # Alias matching the orchestrator's naming
    on = subscribe

    def unsubscribe(self, subscription: Subscription) -> bool:
        handlers = self._handlers.get(subscription.event_type, {})
        return handlers.pop(subscription.id, None) is not None

    def remove_all_listeners(self, event_type: str) -> None:
        self._handlers.pop(event_type, None)

    def listener_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, {}))

    async def emit(
        self, event_type: str, data: dict[str, Any] | None = None, source: str | None = None
    ) -> None:
        """Deliver an event to every handler subscribed to its type, in order."""
        event = Event(type=event_type, data=data or {}, source=source)
        # Copy so handlers may unsubscribe while being dispatched
        for handler in list(self._handlers.get(event_type, {}).values()):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Event handler failed", event_type=event_type, error=str(e))
