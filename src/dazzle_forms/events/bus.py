"""
Form Event Bus.

Synchronous, per-form publish/subscribe. Handlers run in subscription order
on the caller's stack; a handler that raises is logged and skipped so the
remaining handlers still receive the event.

Events:
- ``field:change`` (also published as ``field:change:<path>``)
- ``form:change``
- ``form:validate``
- ``form:submit``
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class FormEventName(str, Enum):
    """Built-in event names."""

    FIELD_CHANGE = "field:change"
    FORM_CHANGE = "form:change"
    FORM_VALIDATE = "form:validate"
    FORM_SUBMIT = "form:submit"


@dataclass
class FormEvent:
    """An event delivered to handlers."""

    event: str
    detail: dict[str, Any] = field(default_factory=dict)


# Type alias for event handlers
EventHandler = Callable[[FormEvent], Any]


def field_topic(path: str) -> str:
    """Namespaced topic for changes to one path (``field:change:name``)."""
    return f"{FormEventName.FIELD_CHANGE.value}:{path}"


def _topic(event: str | FormEventName) -> str:
    return event.value if isinstance(event, FormEventName) else event


class FormEventBus:
    """
    In-process event bus owned by one form.

    Example:
        bus = FormEventBus()
        bus.subscribe("form:change", lambda e: print(e.detail["data"]))
        bus.publish("form:change", {"data": {...}})
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event: str | FormEventName, handler: EventHandler) -> None:
        self._handlers.setdefault(_topic(event), []).append(handler)

    def unsubscribe(self, event: str | FormEventName, handler: EventHandler) -> bool:
        """
        Remove a handler.

        Returns:
            True if the handler was subscribed
        """
        handlers = self._handlers.get(_topic(event), [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def handler_count(self, event: str | FormEventName) -> int:
        return len(self._handlers.get(_topic(event), []))

    def publish(self, event: str | FormEventName, detail: dict[str, Any] | None = None) -> int:
        """
        Deliver an event to every handler of its topic.

        Returns:
            Number of handlers that completed without raising
        """
        topic = _topic(event)
        return self._deliver(topic, FormEvent(event=topic, detail=detail or {}))

    def _deliver(self, topic: str, envelope: FormEvent) -> int:
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(envelope)
            except Exception:
                logger.exception("Handler %r failed for event %s", handler, topic)
                continue
            delivered += 1
        return delivered

    def publish_field_change(self, path: str, detail: dict[str, Any]) -> int:
        """Publish ``field:change`` and its path-namespaced variant."""
        envelope = FormEvent(event=FormEventName.FIELD_CHANGE.value, detail=detail)
        delivered = self._deliver(envelope.event, envelope)
        delivered += self._deliver(field_topic(path), envelope)
        return delivered

    def clear(self) -> None:
        self._handlers.clear()
