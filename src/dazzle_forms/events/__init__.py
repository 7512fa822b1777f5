"""
Form events.

Synchronous pub/sub used by a form to notify callers of edits, validation
and submission.
"""

from dazzle_forms.events.bus import (
    EventHandler,
    FormEvent,
    FormEventBus,
    FormEventName,
    field_topic,
)

__all__ = [
    "EventHandler",
    "FormEvent",
    "FormEventBus",
    "FormEventName",
    "field_topic",
]
