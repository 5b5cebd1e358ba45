"""
events.py - In-process publish/subscribe for UI observers.

Replaces window-level custom events: a "draft saved" badge subscribes to
FORM_DATA_SAVED, the recovery prompt to FORM_DATA_CLEARED.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

FORM_DATA_SAVED = "formDataSaved"
FORM_DATA_CLEARED = "formDataCleared"

Listener = Callable[[dict[str, Any]], None]


class EventBus:
    """Synchronous event bus. Listeners run in subscription order."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register listener; returns a callable that unsubscribes it."""
        self._listeners[event].append(listener)
        return lambda: self.unsubscribe(event, listener)

    def unsubscribe(self, event: str, listener: Listener) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> None:
        """
        Deliver payload to every listener of event.
        A failing listener is logged and does not stop delivery to the others.
        """
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload or {})
            except Exception:
                logger.exception("Listener for event=%s failed", event)

    def clear(self) -> None:
        self._listeners.clear()
