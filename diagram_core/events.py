"""
Change notification channel.

A small synchronous publish/subscribe bus. Subscribers register by event
name, or by a prefix pattern ending in '*' (e.g. "model:*"). Handlers run
in registration order on the emitting thread, after the mutation that
caused the event has completed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

MODEL_CHANGED = "model:changed"
SELECTION_CHANGED = "selection:changed"

Handler = Callable[[Any], None]


@dataclass
class ModelChange:
    """Payload of a `model:changed` event."""
    reason: str
    shapes: list[str] = field(default_factory=list)
    connectors: list[str] = field(default_factory=list)
    version: Optional[int] = None
    all: bool = False   # Every id may have changed (reload / reset)
    batch_label: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        changed: dict[str, Any] = {}
        if self.shapes:
            changed["shapes"] = list(self.shapes)
        if self.connectors:
            changed["connectors"] = list(self.connectors)
        if self.all:
            changed["all"] = True
        result = {"reason": self.reason, "changed": changed}
        if self.version is not None:
            result["version"] = self.version
        if self.batch_label:
            result["batchLabel"] = self.batch_label
        return result


@dataclass
class SelectionChange:
    """Payload of a `selection:changed` event (sorted id lists)."""
    reason: str
    shapes: list[str] = field(default_factory=list)
    connectors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"reason": self.reason, "shapes": self.shapes, "connectors": self.connectors}


class EventBus:
    """
    Synchronous event bus with exact and prefix-wildcard subscriptions.

    A failing handler is logged and does not prevent delivery to the
    remaining handlers.
    """

    def __init__(self):
        self._listeners: dict[str, list[Handler]] = {}
        self._wildcards: dict[str, list[Handler]] = {}  # prefix -> handlers

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe to an event. Returns a function that unsubscribes."""
        if event.endswith("*"):
            self._wildcards.setdefault(event[:-1], []).append(handler)
        else:
            self._listeners.setdefault(event, []).append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Handler):
        """Remove a previously registered handler (no-op if absent)."""
        table = self._wildcards if event.endswith("*") else self._listeners
        key = event[:-1] if event.endswith("*") else event
        handlers = table.get(key)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del table[key]

    def once(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe for a single delivery."""
        def wrapper(payload: Any):
            dispose()
            handler(payload)

        dispose = self.on(event, wrapper)
        return dispose

    def emit(self, event: str, payload: Any = None):
        """Deliver `payload` to every handler subscribed to `event`."""
        handlers = list(self._listeners.get(event, ()))
        for prefix, wildcard_handlers in self._wildcards.items():
            if event.startswith(prefix):
                handlers.extend(wildcard_handlers)

        logger.debug("emit %s to %d handler(s)", event, len(handlers))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Event handler error for %r", event)

    def pipe(
        self,
        source: str,
        target: str,
        transform: Callable[[Any], Any] = lambda payload: payload,
    ) -> Callable[[], None]:
        """Re-emit every `source` event as `target`."""
        return self.on(source, lambda payload: self.emit(target, transform(payload)))

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))
