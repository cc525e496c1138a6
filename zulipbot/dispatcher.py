"""Routes events from the event queue to registered handlers."""
from typing import Any, Callable, Dict, Iterable, List

from zulipbot.logging_conf import logger
from zulipbot.models import Message

Handler = Callable[..., Any]

CATEGORIES = (
    "registered",       # (EventQueue)
    "error",            # (exception)
    "event",            # (raw event dict), every event
    "message",          # (Message, message type)
    "stream_message",   # (Message)
    "private_message",  # (Message)
    "presence",         # (raw event dict)
)


class EventDispatcher:
    """Ordered handler registries keyed by event category."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {category: [] for category in CATEGORIES}

    def subscribe(self, category: str, handler: Handler) -> Handler:
        """Append a handler to a category. Handlers run in subscription order."""
        if category not in self._handlers:
            raise ValueError(f"Unknown event category: {category}")
        self._handlers[category].append(handler)
        return handler

    def on_stream_message(self, handler: Handler) -> Handler:
        return self.subscribe("stream_message", handler)

    def on_private_message(self, handler: Handler) -> Handler:
        return self.subscribe("private_message", handler)

    def on_presence(self, handler: Handler) -> Handler:
        return self.subscribe("presence", handler)

    def handlers(self, category: str) -> List[Handler]:
        return list(self._handlers.get(category, []))

    def emit(self, category: str, *args: Any) -> int:
        """
        Call every handler of a category with args.

        A failing handler is logged and skipped; the remaining handlers still run.

        Returns:
            Number of handlers that completed without raising
        """
        completed = 0
        for handler in self._handlers.get(category, []):
            try:
                handler(*args)
                completed += 1
            except Exception as e:
                name = getattr(handler, "__qualname__", repr(handler))
                logger.error(f"Handler {name} for '{category}' failed: {e}", exc_info=True)
        return completed

    def dispatch(self, events: Iterable[Dict[str, Any]]) -> None:
        """Classify each event in order and notify the matching handlers."""
        for event in events:
            self.emit("event", event)

            event_type = event.get("type")
            if event_type == "message":
                self._dispatch_message(event)
            elif event_type == "presence":
                self.emit("presence", event)
            else:
                logger.debug(f"Ignoring event {event.get('id')} of type {event_type!r}")

    def _dispatch_message(self, event: Dict[str, Any]) -> None:
        try:
            message = Message.from_payload(event["message"])
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed message event {event.get('id')}: {e}")
            return

        self.emit("message", message, message.type)
        if message.is_private:
            self.emit("private_message", message)
        else:
            self.emit("stream_message", message)
