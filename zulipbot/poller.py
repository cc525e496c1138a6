"""Long-polling loop over a Zulip event queue."""
import threading
from enum import Enum
from typing import Iterable, Optional

from zulipbot.logging_conf import logger
from zulipbot import settings
from zulipbot.dispatcher import EventDispatcher
from zulipbot.errors import ApiError, TransportError
from zulipbot.models import EventQueue
from zulipbot.zulip_client import ZulipClient


class PollerState(str, Enum):
    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    POLLING = "polling"
    ERROR = "error"
    STOPPED = "stopped"


class EventPoller:
    """Registers an event queue and long-polls it, re-registering after any failure."""

    def __init__(self, client: ZulipClient, dispatcher: EventDispatcher,
                 event_types: Optional[Iterable[str]] = None,
                 apply_markdown: Optional[bool] = None):
        self.client = client
        self.dispatcher = dispatcher
        self.event_types = list(event_types) if event_types is not None else settings.EVENT_TYPES
        self.apply_markdown = settings.APPLY_MARKDOWN if apply_markdown is None else apply_markdown
        self.error_backoff = settings.ERROR_BACKOFF_SECONDS

        self.state = PollerState.UNREGISTERED
        self.queue: Optional[EventQueue] = None
        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive() and not self._stop_event.is_set()

    def start(self):
        """Start polling in a background thread."""
        if self.running:
            logger.warning("Poller is already running")
            return

        # A thread left over from an earlier stop() keeps its own, already set, event
        self._stop_event = threading.Event()
        self.state = PollerState.UNREGISTERED
        self.queue = None
        self.thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                       name="zulip-poller", daemon=True)
        self.thread.start()
        logger.info(f"Poller started (event types: {', '.join(self.event_types)})")

    def stop(self, timeout: float = 10):
        """
        Stop polling.

        No further fetch is scheduled; a long-poll already in flight is left to
        finish on its own and its response is discarded.
        """
        if self.state == PollerState.STOPPED:
            return

        self._stop_event.set()
        queue = self.queue
        self.queue = None
        self.state = PollerState.STOPPED

        if queue is not None:
            self._deregister(queue)

        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                logger.info("Poller thread still waiting on a long-poll; its response will be discarded")
        logger.info("Poller stopped")

    def _run(self, stop_event: threading.Event):
        """Main poller loop."""
        logger.info("Poller thread started")

        while not stop_event.is_set():
            try:
                delay = self.step(stop_event)
            except Exception as e:
                logger.error(f"Poller error: {e}", exc_info=True)
                delay = self.error_backoff

            if delay > 0:
                stop_event.wait(delay)

        if self.thread is threading.current_thread():
            self.state = PollerState.STOPPED
        logger.info("Poller thread stopped")

    def step(self, stop_event: Optional[threading.Event] = None) -> float:
        """Perform one state transition and return the seconds to wait before the next."""
        stop_event = stop_event or self._stop_event
        if stop_event.is_set():
            return 0

        if self.state == PollerState.POLLING and self.queue is not None:
            return self._poll(stop_event)
        return self._register(stop_event)

    def _register(self, stop_event: threading.Event) -> float:
        self.state = PollerState.REGISTERING
        try:
            queue = self.client.register_queue(self.event_types, self.apply_markdown)
        except (ApiError, TransportError) as e:
            return self._fail("register", e, stop_event)

        if stop_event.is_set():
            logger.debug(f"Dropping queue {queue.queue_id} registered after stop")
            self._deregister(queue)
            return 0

        self.queue = queue
        self.state = PollerState.POLLING
        self.dispatcher.emit("registered", queue)
        return 0

    def _poll(self, stop_event: threading.Event) -> float:
        queue = self.queue
        try:
            events = self.client.get_events(queue.queue_id, queue.last_event_id)
        except (ApiError, TransportError) as e:
            if isinstance(e, ApiError) and e.is_bad_queue:
                logger.info(f"Event queue {queue.queue_id} expired")
            return self._fail("get_events", e, stop_event)

        if stop_event.is_set() or self.queue is not queue:
            logger.debug(f"Discarding {len(events)} stale events from queue {queue.queue_id}")
            return 0

        if events:
            logger.debug(f"Received {len(events)} events from queue {queue.queue_id}")
        self.dispatcher.dispatch(events)
        queue.advance(events)
        return queue.poll_interval

    def _fail(self, operation: str, error: Exception, stop_event: threading.Event) -> float:
        if stop_event.is_set():
            return 0

        logger.error(f"{operation} failed, re-registering in {self.error_backoff}s: {error}")
        self.state = PollerState.ERROR
        self.queue = None
        self.dispatcher.emit("error", error)
        return self.error_backoff

    def _deregister(self, queue: EventQueue):
        if not settings.DEREGISTER_ON_STOP:
            return
        try:
            self.client.deregister_queue(queue.queue_id)
        except (ApiError, TransportError) as e:
            logger.warning(f"Could not deregister queue {queue.queue_id}: {e}")
