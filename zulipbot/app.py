"""Main application - long-polls Zulip events and feeds them to the bot."""
import signal
import sys
import threading

from zulipbot.logging_conf import logger
from zulipbot import settings
from zulipbot.bot import ZulipBot
from zulipbot.dispatcher import EventDispatcher
from zulipbot.poller import EventPoller
from zulipbot.zulip_client import ZulipClient


class Application:
    """Wires the client, dispatcher, bot and poller together."""

    def __init__(self):
        self.client = ZulipClient(settings.ZULIP_EMAIL, settings.ZULIP_API_KEY)
        self.dispatcher = EventDispatcher()
        self.bot = ZulipBot(self.client)
        self.poller = EventPoller(self.client, self.dispatcher)
        self._stopped = threading.Event()

        self.bot.attach(self.dispatcher)
        self.dispatcher.subscribe("registered", self._on_registered)
        self.dispatcher.subscribe("error", self._on_error)

    def start(self):
        """Start the application."""
        logger.info("=" * 50)
        logger.info("Zulip bot")
        logger.info("=" * 50)
        logger.info(f"Account: {settings.ZULIP_EMAIL}")
        logger.info(f"API: {settings.ZULIP_API_URL}")
        logger.info(f"Event types: {', '.join(settings.EVENT_TYPES)}")
        logger.info(f"Auto reply: {settings.BOT_AUTO_REPLY}")
        logger.info("=" * 50)

        self.bot.load_users()
        self.poller.start()
        logger.info("Started - waiting for events")

    def stop(self):
        """Stop the application."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        self.poller.stop()
        self.client.session.close()
        logger.info("Stopped")

    def run(self):
        """Run until stop() is called."""
        self.start()
        try:
            while not self._stopped.wait(1):
                pass
        except KeyboardInterrupt:
            pass
        self.stop()

    def _on_registered(self, queue):
        logger.info(f"Listening on queue {queue.queue_id} (poll interval {queue.poll_interval}s)")

    def _on_error(self, error):
        logger.warning(f"Event queue error: {error}")


def main():
    """Entry point."""
    try:
        settings.validate_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    app = Application()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    app.run()


if __name__ == "__main__":
    main()
