"""Keyword-driven bot that reacts to incoming Zulip messages."""
import random
from typing import Any, Dict, Optional

from zulipbot import settings
from zulipbot.dispatcher import EventDispatcher
from zulipbot.errors import ApiError, TransportError
from zulipbot.logging_conf import logger
from zulipbot.models import Message, Reminder
from zulipbot.zulip_client import ZulipClient

REMIND_PREFIX = "remind"
FOOD_PREFIX = "food"
SUDO = "sudo"


def parse_reminder(content: str) -> Reminder:
    """
    Parse `remind people:subject:location:time`.

    The first 7 characters ("remind ") are dropped and the rest split on ':'.
    Missing trailing fields stay None.
    """
    fields = content[len(REMIND_PREFIX) + 1:].split(":")
    fields += [None] * (4 - len(fields))
    return Reminder(people=fields[0], subject=fields[1], location=fields[2], time=fields[3])


class ZulipBot:
    """Answers private messages and logs stream and presence activity."""

    def __init__(self, client: ZulipClient, rng: Optional[random.Random] = None,
                 auto_reply: Optional[bool] = None):
        self.client = client
        self.rng = rng or random.Random()
        self.auto_reply = settings.BOT_AUTO_REPLY if auto_reply is None else auto_reply
        self.users: Dict[str, Dict[str, Any]] = {}

    def attach(self, dispatcher: EventDispatcher) -> None:
        """Subscribe the bot's handlers on a dispatcher."""
        dispatcher.on_private_message(self.handle_private_message)
        dispatcher.on_stream_message(self.handle_stream_message)
        dispatcher.on_presence(self.handle_presence)

    def load_users(self) -> Dict[str, Dict[str, Any]]:
        """Cache the realm's user directory, keyed by full name."""
        try:
            members = self.client.get_users().get("members", [])
        except (ApiError, TransportError) as e:
            logger.error(f"Failed to load users: {e}")
            return self.users

        for member in members:
            self.users[member.get("full_name", "")] = {
                "is_bot": member.get("is_bot", False),
                "is_active": member.get("is_active", True),
                "full_name": member.get("full_name", ""),
                "email": member.get("email", ""),
            }
        logger.info(f"Loaded {len(self.users)} users")
        return self.users

    # Handlers

    def handle_private_message(self, message: Message) -> Optional[str]:
        content = message.content
        from_name = message.sender_display_name

        if content.startswith(REMIND_PREFIX):
            self.handle_reminder(message.sender_email, content)
        if content.startswith(FOOD_PREFIX):
            self.handle_food(message.sender_email, content)

        # Our own outgoing messages come back through the queue too
        if not self.auto_reply or message.sender_email == self.client.credentials.email:
            return None

        response = self.get_immediate_response(from_name, content)
        self.client.send_private_message(message.sender_email, response)
        return response

    def handle_stream_message(self, message: Message) -> None:
        logger.info(f"Received stream message in {message.stream}/{message.subject} from {message.sender_email}")

    def handle_presence(self, event: Dict[str, Any]) -> None:
        logger.info(f"Received presence change for {event.get('email')}")

    def handle_reminder(self, sender: str, content: str) -> Reminder:
        reminder = parse_reminder(content)
        logger.info(f"Reminder from {sender}: {reminder}")
        return reminder

    def handle_food(self, sender: str, content: str) -> None:
        logger.info(f"{sender} requested food data")

    # Responses

    def get_immediate_response(self, from_name: str, content: str) -> str:
        index = content.find(SUDO)
        if index > -1:
            return self.get_sudo_response(from_name, index, content)
        return self.get_response(from_name)

    def get_sudo_response(self, from_name: str, sudo_pos: int, content: str) -> str:
        if self.rng.random() > 0.5:
            return f"{from_name}, why don't you {content[sudo_pos + len(SUDO):]}!"
        return f"Sorry, user {from_name} does not have root privileges"

    def get_response(self, from_name: str) -> str:
        roll = self.rng.random()
        if roll < 0.33:
            return f"Oh, hello {from_name} I'll be right on it."
        if roll < 0.66:
            return f"Well, {from_name}, I'm a tad busy but I will try my best."
        return f"A little needy, {from_name}, aren't we? Oh lighten up, I'll get right on it."
