"""Data models shared by the client, poller and bot."""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from zulipbot import settings


@dataclass(frozen=True)
class Credentials:
    """Account identifier and API key used for HTTP basic auth."""

    email: str
    api_key: str

    def __repr__(self) -> str:
        return f"Credentials(email={self.email!r}, api_key='***')"


@dataclass
class EventQueue:
    """Server-side event queue created by a successful registration."""

    queue_id: str
    last_event_id: int = -1  # -1 until the first event is consumed
    rate_limit: Optional[int] = None  # requests per minute, from X-RateLimit-Limit

    @property
    def poll_interval(self) -> int:
        """Seconds to wait between event fetches so the rate limit is respected."""
        if not self.rate_limit or self.rate_limit <= 0:
            return settings.POLL_FALLBACK_INTERVAL
        return max(1, math.floor(self.rate_limit / 60))

    def advance(self, events: Iterable[Dict[str, Any]]) -> int:
        """Move last_event_id to the highest id in the batch and return it."""
        ids = [event["id"] for event in events if "id" in event]
        if ids:
            self.last_event_id = max(ids)
        return self.last_event_id


@dataclass
class Message:
    """An inbound chat message as delivered inside a `message` event."""

    id: Optional[int]
    type: str  # "private" or "stream"
    sender_email: str
    sender_full_name: str
    content: str
    subject: Optional[str] = None
    stream: Optional[str] = None
    recipients: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Message":
        """Build a Message from the `message` object of an event."""
        display_recipient: Union[str, List[Dict[str, Any]], None] = payload.get("display_recipient")
        stream = None
        recipients: List[str] = []
        if isinstance(display_recipient, str):
            stream = display_recipient
        elif isinstance(display_recipient, list):
            recipients = [r.get("email") for r in display_recipient if r.get("email")]

        return cls(
            id=payload.get("id"),
            type=payload["type"],
            sender_email=payload.get("sender_email", ""),
            sender_full_name=payload.get("sender_full_name", ""),
            content=payload.get("content", ""),
            subject=payload.get("subject", payload.get("topic")),
            stream=stream,
            recipients=recipients,
            raw=payload,
        )

    @property
    def is_private(self) -> bool:
        return self.type == "private"

    @property
    def sender_display_name(self) -> str:
        """First two tokens of the sender's full name."""
        return " ".join(self.sender_full_name.split(" ")[:2])


@dataclass
class Reminder:
    """Fields of a `remind people:subject:location:time` command."""

    people: Optional[str] = None
    subject: Optional[str] = None
    location: Optional[str] = None
    time: Optional[str] = None
