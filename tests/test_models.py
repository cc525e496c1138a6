"""Tests for queue bookkeeping and message parsing."""

import pytest

from zulipbot import settings
from zulipbot.models import EventQueue, Message


class TestEventQueue:
    def test_starts_before_first_event(self):
        assert EventQueue(queue_id="q").last_event_id == -1

    def test_advance_takes_highest_id(self):
        queue = EventQueue(queue_id="q", last_event_id=3)

        assert queue.advance([{"id": 4}, {"id": 5}, {"id": 6}]) == 6
        assert queue.last_event_id == 6

    def test_advance_with_empty_batch_keeps_id(self):
        queue = EventQueue(queue_id="q", last_event_id=3)

        queue.advance([])

        assert queue.last_event_id == 3

    @pytest.mark.parametrize("rate_limit, interval", [
        (120, 2),
        (200, 3),
        (60, 1),
        (30, 1),
    ])
    def test_poll_interval_from_rate_limit(self, rate_limit, interval):
        assert EventQueue(queue_id="q", rate_limit=rate_limit).poll_interval == interval

    def test_poll_interval_fallback(self):
        assert EventQueue(queue_id="q").poll_interval == settings.POLL_FALLBACK_INTERVAL


class TestMessage:
    def test_private_message_payload(self):
        message = Message.from_payload({
            "id": 12,
            "type": "private",
            "sender_email": "ada@example.com",
            "sender_full_name": "Ada Byron King",
            "content": "remind me",
            "display_recipient": [{"email": "ada@example.com"}, {"email": "bot@example.com"}],
        })

        assert message.is_private
        assert message.recipients == ["ada@example.com", "bot@example.com"]
        assert message.stream is None
        assert message.sender_display_name == "Ada Byron"

    def test_stream_message_payload(self):
        message = Message.from_payload({
            "id": 13,
            "type": "stream",
            "sender_email": "ada@example.com",
            "sender_full_name": "Ada",
            "content": "hi",
            "display_recipient": "test-bot",
            "subject": "greetings",
        })

        assert not message.is_private
        assert message.stream == "test-bot"
        assert message.subject == "greetings"
        assert message.sender_display_name == "Ada"

    def test_topic_used_when_subject_missing(self):
        message = Message.from_payload({"type": "stream", "topic": "lunch", "display_recipient": "food"})

        assert message.subject == "lunch"

    def test_missing_type_raises(self):
        with pytest.raises(KeyError):
            Message.from_payload({"content": "hi"})
