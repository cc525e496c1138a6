"""
Pytest configuration and shared fixtures for zulipbot tests.
"""

import os
import tempfile
from unittest.mock import MagicMock

import pytest

# Keep test runs from writing log files into the project tree
os.environ.setdefault("LOGS_DIR", tempfile.mkdtemp(prefix="zulipbot-logs-"))

from zulipbot.dispatcher import EventDispatcher  # noqa: E402
from zulipbot.models import EventQueue  # noqa: E402
from zulipbot.zulip_client import ZulipClient  # noqa: E402


def make_response(status_code=200, body=None, headers=None, reason="OK"):
    """Build a stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body if body is not None else {"result": "success", "msg": ""}
    response.headers = headers or {}
    response.reason = reason
    return response


@pytest.fixture
def session():
    """A mocked requests.Session that answers every call with an empty success."""
    session = MagicMock()
    session.headers = {}
    session.request.return_value = make_response()
    return session


@pytest.fixture
def client(session):
    return ZulipClient("bot@example.com", "secret-key", base_url="https://zulip.example.com/api/v1",
                       session=session)


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def mock_client():
    """A ZulipClient double for poller and bot tests."""
    client = MagicMock(spec=ZulipClient)
    client.credentials = MagicMock(email="bot@example.com")
    client.register_queue.side_effect = [
        EventQueue(queue_id="queue-1", last_event_id=-1, rate_limit=120),
        EventQueue(queue_id="queue-2", last_event_id=-1, rate_limit=120),
        EventQueue(queue_id="queue-3", last_event_id=-1, rate_limit=120),
    ]
    client.get_events.return_value = []
    return client
