"""Exceptions raised by the Zulip API client."""
from typing import Any, Optional


class ZulipError(Exception):
    """Base class for every client failure."""


class TransportError(ZulipError):
    """No response was received (connection failure, timeout)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ApiError(ZulipError):
    """The server answered with a non-success status or an error envelope."""

    def __init__(self, status_code: int, msg: str, code: Optional[str] = None, body: Any = None):
        super().__init__(f"{status_code}: {msg}")
        self.status_code = status_code
        self.msg = msg
        self.code = code
        self.body = body

    @property
    def is_bad_queue(self) -> bool:
        """True when the server no longer knows the event queue (expired or deleted)."""
        return self.code == "BAD_EVENT_QUEUE_ID" or "bad event queue id" in (self.msg or "").lower()
