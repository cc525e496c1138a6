"""Zulip REST API client."""
import json
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote
import requests

from zulipbot import settings
from zulipbot.errors import ApiError, TransportError
from zulipbot.logging_conf import logger
from zulipbot.models import Credentials, EventQueue


class ZulipClient:
    """Authenticated wrapper around the Zulip v1 HTTP endpoints."""

    def __init__(self, email: str, api_key: str, base_url: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.credentials = Credentials(email=email, api_key=api_key)
        self.base_url = (base_url or settings.ZULIP_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.session.auth = (self.credentials.email, self.credentials.api_key)
        self.session.headers.update({"Accept": "application/json"})

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(self, kind: str, target: Union[str, Sequence[str]], content: str,
                     subject: Optional[str] = None) -> Dict[str, Any]:
        """
        Send a stream or private message.

        Args:
            kind: "stream" or "private"
            target: Stream name for stream messages, recipient address(es) for private ones
            content: Message body (Zulip markdown)
            subject: Topic, required for stream messages and ignored for private ones

        Returns:
            Success payload, including the assigned message `id`
        """
        if kind == "stream":
            if not isinstance(target, str) or not target:
                raise ValueError("Stream messages need a stream name")
            if not subject:
                raise ValueError("Stream messages need a subject")
            data = {"type": "stream", "to": target, "subject": subject, "content": content}
        elif kind == "private":
            recipients = [target] if isinstance(target, str) else list(target)
            if not recipients:
                raise ValueError("Private messages need at least one recipient")
            data = {"type": "private", "to": recipients, "content": content}
        else:
            raise ValueError(f"Unknown message type: {kind}")

        result, _ = self._request("POST", "/messages", data=data)
        logger.debug(f"Sent {kind} message {result.get('id')}")
        return result

    def send_stream_message(self, stream: str, subject: str, content: str) -> Dict[str, Any]:
        return self.send_message("stream", stream, content, subject=subject)

    def send_private_message(self, to: Union[str, Sequence[str]], content: str) -> Dict[str, Any]:
        return self.send_message("private", to, content)

    def update_message(self, message_id: int, **fields: Any) -> Dict[str, Any]:
        """Edit an existing message (content, subject, ...)."""
        if not fields:
            raise ValueError("update_message needs at least one field")
        result, _ = self._request("PATCH", f"/messages/{message_id}", data=fields)
        return result

    # ------------------------------------------------------------------
    # Event queue
    # ------------------------------------------------------------------

    def register_queue(self, event_types: Optional[Iterable[str]] = None,
                       apply_markdown: Optional[bool] = None) -> EventQueue:
        """Register a new server-side event queue. Must precede any get_events call."""
        data: Dict[str, Any] = {}
        if event_types is not None:
            data["event_types"] = list(event_types)
        if apply_markdown is not None:
            data["apply_markdown"] = apply_markdown

        result, response = self._request("POST", "/register", data=data)
        queue = EventQueue(
            queue_id=result["queue_id"],
            last_event_id=result.get("last_event_id", -1),
            rate_limit=self._parse_rate_limit(response.headers.get("X-RateLimit-Limit")),
        )
        logger.info(f"Registered event queue {queue.queue_id} "
                    f"(last_event_id={queue.last_event_id}, rate_limit={queue.rate_limit})")
        return queue

    def deregister_queue(self, queue_id: str) -> Dict[str, Any]:
        """Delete an event queue. Deleting an unknown queue raises ApiError."""
        result, _ = self._request("DELETE", "/events", data={"queue_id": queue_id})
        logger.info(f"Deregistered event queue {queue_id}")
        return result

    def get_events(self, queue_id: str, last_event_id: int, dont_block: bool = False) -> List[Dict[str, Any]]:
        """
        Fetch events newer than last_event_id.

        Blocks server-side until an event arrives (or the server heartbeat fires)
        unless dont_block is set.
        """
        params = {"queue_id": queue_id, "last_event_id": last_event_id, "dont_block": dont_block}
        timeout = settings.REQUEST_TIMEOUT if dont_block else settings.LONG_POLL_TIMEOUT
        result, _ = self._request("GET", "/events", params=params, timeout=timeout)
        return result.get("events", [])

    # ------------------------------------------------------------------
    # Users, streams, presence
    # ------------------------------------------------------------------

    def get_users(self) -> Dict[str, Any]:
        result, _ = self._request("GET", "/users")
        return result

    def me(self) -> Dict[str, Any]:
        result, _ = self._request("GET", "/users/me")
        return result

    def get_streams(self) -> Dict[str, Any]:
        result, _ = self._request("GET", "/streams")
        return result

    def get_stream_members(self, stream: str) -> Dict[str, Any]:
        result, _ = self._request("GET", f"/streams/{quote(stream, safe='')}/members")
        return result

    def get_subscriptions(self) -> Dict[str, Any]:
        result, _ = self._request("GET", "/users/me/subscriptions")
        return result

    def update_subscriptions(self, additions: Optional[Sequence[Any]] = None,
                             deletions: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """
        Subscribe to and unsubscribe from streams in one call.

        Args:
            additions: Stream names or {"name": ...} dicts to subscribe to
            deletions: Stream names to unsubscribe from
        """
        data: Dict[str, Any] = {}
        if additions:
            data["add"] = [{"name": s} if isinstance(s, str) else s for s in additions]
        if deletions:
            data["delete"] = list(deletions)
        if not data:
            raise ValueError("update_subscriptions needs additions or deletions")
        result, _ = self._request("PATCH", "/users/me/subscriptions", data=data)
        return result

    def set_presence(self, status: str) -> Dict[str, Any]:
        """Report the bot's presence ("active" or "idle")."""
        result, _ = self._request("POST", "/users/me/presence", data={"status": status})
        return result

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @staticmethod
    def _encode_params(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
        """Serialize lists, dicts and booleans as JSON; pass scalars through as strings."""
        if values is None:
            return None
        encoded = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, (list, tuple, dict, bool)):
                encoded[key] = json.dumps(list(value) if isinstance(value, tuple) else value)
            else:
                encoded[key] = str(value)
        return encoded

    @staticmethod
    def _parse_rate_limit(value: Optional[str]) -> Optional[int]:
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unparseable rate limit header: {value!r}")
            return None

    def _request(self, method: str, endpoint: str, data: Optional[Dict[str, Any]] = None,
                 params: Optional[Dict[str, Any]] = None, timeout: Optional[int] = None,
                 retry_count: int = 0) -> Tuple[Dict[str, Any], requests.Response]:
        """Make an API request and return (json body, response)."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(
                method=method,
                url=url,
                data=self._encode_params(data),
                params=self._encode_params(params),
                timeout=timeout or settings.REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Zulip API request {method} {endpoint} failed: {e}")
            raise TransportError(f"{method} {endpoint}: {e}", cause=e) from e

        if response.status_code == 429 and retry_count < settings.MAX_RETRIES:
            retry_after = min(self._retry_after(response), settings.MAX_RETRY_WAIT)
            logger.warning(f"Rate limited. Waiting {retry_after}s...")
            time.sleep(retry_after)
            return self._request(method, endpoint, data=data, params=params,
                                 timeout=timeout, retry_count=retry_count + 1)

        body = self._json(response)

        if not 200 <= response.status_code < 300 or body.get("result") == "error":
            raise ApiError(
                status_code=response.status_code,
                msg=body.get("msg") or response.reason or "",
                code=body.get("code"),
                body=body,
            )

        return body, response

    @staticmethod
    def _retry_after(response: requests.Response) -> float:
        try:
            return float(response.headers.get("Retry-After", 60))
        except (TypeError, ValueError):
            return 60.0

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
