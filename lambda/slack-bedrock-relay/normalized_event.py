"""
Queue message model shared by the publish and subscribe Lambdas.

A NormalizedEvent is built once from the raw Slack inner event at ingress,
serialized into the SQS message body, and decoded once by the responder.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

PUBLIC_CHANNEL_TYPE = "channel"


class InvalidEventError(ValueError):
    """Raised when a queue payload cannot be decoded into a NormalizedEvent."""


class EventKind(Enum):
    """Inner Slack event kinds the relay understands."""
    MENTION = "app_mention"
    MESSAGE = "message"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["EventKind"]:
        """Return the matching kind, or None for unsupported event types."""
        for kind in cls:
            if kind.value == value:
                return kind
        return None


@dataclass
class NormalizedEvent:
    kind: EventKind
    channel: str
    channel_type: str
    user: str
    text: str
    ts: str
    thread_ts: str = ""
    file_urls: List[str] = field(default_factory=list)

    @classmethod
    def from_slack_event(cls, kind: EventKind, event: Dict[str, Any]) -> "NormalizedEvent":
        """
        Build from a Slack inner event (the "event" object of an event_callback).

        Attachment URLs are the url_private_download of each shared file, in
        the order Slack lists them.
        """
        files = event.get("files") or []
        return cls(
            kind=kind,
            channel=event.get("channel", ""),
            channel_type=event.get("channel_type", ""),
            user=event.get("user", ""),
            text=event.get("text", ""),
            ts=event.get("ts", ""),
            thread_ts=event.get("thread_ts", "") or "",
            file_urls=[f.get("url_private_download", "") for f in files if isinstance(f, dict)],
        )

    @property
    def is_public_channel(self) -> bool:
        return self.channel_type == PUBLIC_CHANNEL_TYPE

    @property
    def in_thread(self) -> bool:
        return bool(self.thread_ts)

    def thread_target(self) -> str:
        """Timestamp a reply to this event is threaded under."""
        return self.thread_ts or self.ts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "channel": self.channel,
            "channel_type": self.channel_type,
            "user": self.user,
            "text": self.text,
            "ts": self.ts,
            "thread_ts": self.thread_ts,
            "file_urls": list(self.file_urls),
        }

    def serialize(self) -> str:
        """Encode as the JSON text carried in the SQS message body."""
        return json.dumps(self.to_dict(), ensure_ascii=False, sort_keys=True)

    @classmethod
    def deserialize(cls, payload: str) -> "NormalizedEvent":
        """
        Decode an SQS message body produced by serialize().

        Raises:
            InvalidEventError: If the payload is not JSON, names an unknown
                kind, or lacks a field
        """
        try:
            data = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as e:
            raise InvalidEventError(f"Queue payload is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidEventError("Queue payload must be a JSON object")

        kind = EventKind.parse(data.get("kind"))
        if kind is None:
            raise InvalidEventError(f"Unsupported event kind: {data.get('kind')!r}")

        try:
            file_urls = data["file_urls"]
            if not isinstance(file_urls, list):
                raise InvalidEventError("file_urls must be a list")
            return cls(
                kind=kind,
                channel=data["channel"],
                channel_type=data["channel_type"],
                user=data["user"],
                text=data["text"],
                ts=data["ts"],
                thread_ts=data["thread_ts"],
                file_urls=[str(url) for url in file_urls],
            )
        except KeyError as e:
            raise InvalidEventError(f"Queue payload is missing field {e}") from e
