"""
Ingress classification of Slack Events API payloads.

classify() turns a parsed webhook body into exactly one of:
- Challenge: url_verification handshake, echo the token
- Accepted: a NormalizedEvent to publish on the queue
- Dropped: anything the relay must not answer (with a reason for the logs)
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from logger import log_debug, log_info, log_warn
from mentions import contains_mention
from normalized_event import EventKind, NormalizedEvent, PUBLIC_CHANNEL_TYPE

# Message subtypes that still carry a user-authored message
_ANSWERABLE_SUBTYPES = (None, "file_share", "thread_broadcast")


@dataclass(frozen=True)
class Challenge:
    token: str


@dataclass(frozen=True)
class Accepted:
    event: NormalizedEvent


@dataclass(frozen=True)
class Dropped:
    reason: str


FilterResult = Union[Challenge, Accepted, Dropped]


def get_bot_user_id(body: Dict[str, Any]) -> Optional[str]:
    """
    Extract the receiving bot's user id from an event_callback payload.

    Slack lists the installations an event is delivered to under
    "authorizations"; the bot entry carries is_bot=true.
    """
    for authorization in body.get("authorizations") or []:
        if isinstance(authorization, dict) and authorization.get("is_bot"):
            return authorization.get("user_id")
    return None


def _is_bot_authored(event: Dict[str, Any], bot_user_id: Optional[str]) -> bool:
    if bot_user_id and event.get("user") == bot_user_id:
        return True
    return bool(event.get("bot_id")) or event.get("subtype") == "bot_message"


def classify(body: Dict[str, Any], forward_mentions: bool = False) -> FilterResult:
    """
    Classify a Slack Events API body.

    Args:
        body: Parsed JSON webhook body
        forward_mentions: Forward app_mention events. Off by default because
            Slack also delivers a message event for every mention, which the
            message path already answers.

    Returns:
        Challenge, Accepted or Dropped
    """
    body_type = body.get("type")
    if body_type == "url_verification":
        return Challenge(str(body.get("challenge", "")))

    if body_type != "event_callback":
        log_warn("unsupported_payload_type", {"payload_type": body_type})
        return Dropped("unsupported_payload_type")

    slack_event = body.get("event") or {}
    event_type = slack_event.get("type")
    kind = EventKind.parse(event_type)
    if kind is None:
        log_warn("unsupported_inner_event", {"inner_event_type": event_type})
        return Dropped("unsupported_inner_event")

    log_debug("inner_event_received", {"event": slack_event})

    bot_user_id = get_bot_user_id(body)
    if _is_bot_authored(slack_event, bot_user_id):
        return Dropped("bot_message")

    if kind is EventKind.MENTION:
        if not forward_mentions:
            return Dropped("mention_covered_by_message_event")
        return Accepted(NormalizedEvent.from_slack_event(kind, slack_event))

    if slack_event.get("subtype") not in _ANSWERABLE_SUBTYPES:
        return Dropped("ignored_subtype")

    if (
        slack_event.get("channel_type") == PUBLIC_CHANNEL_TYPE
        and not slack_event.get("thread_ts")
        and not contains_mention(slack_event.get("text", ""), bot_user_id)
    ):
        return Dropped("unaddressed_channel_message")

    normalized = NormalizedEvent.from_slack_event(kind, slack_event)
    log_info(
        "event_accepted",
        {
            "kind": normalized.kind.value,
            "channel": normalized.channel,
            "channel_type": normalized.channel_type,
            "in_thread": normalized.in_thread,
            "file_count": len(normalized.file_urls),
        },
    )
    return Accepted(normalized)
