"""
Slack thread history retrieval and conversation reconstruction.

The bot only continues threads where it wrote the message right before the
new one. The history sent to the model excludes that new (trigger) message,
which is sent separately as the next chat turn.
"""

from typing import Any, Dict, List

from slack_sdk import WebClient

from file_fetcher import FileFetcher
from logger import log_debug, log_info
from mentions import strip_mention
from parts import Role, Turn, build_parts


def fetch_thread_messages(client: WebClient, channel: str, thread_ts: str) -> List[Dict[str, Any]]:
    """
    Retrieve every message of a thread, oldest first (parent included).

    Follows response_metadata.next_cursor until Slack reports no more pages.

    Raises:
        SlackApiError: If the conversations.replies call fails
    """
    messages: List[Dict[str, Any]] = []
    cursor = None
    while True:
        params: Dict[str, Any] = {"channel": channel, "ts": thread_ts}
        if cursor:
            params["cursor"] = cursor
        response = client.conversations_replies(**params)
        messages.extend(response.get("messages", []))
        cursor = (response.get("response_metadata") or {}).get("next_cursor")
        if not cursor:
            break

    log_info(
        "thread_history_retrieved",
        {"channel": channel, "thread_ts": thread_ts, "message_count": len(messages)},
    )
    for i, msg in enumerate(messages):
        log_debug("thread_message", {"index": i, "message": msg})
    return messages


def is_bot_continuation(messages: List[Dict[str, Any]], bot_user_id: str) -> bool:
    """True if the message before the trigger (last) message was written by the bot."""
    return len(messages) >= 2 and messages[-2].get("user") == bot_user_id


def build_history(
    messages: List[Dict[str, Any]],
    bot_user_id: str,
    fetcher: FileFetcher,
) -> List[Turn]:
    """
    Build chat history from thread messages, excluding the trigger message.

    Each turn carries the message text with bot mentions removed and the
    message's attached files (downloaded concurrently per message).
    """
    history: List[Turn] = []
    for msg in messages[:-1]:
        role = Role.MODEL if msg.get("user") == bot_user_id else Role.USER
        urls = [f.get("url_private_download", "") for f in msg.get("files") or []]
        blobs = fetcher.fetch_all(urls) if urls else []
        history.append(Turn(role, build_parts(strip_mention(msg.get("text", ""), bot_user_id), blobs)))
    return history
