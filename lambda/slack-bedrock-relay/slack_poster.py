"""
Slack delivery of model answers.

Text answers are posted as mrkdwn section blocks; a generated binary
attachment is uploaded with the answer as its initial comment.
"""

import time
from typing import Any, Dict, List, Optional

from slack_sdk import WebClient

from logger import log_info
from markdown_formatter import split_sections
from parts import Blob


def build_section_blocks(text: str) -> List[Dict[str, Any]]:
    """One mrkdwn section block per chunk of at most 3000 characters."""
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": chunk}}
        for chunk in split_sections(text)
        if chunk.strip()
    ]


def post_answer(client: WebClient, channel: str, text: str, thread_ts: Optional[str] = None) -> str:
    """
    Post a text answer to a channel or thread.

    Returns:
        Timestamp of the posted message

    Raises:
        SlackApiError: If chat.postMessage fails
    """
    params: Dict[str, Any] = {
        "channel": channel,
        "text": text,
        "blocks": build_section_blocks(text),
    }
    if thread_ts:
        params["thread_ts"] = thread_ts

    response = client.chat_postMessage(**params)
    log_info(
        "slack_message_posted",
        {
            "channel": channel,
            "thread_ts": thread_ts,
            "text_length": len(text),
            "message_ts": response.get("ts"),
        },
    )
    return response.get("ts", "")


def build_file_name(blob: Blob, now: Optional[float] = None) -> str:
    """file_<unix seconds>.<MIME subtype>, e.g. file_1700000000.png"""
    timestamp = int(now if now is not None else time.time())
    return f"file_{timestamp}.{blob.subtype}"


def upload_answer(
    client: WebClient,
    channel: str,
    blob: Blob,
    comment: str,
    thread_ts: Optional[str] = None,
) -> None:
    """
    Upload a generated file, with the text answer as initial comment.

    Raises:
        SlackApiError: If files_upload_v2 fails
    """
    file_name = build_file_name(blob)
    params: Dict[str, Any] = {
        "channel": channel,
        "content": blob.data,
        "filename": file_name,
        "title": file_name,
    }
    if comment:
        params["initial_comment"] = comment
    if thread_ts:
        params["thread_ts"] = thread_ts

    client.files_upload_v2(**params)
    log_info(
        "slack_file_uploaded",
        {
            "channel": channel,
            "thread_ts": thread_ts,
            "file_name": file_name,
            "size": len(blob.data),
            "has_comment": bool(comment),
        },
    )
