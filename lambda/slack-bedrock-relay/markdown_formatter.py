"""
Adapt model Markdown to Slack mrkdwn.

Models emit CommonMark-style lists ("* item") and bold ("**bold**"); Slack
renders "- item" and "*bold*".
"""

import re
from typing import List

_LIST_MARKER_PATTERN = re.compile(r"(\n+\s*)\* ")

# Slack section block text limit
SECTION_TEXT_LIMIT = 3000


def to_slack_mrkdwn(text: str) -> str:
    """
    Convert list markers and bold markers.

    >>> to_slack_mrkdwn("Items:\\n* one\\n  * two")
    'Items:\\n- one\\n  - two'
    >>> to_slack_mrkdwn("**bold**")
    '*bold*'
    """
    text = _LIST_MARKER_PATTERN.sub(r"\1- ", text)
    return text.replace("**", "*")


def split_sections(text: str, limit: int = SECTION_TEXT_LIMIT) -> List[str]:
    """
    Split text into chunks no longer than limit.

    Breaks at the last newline inside the window when there is one,
    otherwise hard-splits at the limit.
    """
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    remaining = text
    while len(remaining) > limit:
        split_pos = remaining.rfind("\n", 0, limit + 1)
        if split_pos <= 0:
            chunks.append(remaining[:limit])
            remaining = remaining[limit:]
        else:
            chunks.append(remaining[:split_pos])
            remaining = remaining[split_pos + 1:]
    if remaining:
        chunks.append(remaining)
    return chunks
