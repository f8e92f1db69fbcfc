"""Helpers for Slack user mention tokens (e.g. "<@U01234567>")."""

import re
from typing import Optional

ANY_MENTION_PATTERN = re.compile(r"<@\w+>")


def mention_token(user_id: str) -> str:
    return f"<@{user_id}>"


def contains_mention(text: str, bot_user_id: Optional[str]) -> bool:
    """
    Return True if text mentions the bot.

    When the bot's user id is unknown, any mention token counts.
    """
    if not text:
        return False
    if bot_user_id:
        return mention_token(bot_user_id) in text
    return bool(ANY_MENTION_PATTERN.search(text))


def strip_mention(text: str, bot_user_id: str) -> str:
    """Remove every mention of the bot and trim surrounding whitespace."""
    return (text or "").replace(mention_token(bot_user_id), "").strip()
