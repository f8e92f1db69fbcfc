"""
Shared fixtures for relay Lambda tests.

Puts the Lambda source directory on sys.path (the bundle is deployed as
flat modules) and provides Slack payload builders.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from normalized_event import EventKind, NormalizedEvent  # noqa: E402

BOT_USER_ID = "UBOT12345"


@pytest.fixture
def bot_user_id():
    return BOT_USER_ID


@pytest.fixture
def make_callback():
    """Build an event_callback body around an inner Slack event."""

    def _make(inner_event, bot_user_id=BOT_USER_ID):
        body = {
            "type": "event_callback",
            "team_id": "T12345",
            "event_id": "Ev12345",
            "event": inner_event,
        }
        if bot_user_id:
            body["authorizations"] = [{"user_id": bot_user_id, "is_bot": True}]
        return body

    return _make


@pytest.fixture
def make_event():
    """Build a NormalizedEvent with sensible defaults."""

    def _make(**overrides):
        values = {
            "kind": EventKind.MESSAGE,
            "channel": "C01234567",
            "channel_type": "channel",
            "user": "U11111111",
            "text": f"<@{BOT_USER_ID}> hello",
            "ts": "1700000000.000200",
            "thread_ts": "",
            "file_urls": [],
        }
        values.update(overrides)
        return NormalizedEvent(**values)

    return _make


@pytest.fixture
def slack_client():
    client = MagicMock()
    client.chat_postMessage.return_value = {"ok": True, "ts": "1700000001.000100"}
    client.files_upload_v2.return_value = {"ok": True, "file": {"id": "F123"}}
    return client


@pytest.fixture
def lambda_context():
    context = MagicMock()
    context.aws_request_id = "test-request-id"
    return context
