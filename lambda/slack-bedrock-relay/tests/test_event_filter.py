"""
Unit tests for ingress event classification.
"""

import json

from event_filter import Accepted, Challenge, Dropped, classify, get_bot_user_id
from normalized_event import EventKind


def _message(**overrides):
    event = {
        "type": "message",
        "channel": "C01234567",
        "channel_type": "channel",
        "user": "U11111111",
        "text": "<@UBOT12345> hello",
        "ts": "1700000000.000200",
    }
    event.update(overrides)
    return event


class TestHandshake:
    def test_url_verification_returns_challenge(self):
        result = classify({"type": "url_verification", "challenge": "abc123"})

        assert result == Challenge("abc123")


class TestUnsupportedPayloads:
    def test_non_callback_payload_dropped(self):
        result = classify({"type": "app_rate_limited"})

        assert isinstance(result, Dropped)
        assert result.reason == "unsupported_payload_type"

    def test_unsupported_inner_event_dropped_with_log(self, make_callback, capsys):
        result = classify(make_callback({"type": "reaction_added", "user": "U1"}))

        assert isinstance(result, Dropped)
        assert result.reason == "unsupported_inner_event"
        entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert entry["event_type"] == "unsupported_inner_event"
        assert entry["inner_event_type"] == "reaction_added"


class TestBotMessages:
    def test_own_message_dropped(self, make_callback):
        result = classify(make_callback(_message(user="UBOT12345", thread_ts="1.1")))

        assert result == Dropped("bot_message")

    def test_bot_id_message_dropped(self, make_callback):
        result = classify(make_callback(_message(bot_id="B999", thread_ts="1.1")))

        assert result == Dropped("bot_message")

    def test_get_bot_user_id_from_authorizations(self):
        body = {"authorizations": [{"user_id": "UHUMAN", "is_bot": False}, {"user_id": "UBOT", "is_bot": True}]}

        assert get_bot_user_id(body) == "UBOT"
        assert get_bot_user_id({}) is None


class TestMentions:
    def test_app_mention_dropped_by_default(self, make_callback):
        result = classify(make_callback({**_message(), "type": "app_mention"}))

        assert result == Dropped("mention_covered_by_message_event")

    def test_app_mention_forwarded_when_enabled(self, make_callback):
        result = classify(make_callback({**_message(), "type": "app_mention"}), forward_mentions=True)

        assert isinstance(result, Accepted)
        assert result.event.kind is EventKind.MENTION


class TestMessageFiltering:
    def test_public_channel_message_with_mention_accepted(self, make_callback):
        result = classify(make_callback(_message()))

        assert isinstance(result, Accepted)
        assert result.event.kind is EventKind.MESSAGE
        assert result.event.text == "<@UBOT12345> hello"

    def test_public_channel_message_without_mention_dropped(self, make_callback):
        result = classify(make_callback(_message(text="just chatting")))

        assert result == Dropped("unaddressed_channel_message")

    def test_mention_of_other_user_does_not_count(self, make_callback):
        result = classify(make_callback(_message(text="<@UOTHER> hi")))

        assert result == Dropped("unaddressed_channel_message")

    def test_any_mention_counts_when_bot_id_unknown(self, make_callback):
        result = classify(make_callback(_message(text="<@UOTHER> hi"), bot_user_id=None))

        assert isinstance(result, Accepted)

    def test_thread_reply_without_mention_accepted(self, make_callback):
        result = classify(make_callback(_message(text="follow up", thread_ts="1700000000.000100")))

        assert isinstance(result, Accepted)
        assert result.event.thread_ts == "1700000000.000100"

    def test_direct_message_without_mention_accepted(self, make_callback):
        result = classify(make_callback(_message(channel_type="im", text="hello")))

        assert isinstance(result, Accepted)

    def test_file_share_subtype_accepted_with_urls(self, make_callback):
        slack_event = _message(
            subtype="file_share",
            files=[{"id": "F1", "url_private_download": "https://files.slack.com/f1"}],
        )

        result = classify(make_callback(slack_event))

        assert isinstance(result, Accepted)
        assert result.event.file_urls == ["https://files.slack.com/f1"]

    def test_edited_message_dropped(self, make_callback):
        result = classify(make_callback(_message(subtype="message_changed")))

        assert result == Dropped("ignored_subtype")
