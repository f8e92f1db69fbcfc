"""
Answer one queued Slack event with the generative model.

Three mutually exclusive cases:
1. app_mention: single-turn answer, threaded under the trigger
2. message outside a thread: single-turn answer when the bot is mentioned
   or the conversation is not a public channel (DM); threaded under the
   trigger only when the bot was mentioned
3. message inside a thread: chat-turn answer with the thread as history,
   only when the bot wrote the message before the trigger

At most one outward action happens per event (post, upload or nothing).
Failures are logged and end the event without a reply; nothing partial is
ever sent and nothing is retried here.
"""

from enum import Enum
from typing import List, Optional, Tuple

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from bedrock_chat import BedrockModel, ModelInvocationError
from file_fetcher import FileFetcher
from logger import log_debug, log_error, log_info, log_warn
from markdown_formatter import to_slack_mrkdwn
from mentions import contains_mention, strip_mention
from normalized_event import EventKind, NormalizedEvent
from parts import Blob, BlobPart, GenerateResponse, TextPart, build_parts
from slack_poster import post_answer, upload_answer
from thread_history import build_history, fetch_thread_messages, is_bot_continuation


class Outcome(Enum):
    POSTED = "posted"
    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    FAILED = "failed"


def split_response(response: GenerateResponse) -> Tuple[str, List[Blob]]:
    """
    Split the first candidate into Slack-formatted text and generated blobs.

    Text parts are converted to mrkdwn and joined by newlines; other
    candidates are ignored.
    """
    if not response.candidates:
        return "", []

    texts: List[str] = []
    blobs: List[Blob] = []
    for part in response.candidates[0].parts:
        if isinstance(part, TextPart):
            texts.append(to_slack_mrkdwn(part.text))
        elif isinstance(part, BlobPart):
            blobs.append(part.blob)
    return "\n".join(texts), blobs


class Responder:
    """Runs the reply path for one subscribe invocation."""

    def __init__(self, client: WebClient, model: BedrockModel, fetcher: FileFetcher, bot_user_id: str):
        self.client = client
        self.model = model
        self.fetcher = fetcher
        self.bot_user_id = bot_user_id

    def respond(self, event: NormalizedEvent) -> Outcome:
        log_debug("event_received", {"event": event.to_dict()})

        if event.user == self.bot_user_id:
            log_info("self_message_ignored", {"channel": event.channel, "ts": event.ts})
            return Outcome.SKIPPED

        if event.kind is EventKind.MENTION:
            return self._answer_single_turn(event, event.thread_target())

        if not event.in_thread:
            mentioned = contains_mention(event.text, self.bot_user_id)
            if event.is_public_channel and not mentioned:
                log_info("unaddressed_message_ignored", {"channel": event.channel, "ts": event.ts})
                return Outcome.SKIPPED
            return self._answer_single_turn(event, event.ts if mentioned else None)

        return self._answer_in_thread(event)

    def _answer_single_turn(self, event: NormalizedEvent, thread_ts: Optional[str]) -> Outcome:
        prompt = strip_mention(event.text, self.bot_user_id)
        blobs = self.fetcher.fetch_all(event.file_urls)
        if not prompt and not blobs:
            log_info("empty_prompt_ignored", {"channel": event.channel, "ts": event.ts})
            return Outcome.SKIPPED

        try:
            response = self.model.generate_content(build_parts(prompt, blobs))
        except ModelInvocationError as e:
            log_error("model_invocation_failed", {"channel": event.channel, "ts": event.ts}, e)
            return Outcome.FAILED

        return self._deliver(event, response, thread_ts)

    def _answer_in_thread(self, event: NormalizedEvent) -> Outcome:
        prompt = strip_mention(event.text, self.bot_user_id)
        if not prompt and not event.file_urls:
            log_info("empty_prompt_ignored", {"channel": event.channel, "ts": event.ts})
            return Outcome.SKIPPED

        try:
            messages = fetch_thread_messages(self.client, event.channel, event.thread_ts)
        except SlackApiError as e:
            log_error(
                "thread_history_retrieval_failed",
                {"channel": event.channel, "thread_ts": event.thread_ts, "error": e.response.get("error", "")},
                e,
            )
            return Outcome.FAILED

        if not is_bot_continuation(messages, self.bot_user_id):
            log_info(
                "thread_not_continued",
                {"channel": event.channel, "thread_ts": event.thread_ts, "message_count": len(messages)},
            )
            return Outcome.SKIPPED

        blobs = self.fetcher.fetch_all(event.file_urls)
        if not prompt and not blobs:
            log_info("empty_prompt_ignored", {"channel": event.channel, "ts": event.ts})
            return Outcome.SKIPPED

        history = build_history(messages, self.bot_user_id, self.fetcher)
        chat = self.model.start_chat(history)
        try:
            response = chat.send_message(build_parts(prompt, blobs))
        except ModelInvocationError as e:
            log_error("model_invocation_failed", {"channel": event.channel, "thread_ts": event.thread_ts}, e)
            return Outcome.FAILED

        return self._deliver(event, response, event.thread_ts)

    def _deliver(self, event: NormalizedEvent, response: GenerateResponse, thread_ts: Optional[str]) -> Outcome:
        answer, blobs = split_response(response)

        if not blobs:
            if not answer.strip():
                log_warn("empty_model_response", {"channel": event.channel, "ts": event.ts})
                return Outcome.SKIPPED
            try:
                post_answer(self.client, event.channel, answer, thread_ts)
            except SlackApiError as e:
                log_error(
                    "slack_post_failed",
                    {"channel": event.channel, "thread_ts": thread_ts, "error": e.response.get("error", "")},
                    e,
                )
                return Outcome.FAILED
            return Outcome.POSTED

        if len(blobs) > 1:
            # Only the first generated file is delivered
            log_warn("extra_generated_files_discarded", {"channel": event.channel, "discarded": len(blobs) - 1})
        try:
            upload_answer(self.client, event.channel, blobs[0], answer, thread_ts)
        except SlackApiError as e:
            log_error(
                "slack_upload_failed",
                {"channel": event.channel, "thread_ts": thread_ts, "error": e.response.get("error", "")},
                e,
            )
            return Outcome.FAILED
        return Outcome.UPLOADED
