"""
Queue (subscribe) Lambda handler.

Consumes NormalizedEvent messages from SQS, asks Bedrock for an answer and
posts it back to Slack. Uses partial batch responses: only records that
cannot be decoded (or that hit an unexpected error) are reported as
failures. Model or Slack failures end the event without a reply and the
record is still acknowledged.
"""

from typing import Any, Dict, List

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

import config
from bedrock_chat import BedrockModel
from file_fetcher import FileFetcher
from logger import configure, log_error, log_exception, log_info, set_lambda_context
from normalized_event import InvalidEventError, NormalizedEvent
from responder import Responder

SERVICE_NAME = "slack-bedrock-relay-subscribe"


def _all_failed(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "batchItemFailures": [
            {"itemIdentifier": record.get("messageId", "")} for record in records
        ]
    }


def build_responder(bot_token: str) -> Responder:
    """
    Create the Slack client, model and fetcher for one invocation.

    The bot's own user id is looked up here (auth.test) and passed down.

    Raises:
        SlackApiError: If auth.test fails
    """
    client = WebClient(token=bot_token)
    bot_user_id = client.auth_test()["user_id"]

    model = BedrockModel(
        model_id=config.get_model_id(),
        region=config.get_region(),
        max_tokens=config.get_max_tokens(),
        temperature=config.get_temperature(),
    )
    fetcher = FileFetcher(bot_token, timeout=config.get_file_fetch_timeout())
    return Responder(client, model, fetcher, bot_user_id)


def lambda_handler(event, context):
    """
    Process an SQS batch of relay events.

    Expected SQS event format:
    {
        "Records": [
            {"messageId": "...", "body": "{\"kind\": \"message\", ...}"}
        ]
    }

    Returns:
        dict: {"batchItemFailures": [{"itemIdentifier": messageId}, ...]}
    """
    configure(SERVICE_NAME, debug=config.is_debug())
    set_lambda_context(context)

    records = event.get("Records", [])
    if not records:
        return {"batchItemFailures": []}

    try:
        responder = build_responder(config.get_bot_token())
    except (SlackApiError, config.ConfigurationError) as e:
        log_exception("responder_setup_failed", {"record_count": len(records)}, e)
        return _all_failed(records)

    batch_item_failures: List[Dict[str, str]] = []

    for record in records:
        message_id = record.get("messageId", "unknown")
        try:
            relay_event = NormalizedEvent.deserialize(record.get("body", ""))
        except InvalidEventError as e:
            log_error("queue_message_invalid", {"message_id": message_id}, e)
            batch_item_failures.append({"itemIdentifier": message_id})
            continue

        log_info(
            "queue_message_received",
            {"message_id": message_id, "kind": relay_event.kind.value, "channel": relay_event.channel},
        )

        try:
            outcome = responder.respond(relay_event)
        except Exception as e:
            log_exception("queue_message_processing_error", {"message_id": message_id}, e)
            batch_item_failures.append({"itemIdentifier": message_id})
            continue

        log_info("queue_message_processed", {"message_id": message_id, "outcome": outcome.value})

    return {"batchItemFailures": batch_item_failures}
