"""
SQS publisher for accepted Slack events.

One send_message per accepted event; the message body is the serialized
NormalizedEvent. No deduplication: Slack retries plus at-least-once SQS
delivery can produce duplicates.
"""

from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

import config
from logger import log_error, log_info
from normalized_event import NormalizedEvent


class QueuePublishError(Exception):
    """Raised when an event could not be enqueued."""


def publish_event(event: NormalizedEvent, queue_url: Optional[str] = None) -> str:
    """
    Send a NormalizedEvent to the relay queue.

    Args:
        event: Event accepted by the ingress filter
        queue_url: SQS queue URL (defaults to QUEUE_URL)

    Returns:
        SQS message id

    Raises:
        QueuePublishError: If SQS rejects the message or is unreachable
    """
    queue_url = queue_url or config.get_queue_url()
    sqs_client = boto3.client("sqs", region_name=config.get_region())

    try:
        response = sqs_client.send_message(
            QueueUrl=queue_url,
            MessageBody=event.serialize(),
        )
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "")
        log_error(
            "sqs_send_failed",
            {"queue_url": queue_url, "error_code": error_code, "channel": event.channel},
            e,
        )
        raise QueuePublishError(f"SQS send_message failed: {error_code}") from e
    except BotoCoreError as e:
        log_error("sqs_send_failed", {"queue_url": queue_url, "channel": event.channel}, e)
        raise QueuePublishError(f"SQS send_message failed: {e}") from e

    message_id = response.get("MessageId", "")
    log_info(
        "event_published",
        {"queue_url": queue_url, "message_id": message_id, "channel": event.channel},
    )
    return message_id
