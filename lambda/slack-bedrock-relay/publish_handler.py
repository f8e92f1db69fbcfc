"""
Slack webhook (publish) Lambda handler.

Receives Slack Events API calls through a Function URL / API Gateway:
1. Verifies the Slack signature when a signing secret is configured
2. Answers url_verification challenges
3. Filters the inner event and publishes accepted events to SQS

Slack expects an answer within 3 seconds, so model work happens in the
subscribe Lambda.
"""

import base64
import binascii
import json
from typing import Any, Dict, Optional

from slack_sdk.signature import SignatureVerifier

import config
from event_filter import Accepted, Challenge, classify
from logger import configure, log_info, log_warn, log_exception, set_lambda_context
from queue_publisher import QueuePublishError, publish_event

SERVICE_NAME = "slack-bedrock-relay-publish"


def _response(status_code: int, body: str = "", content_type: Optional[str] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"statusCode": status_code, "body": body}
    if content_type:
        response["headers"] = {"Content-Type": content_type}
    return response


def _get_header(headers: Dict[str, str], name: str) -> Optional[str]:
    # Function URLs lowercase header names, API Gateway keeps the original case
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _read_body(event: Dict[str, Any]) -> Optional[str]:
    raw_body = event.get("body")
    if raw_body is None:
        return None
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(raw_body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
    return raw_body


def _is_signature_valid(raw_body: str, headers: Dict[str, str]) -> bool:
    signing_secret = config.get_signing_secret()
    if not signing_secret:
        log_info("signature_verification_skipped", {"reason": "signing_secret_not_configured"})
        return True

    timestamp = _get_header(headers, "x-slack-request-timestamp")
    signature = _get_header(headers, "x-slack-signature")
    if not timestamp or not signature or not timestamp.isdigit():
        return False

    verifier = SignatureVerifier(signing_secret=signing_secret)
    return verifier.is_valid(body=raw_body, timestamp=timestamp, signature=signature)


def lambda_handler(event, context):
    """
    Handle one Slack Events API webhook call.

    Returns:
        200 with the challenge (text/plain) for url_verification,
        200 with an empty body for accepted or filtered events,
        400 for an unreadable body, 401 for a bad signature,
        500 when the event could not be enqueued
    """
    configure(SERVICE_NAME, debug=config.is_debug())
    set_lambda_context(context)

    try:
        raw_body = _read_body(event)
        if not raw_body:
            log_warn("request_body_unreadable", {"has_body": raw_body is not None})
            return _response(400)

        headers = event.get("headers") or {}
        if not _is_signature_valid(raw_body, headers):
            log_warn("signature_verification_failed", {})
            return _response(401)

        try:
            body = json.loads(raw_body)
        except json.JSONDecodeError as e:
            log_warn("request_body_invalid_json", {}, e)
            return _response(400)
        if not isinstance(body, dict):
            log_warn("request_body_invalid_json", {"reason": "not_an_object"})
            return _response(400)

        result = classify(body, forward_mentions=config.forward_app_mentions())

        if isinstance(result, Challenge):
            log_info("url_verification_challenge", {"challenge_present": bool(result.token)})
            return _response(200, result.token, "text/plain")

        if isinstance(result, Accepted):
            try:
                publish_event(result.event)
            except QueuePublishError:
                # Slack retries delivery on 5xx
                return _response(500)
            return _response(200)

        log_info("event_dropped", {"reason": result.reason, "event_id": body.get("event_id")})
        return _response(200)

    except Exception as e:
        log_exception("unhandled_exception", {}, e)
        return _response(500)
