"""
Environment configuration for the relay Lambdas.

Values are read at call time so tests can patch os.environ. Secrets may come
from AWS Secrets Manager (SLACK_*_SECRET_NAME) or, as a fallback, directly
from environment variables.
"""

import json
import os
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from logger import log_exception

DEFAULT_REGION = "ap-northeast-1"
DEFAULT_MODEL_ID = "amazon.nova-pro-v1:0"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 1.0
DEFAULT_FILE_FETCH_TIMEOUT_SECONDS = 30.0

_TRUE_VALUES = ("1", "true", "yes", "on")

# Cache for secrets (per Lambda container)
_secrets_cache: dict[str, str] = {}


class ConfigurationError(Exception):
    """Raised when a required setting is missing."""


def _env_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def get_secret_from_secrets_manager(secret_name: str) -> Optional[str]:
    """
    Retrieve a secret value from AWS Secrets Manager with caching.

    JSON secrets of the form {"value": "..."} are unwrapped; any other
    SecretString is returned as-is.

    Returns:
        Secret value, or None if the lookup fails
    """
    if secret_name in _secrets_cache:
        return _secrets_cache[secret_name]

    try:
        client = boto3.client("secretsmanager", region_name=get_region())
        secret_string = client.get_secret_value(SecretId=secret_name)["SecretString"]
    except (ClientError, BotoCoreError) as e:
        log_exception("secret_retrieval_failed", {"secret_name": secret_name}, e)
        return None

    value = secret_string
    try:
        parsed = json.loads(secret_string)
        if isinstance(parsed, dict) and isinstance(parsed.get("value"), str):
            value = parsed["value"]
    except json.JSONDecodeError:
        pass

    _secrets_cache[secret_name] = value
    return value


def _get_secret(secret_name_var: str, plain_var: str) -> Optional[str]:
    secret_name = os.environ.get(secret_name_var)
    if secret_name:
        value = get_secret_from_secrets_manager(secret_name)
        if value:
            return value
    return os.environ.get(plain_var) or None


def get_region() -> str:
    return os.environ.get("AWS_REGION_NAME", DEFAULT_REGION)


def get_bot_token() -> str:
    """Return the Slack bot token; raises ConfigurationError when unset."""
    token = _get_secret("SLACK_BOT_TOKEN_SECRET_NAME", "SLACK_BOT_TOKEN")
    if not token:
        raise ConfigurationError("Slack bot token is not configured")
    return token


def get_signing_secret() -> Optional[str]:
    """Return the Slack signing secret, or None when verification is disabled."""
    return _get_secret("SLACK_SIGNING_SECRET_NAME", "SLACK_SIGNING_SECRET")


def get_queue_url() -> str:
    queue_url = os.environ.get("QUEUE_URL", "").strip()
    if not queue_url:
        raise ConfigurationError("QUEUE_URL environment variable not set")
    return queue_url


def get_model_id() -> str:
    return os.environ.get("BEDROCK_MODEL_ID", DEFAULT_MODEL_ID)


def get_max_tokens() -> int:
    raw = os.environ.get("BEDROCK_MAX_TOKENS")
    if raw:
        try:
            return int(raw)
        except ValueError:
            pass
    return DEFAULT_MAX_TOKENS


def get_temperature() -> float:
    return _env_float("BEDROCK_TEMPERATURE", DEFAULT_TEMPERATURE)


def get_file_fetch_timeout() -> float:
    return _env_float("FILE_FETCH_TIMEOUT_SECONDS", DEFAULT_FILE_FETCH_TIMEOUT_SECONDS)


def forward_app_mentions() -> bool:
    return _env_bool("FORWARD_APP_MENTIONS")


def is_debug() -> bool:
    return _env_bool("DEBUG")
