"""
Amazon Bedrock client for single-turn and chat-turn generation (Converse API).

Request parts (text / binary blobs) are converted to Converse content blocks:
- text -> {"text"}
- png / jpeg / gif / webp -> {"image"}
- pdf, csv, doc(x), xls(x), html, txt, md -> {"document"}
Other binary types are dropped with a warning.

The Converse response message becomes a single Candidate whose parts mirror
the returned content blocks.
"""

import re
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from logger import log_debug, log_info, log_warn, log_error
from parts import Blob, BlobPart, Candidate, GenerateResponse, Part, Role, TextPart, Turn

IMAGE_FORMATS = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/gif": "gif",
    "image/webp": "webp",
}

DOCUMENT_FORMATS = {
    "application/pdf": "pdf",
    "text/csv": "csv",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "text/html": "html",
    "text/plain": "txt",
    "text/markdown": "md",
}

_FORMAT_TO_MIME = {
    **{fmt: mime for mime, fmt in IMAGE_FORMATS.items()},
    **{fmt: mime for mime, fmt in DOCUMENT_FORMATS.items()},
}

# Converse rejects a document block without a text block in the same turn
DOCUMENT_PLACEHOLDER_TEXT = "Please read the attached document(s)."


class ModelInvocationError(Exception):
    """Raised when Bedrock fails to produce a response."""


def _bare_mime(mime_type: str) -> str:
    return mime_type.split(";")[0].strip().lower()


def _sanitize_document_name(name: str, max_length: int = 100) -> str:
    """Document names may only contain alphanumerics, spaces, hyphens, parentheses and brackets."""
    sanitized = re.sub(r"[^a-zA-Z0-9\s\-()\[\]]", "-", name)
    sanitized = re.sub(r"\s+", " ", sanitized).strip() or "document"
    return sanitized[:max_length]


def blob_to_content_block(blob: Blob, index: int = 0) -> Optional[Dict[str, Any]]:
    """
    Build a Converse content block for a blob.

    Returns:
        Image or document block, or None if Bedrock cannot take the type
    """
    mime_type = _bare_mime(blob.mime_type)
    if mime_type in IMAGE_FORMATS:
        return {"image": {"format": IMAGE_FORMATS[mime_type], "source": {"bytes": blob.data}}}
    if mime_type in DOCUMENT_FORMATS:
        return {
            "document": {
                "name": _sanitize_document_name(f"attachment {index + 1}"),
                "format": DOCUMENT_FORMATS[mime_type],
                "source": {"bytes": blob.data},
            }
        }
    return None


def parts_to_content(parts: List[Part]) -> List[Dict[str, Any]]:
    """Convert request parts to Converse content blocks."""
    content: List[Dict[str, Any]] = []
    blob_index = 0
    for part in parts:
        if isinstance(part, TextPart):
            if part.text.strip():
                content.append({"text": part.text})
        elif isinstance(part, BlobPart):
            block = blob_to_content_block(part.blob, blob_index)
            blob_index += 1
            if block is None:
                log_warn(
                    "unsupported_attachment_type",
                    {"mime_type": part.blob.mime_type, "size": len(part.blob.data)},
                )
                continue
            content.append(block)

    has_document = any("document" in block for block in content)
    has_text = any("text" in block for block in content)
    if has_document and not has_text:
        content.insert(0, {"text": DOCUMENT_PLACEHOLDER_TEXT})
    return content


def content_to_parts(content: List[Dict[str, Any]]) -> List[Part]:
    """Convert Converse response content blocks to parts."""
    result: List[Part] = []
    for block in content:
        if "text" in block:
            result.append(TextPart(block["text"]))
            continue
        for key in ("image", "document"):
            if key in block:
                payload = block[key]
                data = payload.get("source", {}).get("bytes")
                mime_type = _FORMAT_TO_MIME.get(payload.get("format", ""), "application/octet-stream")
                if data:
                    result.append(BlobPart(Blob(data=data, mime_type=mime_type)))
    return result


def turns_to_messages(turns: List[Turn]) -> List[Dict[str, Any]]:
    """
    Convert conversation turns to Converse messages.

    Converse needs alternating roles starting with a user turn: empty turns
    are skipped, consecutive turns of one role are merged and leading model
    turns are dropped.

    Converse takes image and document blocks in user messages only, so
    attachments on model turns (files the bot uploaded earlier) are left
    out and only their text is kept.
    """
    messages: List[Dict[str, Any]] = []
    for turn in turns:
        parts = turn.parts
        if turn.role is Role.MODEL:
            parts = [part for part in turn.parts if isinstance(part, TextPart)]
            if len(parts) != len(turn.parts):
                log_debug("model_turn_attachments_dropped", {"dropped": len(turn.parts) - len(parts)})
        content = parts_to_content(parts)
        if not content:
            continue
        if not messages and turn.role is Role.MODEL:
            continue
        if messages and messages[-1]["role"] == turn.role.value:
            messages[-1]["content"].extend(content)
        else:
            messages.append({"role": turn.role.value, "content": content})
    return messages


class BedrockModel:
    """Generative model backed by the Bedrock Runtime Converse API."""

    def __init__(
        self,
        model_id: str,
        region: str,
        max_tokens: int = 4096,
        temperature: float = 1.0,
        client: Optional[Any] = None,
    ):
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or boto3.client(service_name="bedrock-runtime", region_name=region)

    def generate_content(self, parts: List[Part]) -> GenerateResponse:
        """Single-turn generation."""
        return self._converse([Turn(Role.USER, list(parts))])

    def start_chat(self, history: Optional[List[Turn]] = None) -> "ChatSession":
        """Start a chat session seeded with prior turns."""
        return ChatSession(self, history or [])

    def _converse(self, turns: List[Turn]) -> GenerateResponse:
        messages = turns_to_messages(turns)
        if not messages or messages[-1]["role"] != Role.USER.value:
            raise ModelInvocationError("Conversation must end with a non-empty user turn")

        log_info(
            "bedrock_request",
            {
                "model_id": self.model_id,
                "message_count": len(messages),
                "content_blocks": [len(m["content"]) for m in messages],
            },
        )

        try:
            response = self._client.converse(
                modelId=self.model_id,
                messages=messages,
                inferenceConfig={"maxTokens": self.max_tokens, "temperature": self.temperature},
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            log_error(
                "bedrock_api_error",
                {"model_id": self.model_id, "error_code": error.get("Code"), "error_message": error.get("Message", "")},
                e,
            )
            raise ModelInvocationError(f"Bedrock error: {error.get('Code')}") from e
        except BotoCoreError as e:
            log_error("bedrock_api_error", {"model_id": self.model_id}, e)
            raise ModelInvocationError(f"Bedrock error: {e}") from e

        content = response.get("output", {}).get("message", {}).get("content", [])
        log_info(
            "bedrock_response",
            {
                "model_id": self.model_id,
                "stop_reason": response.get("stopReason"),
                "usage": response.get("usage"),
                "content_blocks": len(content),
            },
        )
        candidates = [Candidate(content_to_parts(content))] if content else []
        return GenerateResponse(candidates=candidates)


class ChatSession:
    """Multi-turn conversation; Converse is stateless, so history is kept here."""

    def __init__(self, model: BedrockModel, history: List[Turn]):
        self.model = model
        self.history: List[Turn] = list(history)

    def send_message(self, parts: List[Part]) -> GenerateResponse:
        """Send the next user turn; history grows only on success."""
        user_turn = Turn(Role.USER, list(parts))
        response = self.model._converse(self.history + [user_turn])
        self.history.append(user_turn)
        if response.candidates:
            self.history.append(Turn(Role.MODEL, list(response.candidates[0].parts)))
        return response
