"""
Concurrent download of Slack file attachments.

Slack's url_private_download links require the bot token as a bearer
credential. All URLs of one prompt are fetched in parallel and the caller
waits until every download has finished or failed. A failed download
contributes nothing; partial results are returned.

The content type is detected from the downloaded bytes (magic numbers),
never from the Content-Type header Slack sends back.
"""

import io
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional

import requests

from logger import log_debug, log_error, log_info, log_warn
from parts import Blob

OCTET_STREAM = "application/octet-stream"

# (offset, signature, mime type)
_MAGIC_NUMBERS = [
    (0, b"%PDF-", "application/pdf"),
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"BM", "image/bmp"),
    (0, b"\x00\x00\x01\x00", "image/x-icon"),
    (0, b"%!PS-Adobe-", "application/postscript"),
    (0, b"\x1f\x8b\x08", "application/x-gzip"),
    (0, b"Rar!\x1a\x07", "application/x-rar-compressed"),
    (0, b"OggS\x00", "application/ogg"),
    (0, b"ID3", "audio/mpeg"),
    (0, b"\x1aE\xdf\xa3", "video/webm"),
    (4, b"ftyp", "video/mp4"),
]

_HTML_PREFIXES = (
    b"<!doctype html", b"<html", b"<head", b"<script", b"<iframe", b"<h1",
    b"<div", b"<font", b"<table", b"<a", b"<style", b"<title", b"<b",
    b"<body", b"<br", b"<p", b"<!--",
)

# First path component inside an OOXML package
_OOXML_TYPES = {
    "word/": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xl/": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt/": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}

_SNIFF_LENGTH = 512


def _sniff_zip(data: bytes) -> str:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = archive.namelist()
    except zipfile.BadZipFile:
        return "application/zip"
    for prefix, mime_type in _OOXML_TYPES.items():
        if any(name.startswith(prefix) for name in names):
            return mime_type
    return "application/zip"


def _is_html(head: bytes) -> bool:
    head = head.lstrip(b" \t\r\n\x0c").lower()
    for prefix in _HTML_PREFIXES:
        # Tag must be terminated by a space or ">"
        if head.startswith(prefix) and head[len(prefix):len(prefix) + 1] in (b" ", b">"):
            return True
    return False


def _is_text(head: bytes) -> bool:
    binary_bytes = set(range(0x00, 0x09)) | {0x0B, 0x0E, 0x0F} | set(range(0x10, 0x1B)) | set(range(0x1C, 0x20))
    return not any(b in binary_bytes for b in head)


def detect_content_type(data: bytes) -> str:
    """
    Detect a MIME type from content bytes.

    Checks well-known magic numbers, OOXML packages, HTML and plain text, in
    that order. Unknown binary data is application/octet-stream.
    """
    if not data:
        return "text/plain"

    head = data[:_SNIFF_LENGTH]

    if head.startswith(b"RIFF") and head[8:12] == b"WEBP":
        return "image/webp"
    if head.startswith(b"RIFF") and head[8:12] == b"WAVE":
        return "audio/wave"
    if head.startswith(b"PK\x03\x04"):
        return _sniff_zip(data)

    for offset, signature, mime_type in _MAGIC_NUMBERS:
        if head[offset:offset + len(signature)] == signature:
            return mime_type

    if head.startswith(b"\xfe\xff") or head.startswith(b"\xff\xfe") or head.startswith(b"\xef\xbb\xbf"):
        return "text/plain"
    if _is_html(head):
        return "text/html"
    if _is_text(head):
        return "text/plain"
    return OCTET_STREAM


class FileFetcher:
    """Downloads Slack private files with the bot token."""

    def __init__(self, bot_token: str, timeout: Optional[float] = 30.0, session: Optional[requests.Session] = None):
        """
        Args:
            bot_token: Slack bot OAuth token (xoxb-*)
            timeout: Per-download timeout in seconds; None waits indefinitely
            session: Optional requests session (shared connection pool)
        """
        self._bot_token = bot_token
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch(self, url: str) -> Optional[Blob]:
        """Download one file; returns None on any failure."""
        if not url:
            return None

        try:
            response = self._session.get(
                url,
                headers={"Authorization": f"Bearer {self._bot_token}"},
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            log_error("file_fetch_failed", {"url": url[:100]}, e)
            return None

        if response.status_code != 200:
            log_warn(
                "file_fetch_failed",
                {"url": url[:100], "status_code": response.status_code},
            )
            return None

        data = response.content
        blob = Blob(data=data, mime_type=detect_content_type(data))
        log_debug("file_fetched", {"url": url[:100], "size": len(data), "mime_type": blob.mime_type})
        return blob

    def fetch_all(self, urls: List[str]) -> List[Blob]:
        """
        Download every URL concurrently and wait for all of them.

        Result order follows completion order, not input order. Failed
        downloads are logged and left out.
        """
        if not urls:
            return []

        blobs: List[Blob] = []
        with ThreadPoolExecutor(max_workers=len(urls)) as executor:
            futures = {executor.submit(self.fetch, url): url for url in urls}
            for future in as_completed(futures):
                try:
                    blob = future.result()
                except Exception as e:
                    log_error("file_fetch_unexpected_error", {"url": futures[future][:100]}, e)
                    continue
                if blob is not None:
                    blobs.append(blob)

        log_info("files_fetched", {"requested": len(urls), "fetched": len(blobs)})
        return blobs
