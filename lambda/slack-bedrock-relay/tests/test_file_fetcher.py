"""
Unit tests for concurrent attachment download and content type detection.
"""

import io
import threading
import time
import zipfile
from unittest.mock import MagicMock, Mock

import requests

from file_fetcher import FileFetcher, detect_content_type


def _zip_with(name: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        archive.writestr(name, "<xml/>")
    return buffer.getvalue()


def _response(status_code=200, content=b"hello"):
    response = Mock()
    response.status_code = status_code
    response.content = content
    return response


class TestDetectContentType:
    def test_images(self):
        assert detect_content_type(b"\x89PNG\r\n\x1a\n" + b"\x00" * 16) == "image/png"
        assert detect_content_type(b"\xff\xd8\xff\xe0" + b"\x00" * 16) == "image/jpeg"
        assert detect_content_type(b"GIF89a" + b"\x00" * 16) == "image/gif"
        assert detect_content_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"

    def test_pdf(self):
        assert detect_content_type(b"%PDF-1.7\n...") == "application/pdf"

    def test_office_documents(self):
        assert detect_content_type(_zip_with("word/document.xml")) == (
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        )
        assert detect_content_type(_zip_with("xl/workbook.xml")) == (
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )

    def test_plain_zip(self):
        assert detect_content_type(_zip_with("data/readme.txt")) == "application/zip"

    def test_html_and_text(self):
        assert detect_content_type(b"  <!DOCTYPE html><html></html>") == "text/html"
        assert detect_content_type("name,age\nアリス,30\n".encode("utf-8")) == "text/plain"

    def test_unknown_binary(self):
        assert detect_content_type(b"\x00\x01\x02\x03\x04binary") == "application/octet-stream"

    def test_ignores_misleading_extension_like_content(self):
        # A PNG served under any URL or header is still a PNG
        assert detect_content_type(b"\x89PNG\r\n\x1a\n") == "image/png"


class TestFetch:
    def test_sends_bearer_token(self):
        session = MagicMock()
        session.get.return_value = _response(content=b"%PDF-1.4")

        blob = FileFetcher("xoxb-test", session=session).fetch("https://files.slack.com/a")

        assert blob.mime_type == "application/pdf"
        assert blob.data == b"%PDF-1.4"
        kwargs = session.get.call_args[1]
        assert kwargs["headers"] == {"Authorization": "Bearer xoxb-test"}

    def test_non_200_returns_none(self):
        session = MagicMock()
        session.get.return_value = _response(status_code=403)

        assert FileFetcher("xoxb-test", session=session).fetch("https://files.slack.com/a") is None

    def test_request_error_returns_none(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("down")

        assert FileFetcher("xoxb-test", session=session).fetch("https://files.slack.com/a") is None

    def test_empty_url_skipped(self):
        session = MagicMock()

        assert FileFetcher("xoxb-test", session=session).fetch("") is None
        session.get.assert_not_called()


class TestFetchAll:
    def test_empty_input_returns_empty_list(self):
        session = MagicMock()

        assert FileFetcher("xoxb-test", session=session).fetch_all([]) == []
        session.get.assert_not_called()

    def test_failed_download_left_out(self):
        responses = {
            "https://files.slack.com/1": _response(content=b"one"),
            "https://files.slack.com/2": _response(status_code=404),
            "https://files.slack.com/3": _response(content=b"three"),
        }
        session = MagicMock()
        session.get.side_effect = lambda url, **kwargs: responses[url]

        blobs = FileFetcher("xoxb-test", session=session).fetch_all(list(responses))

        assert len(blobs) == 2
        assert sorted(blob.data for blob in blobs) == [b"one", b"three"]
        assert session.get.call_count == 3

    def test_downloads_run_concurrently_and_all_complete(self):
        delays = {
            "https://files.slack.com/1": 0.3,
            "https://files.slack.com/2": 0.3,
            "https://files.slack.com/3": 0.3,
        }
        finished = []
        lock = threading.Lock()

        def slow_get(url, **kwargs):
            time.sleep(delays[url])
            with lock:
                finished.append(url)
            return _response(status_code=500 if url.endswith("2") else 200, content=url.encode())

        session = MagicMock()
        session.get.side_effect = slow_get

        start = time.monotonic()
        blobs = FileFetcher("xoxb-test", session=session).fetch_all(list(delays))
        elapsed = time.monotonic() - start

        assert len(blobs) == 2
        assert sorted(finished) == sorted(delays)
        # Wall time tracks the slowest download, not the sum
        assert elapsed < 0.8
