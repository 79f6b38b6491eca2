import io
import json
import os
import unittest
import urllib.error
from unittest.mock import MagicMock, patch

from kindlebot.telegram import (
    TelegramError,
    call_api,
    download_file,
    get_chat_id,
    get_document,
    get_message_text,
    send_message,
    set_webhook,
)

TOKEN_ENV = {"TELEGRAM_BOT_TOKEN": "123:abc"}


def _response(body: bytes) -> MagicMock:
    resp = MagicMock()
    resp.__enter__.return_value.read.return_value = body
    return resp


class CallApiTests(unittest.TestCase):
    def test_posts_json_payload(self) -> None:
        with patch.dict(os.environ, TOKEN_ENV, clear=True):
            with patch("kindlebot.telegram.urllib.request.urlopen", return_value=_response(b'{"ok": true, "result": 1}')) as urlopen:
                self.assertEqual(call_api("getMe", {"a": 1}), 1)
        request = urlopen.call_args[0][0]
        self.assertEqual(request.full_url, "https://api.telegram.org/bot123:abc/getMe")
        self.assertEqual(request.get_method(), "POST")
        self.assertEqual(json.loads(request.data), {"a": 1})
        self.assertEqual(request.get_header("Content-type"), "application/json")

    def test_not_ok_raises(self) -> None:
        body = b'{"ok": false, "description": "Bad Request: chat not found"}'
        with patch.dict(os.environ, TOKEN_ENV, clear=True):
            with patch("kindlebot.telegram.urllib.request.urlopen", return_value=_response(body)):
                with self.assertRaises(TelegramError) as ctx:
                    call_api("sendMessage", {})
        self.assertIn("chat not found", str(ctx.exception))

    def test_garbage_response_raises(self) -> None:
        with patch.dict(os.environ, TOKEN_ENV, clear=True):
            with patch("kindlebot.telegram.urllib.request.urlopen", return_value=_response(b"<html>")):
                with self.assertRaises(TelegramError):
                    call_api("getMe", {})

    def test_http_error_raises(self) -> None:
        error = urllib.error.HTTPError(
            "https://api.telegram.org", 401, "Unauthorized", {}, io.BytesIO(b'{"description": "Unauthorized"}')
        )
        with patch.dict(os.environ, TOKEN_ENV, clear=True):
            with patch("kindlebot.telegram.urllib.request.urlopen", side_effect=error):
                with self.assertRaises(TelegramError) as ctx:
                    call_api("getMe", {})
        self.assertTrue(str(ctx.exception).startswith("HTTP 401"))

    def test_network_error_raises(self) -> None:
        with patch.dict(os.environ, TOKEN_ENV, clear=True):
            with patch("kindlebot.telegram.urllib.request.urlopen", side_effect=urllib.error.URLError("timed out")):
                with self.assertRaises(TelegramError):
                    call_api("getMe", {})

    def test_send_message_uses_html(self) -> None:
        with patch("kindlebot.telegram.call_api") as api:
            send_message(5, "<b>hi</b>")
        api.assert_called_once_with("sendMessage", {"chat_id": 5, "text": "<b>hi</b>", "parse_mode": "HTML"})

    def test_set_webhook(self) -> None:
        with patch("kindlebot.telegram.call_api", return_value=True) as api:
            self.assertTrue(set_webhook("https://bot.example.com/api/webhook"))
        api.assert_called_once_with(
            "setWebhook", {"url": "https://bot.example.com/api/webhook", "allowed_updates": ["message"]}
        )

    def test_download_file(self) -> None:
        with patch.dict(os.environ, TOKEN_ENV, clear=True):
            with patch("kindlebot.telegram.urllib.request.urlopen", return_value=_response(b"raw")) as urlopen:
                self.assertEqual(download_file("documents/file_1.txt"), b"raw")
        request = urlopen.call_args[0][0]
        self.assertEqual(request.full_url, "https://api.telegram.org/file/bot123:abc/documents/file_1.txt")


class UpdateAccessorTests(unittest.TestCase):
    def test_document_update(self) -> None:
        update = {
            "update_id": 1,
            "message": {
                "chat": {"id": 99},
                "document": {"file_id": "f1", "file_name": "book.txt", "file_size": 10},
            },
        }
        self.assertEqual(get_chat_id(update), 99)
        self.assertEqual(get_document(update)["file_id"], "f1")
        self.assertIsNone(get_message_text(update))

    def test_text_update(self) -> None:
        update = {"message": {"chat": {"id": "7"}, "text": "/start"}}
        self.assertEqual(get_chat_id(update), 7)
        self.assertEqual(get_message_text(update), "/start")
        self.assertIsNone(get_document(update))

    def test_update_without_message(self) -> None:
        for update in ({}, {"edited_message": {"chat": {"id": 1}}}, {"message": "oops"}):
            with self.subTest(update=update):
                self.assertIsNone(get_chat_id(update))
                self.assertIsNone(get_document(update))
                self.assertIsNone(get_message_text(update))


if __name__ == "__main__":
    unittest.main()
