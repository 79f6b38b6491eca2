from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any, Optional

from .env import require_env

API_BASE = "https://api.telegram.org"
REQUEST_TIMEOUT = 30.0


class TelegramError(RuntimeError):
    pass


def bot_token() -> str:
    return require_env("TELEGRAM_BOT_TOKEN", TelegramError)


def api_url(method: str) -> str:
    return f"{API_BASE}/bot{bot_token()}/{method}"


def file_url(file_path: str) -> str:
    return f"{API_BASE}/file/bot{bot_token()}/{file_path}"


def _open(request: urllib.request.Request, timeout: float) -> bytes:
    try:
        with urllib.request.urlopen(request, timeout=timeout) as resp:
            return resp.read()
    except urllib.error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise TelegramError(f"HTTP {exc.code}: {detail}") from exc
    except urllib.error.URLError as exc:
        raise TelegramError(str(exc.reason)) from exc


def call_api(method: str, payload: dict, timeout: float = REQUEST_TIMEOUT) -> Any:
    request = urllib.request.Request(
        api_url(method),
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    raw = _open(request, timeout)
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TelegramError(f"{method} 返回了无法解析的响应") from exc
    if not isinstance(data, dict) or not data.get("ok"):
        description = data.get("description") if isinstance(data, dict) else None
        raise TelegramError(f"{method} 失败：{description or raw.decode('utf-8', errors='replace')}")
    return data.get("result")


def send_message(chat_id: int, text: str) -> None:
    call_api("sendMessage", {"chat_id": chat_id, "text": text, "parse_mode": "HTML"})


def get_file(file_id: str) -> dict:
    result = call_api("getFile", {"file_id": file_id})
    if not isinstance(result, dict):
        raise TelegramError("获取文件信息失败")
    return result


def download_file(file_path: str, timeout: float = 60.0) -> bytes:
    return _open(urllib.request.Request(file_url(file_path)), timeout)


def set_webhook(url: str) -> Any:
    return call_api("setWebhook", {"url": url, "allowed_updates": ["message"]})


def get_message(update: dict) -> dict:
    message = update.get("message") if isinstance(update, dict) else None
    return message if isinstance(message, dict) else {}


def get_chat_id(update: dict) -> Optional[int]:
    chat = get_message(update).get("chat")
    if isinstance(chat, dict) and chat.get("id") is not None:
        return int(chat["id"])
    return None


def get_document(update: dict) -> Optional[dict]:
    document = get_message(update).get("document")
    return document if isinstance(document, dict) else None


def get_message_text(update: dict) -> Optional[str]:
    text = get_message(update).get("text")
    return text if isinstance(text, str) and text else None
