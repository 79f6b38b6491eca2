from __future__ import annotations

import asyncio
import html
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .convert import SUPPORTED_EXTENSIONS, ConversionResult, convert_document, file_extension
from .dedupe import UpdateCache
from .env import read_env_int
from .mailer import ensure_epub_filename, send_to_kindle
from .telegram import TelegramError, download_file, get_chat_id, get_document, get_file, get_message_text, send_message

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_CONVERT_TIMEOUT = 120
MIB = 1024 * 1024

app = FastAPI()
logger = logging.getLogger("kindlebot.web")
processed_updates = UpdateCache(max_size=1000)


def max_file_size() -> int:
    return read_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE)


def convert_timeout() -> int:
    return read_env_int("KINDLEBOT_CONVERT_TIMEOUT", DEFAULT_CONVERT_TIMEOUT)


def _mib(size: int) -> int:
    return round(size / MIB)


def help_message() -> str:
    return (
        "📚 <b>Kindle Bot 使用说明</b>\n\n"
        "发送 <b>TXT</b> 文件：\n"
        "• 自动转换为 EPUB 格式\n"
        "• 智能识别书名、作者和章节\n"
        "• 发送到您的 Kindle\n\n"
        "发送 <b>EPUB</b> 文件：\n"
        "• 自动调整行高和段间距\n"
        "• 清理文件名中的 (Z-Library)\n"
        "• 发送到您的 Kindle\n\n"
        f"⚠️ 文件大小限制：{_mib(max_file_size())}MB"
    )


def _ok() -> JSONResponse:
    return JSONResponse({"ok": True})


async def _reply(chat_id: int, text: str) -> None:
    await run_in_threadpool(send_message, chat_id, text)


def rejection_reason(filename: str, size: int) -> Optional[str]:
    limit = max_file_size()
    if size > limit:
        return f"❌ 文件过大，不予处理。\n\n文件大小：{_mib(size)}MB\n限制：{_mib(limit)}MB"
    if file_extension(filename) not in SUPPORTED_EXTENSIONS:
        return "❌ 不支持的文件格式。\n\n请发送 TXT 或 EPUB 文件。"
    return None


def _fetch_document(file_id: str) -> bytes:
    info = get_file(file_id)
    file_path = info.get("file_path")
    if not file_path:
        raise TelegramError("无法获取文件路径")
    return download_file(file_path)


async def run_conversion(filename: str, data: bytes) -> ConversionResult:
    # A timed-out conversion is abandoned as a whole; nothing is sent.
    return await asyncio.wait_for(run_in_threadpool(convert_document, filename, data), timeout=convert_timeout())


async def handle_document(chat_id: int, document: dict) -> None:
    filename = str(document.get("file_name") or "unknown")
    size = int(document.get("file_size") or 0)

    reason = rejection_reason(filename, size)
    if reason:
        await _reply(chat_id, reason)
        return

    await _reply(chat_id, "⏳ 正在处理文件...")
    try:
        data = await run_in_threadpool(_fetch_document, str(document.get("file_id") or ""))
        if file_extension(filename) == "txt":
            await _reply(chat_id, "📖 正在转换 TXT 为 EPUB...")
        else:
            await _reply(chat_id, "✨ 正在调整 EPUB 样式...")
        result = await run_conversion(filename, data)
        epub_filename = ensure_epub_filename(result.filename)

        await _reply(chat_id, "📧 正在发送到 Kindle...")
        await run_in_threadpool(send_to_kindle, epub_filename, result.archive)
        await _reply(chat_id, f"✅ 已发送到 Kindle！\n\n📚 {html.escape(epub_filename, quote=False)}")
    except asyncio.TimeoutError:
        logger.warning("conversion of %s timed out after %ss", filename, convert_timeout())
        await _reply(chat_id, "❌ 处理失败：转换超时")
    except Exception as exc:
        logger.exception("failed to process %s", filename)
        await _reply(chat_id, f"❌ 处理失败：{html.escape(str(exc) or '未知错误', quote=False)}")


@app.get("/healthz")
async def healthz() -> JSONResponse:
    return _ok()


@app.post("/api/webhook")
async def webhook(request: Request) -> JSONResponse:
    try:
        update = await request.json()
    except ValueError:
        return _ok()
    if not isinstance(update, dict):
        return _ok()

    try:
        update_id = update.get("update_id")
        if isinstance(update_id, int) and processed_updates.seen(update_id):
            logger.info("skipping already processed update_id %s", update_id)
            return _ok()

        chat_id = get_chat_id(update)
        if chat_id is None:
            return _ok()

        text = get_message_text(update)
        if text and text.strip().lower() in {"/start", "/help"}:
            await _reply(chat_id, help_message())
            return _ok()

        document = get_document(update)
        if document:
            await handle_document(chat_id, document)
    except Exception:
        logger.exception("webhook handler crashed")
    # Telegram retries any non-200 answer.
    return _ok()
