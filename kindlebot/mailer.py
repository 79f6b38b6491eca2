from __future__ import annotations

import logging
import re
import smtplib
import ssl
from email.message import EmailMessage

from .env import read_env, read_env_int, require_env

logger = logging.getLogger("kindlebot.mailer")

EPUB_CONTENT_TYPE = ("application", "epub+zip")
SUBJECT = "Kindle Document"
BODY = "Sent from Telegram Kindle Bot"
SMTP_TIMEOUT = 60.0
EXTENSION_RE = re.compile(r"\.[^./\\]+$")


class MailerError(RuntimeError):
    pass


def ensure_epub_filename(filename: str) -> str:
    if filename.lower().endswith(".epub"):
        return filename
    return f"{EXTENSION_RE.sub('', filename)}.epub"


def build_message(sender: str, recipient: str, filename: str, data: bytes) -> EmailMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = SUBJECT
    message.set_content(BODY)
    maintype, subtype = EPUB_CONTENT_TYPE
    message.add_attachment(data, maintype=maintype, subtype=subtype, filename=ensure_epub_filename(filename))
    return message


def _connect(host: str, port: int) -> smtplib.SMTP:
    if port == 465:
        return smtplib.SMTP_SSL(host, port, timeout=SMTP_TIMEOUT, context=ssl.create_default_context())
    client = smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT)
    client.starttls(context=ssl.create_default_context())
    return client


def send_to_kindle(filename: str, data: bytes) -> None:
    recipient = require_env("KINDLE_EMAIL", MailerError)
    user = require_env("SMTP_USER", MailerError)
    password = require_env("SMTP_PASS", MailerError)
    host = read_env("SMTP_HOST", "smtp.163.com") or "smtp.163.com"
    port = read_env_int("SMTP_PORT", 465)

    message = build_message(user, recipient, filename, data)
    try:
        with _connect(host, port) as client:
            client.login(user, password)
            client.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailerError(f"邮件发送失败：{exc}") from exc
    logger.info("sent %s (%d bytes) to %s", ensure_epub_filename(filename), len(data), recipient)
