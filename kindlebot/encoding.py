from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

import chardet

logger = logging.getLogger("kindlebot.encoding")

ENCODING_MAP = {
    "gb2312": "gbk",
    "gbk": "gbk",
    "gb18030": "gb18030",
    "big5": "big5",
    # BOM-aware; chardet reports this label for both byte orders.
    "utf-16": "utf-16",
    "utf-16le": "utf-16le",
    "utf-16be": "utf-16be",
    "ascii": "utf-8",
    "iso-8859-1": "utf-8",
    "windows-1252": "utf-8",
    "utf-8": "utf-8",
    "utf-8-sig": "utf-8",
}

CJK_RE = re.compile(r"[\u4e00-\u9fff]")
LATIN_WORD_RE = re.compile(r"[A-Za-z]+")

# Quote characters keep their open/close role; only the family changes.
QUOTE_TABLE = str.maketrans(
    {
        "「": "“",
        "」": "”",
        "『": "‘",
        "』": "’",
    }
)

ZH_SIMPLE_TABLE = str.maketrans({"?": "？", "!": "！", ":": "：", ";": "；"})
EN_SIMPLE_TABLE = str.maketrans({"，": ",", "。": ".", "？": "?", "！": "!", "：": ":", "；": ";"})

ELLIPSIS_RE = re.compile(r"\.{3,}")
DASH_RE = re.compile(r"-{2,}")
COMMA_RE = re.compile(r",(?!\d)")
PERIOD_RE = re.compile(r"\.(?!\d)(?!\.)")


def canonical_encoding(label: Optional[str]) -> str:
    if not label:
        return "utf-8"
    lower = label.strip().lower()
    return ENCODING_MAP.get(lower, lower)


def decode_text(data: bytes) -> str:
    detected = chardet.detect(data) or {}
    encoding = canonical_encoding(detected.get("encoding"))
    logger.debug("detected encoding %s (confidence %s) -> %s", detected.get("encoding"), detected.get("confidence"), encoding)
    try:
        text = data.decode(encoding, errors="replace")
    except LookupError:
        logger.info("unknown codec %s, falling back to utf-8", encoding)
        text = data.decode("utf-8", errors="replace")
    return text.lstrip("\ufeff")


def read_text(path: Path) -> str:
    return decode_text(path.read_bytes())


def detect_language(text: str) -> str:
    zh_count = len(CJK_RE.findall(text))
    en_count = len(LATIN_WORD_RE.findall(text))
    if zh_count > en_count * 2:
        return "zh"
    if en_count > zh_count:
        return "en"
    return "zh"


def _normalize_zh(text: str) -> str:
    result = ELLIPSIS_RE.sub("……", text)
    result = DASH_RE.sub("——", result)
    result = COMMA_RE.sub("，", result)
    result = PERIOD_RE.sub("。", result)
    return result.translate(ZH_SIMPLE_TABLE)


def _normalize_en(text: str) -> str:
    result = text.translate(EN_SIMPLE_TABLE)
    result = result.replace("……", "...")
    return result.replace("——", "--")


def normalize_punctuation(text: str, lang: str) -> str:
    if lang == "zh":
        result = _normalize_zh(text)
    elif lang == "en":
        result = _normalize_en(text)
    else:
        raise ValueError(f"Unsupported language: {lang}")
    return result.translate(QUOTE_TABLE)
