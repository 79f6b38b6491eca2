from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .encoding import decode_text, detect_language, normalize_punctuation
from .epub import build_epub
from .metadata import resolve_book_info
from .models import BookInfo
from .parsing import merge_short_chapters, parse_chapters
from .restyle import clean_filename, restyle_epub
from .rules import DEFAULT_RULES, RuleSet
from .themes import EPUB_STYLE, TXT_STYLE, StyleSpec

logger = logging.getLogger("kindlebot.convert")

SUPPORTED_EXTENSIONS = ("txt", "epub")
UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


class UnsupportedDocumentError(ValueError):
    pass


@dataclass(frozen=True)
class ConversionResult:
    archive: bytes
    filename: str
    book_info: Optional[BookInfo] = None


def file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].strip().lower()


def safe_epub_filename(title: str, fallback: str = "book") -> str:
    cleaned = UNSAFE_FILENAME_RE.sub("_", title).strip(" .")
    return f"{cleaned or fallback}.epub"


def txt_to_epub(
    data: bytes,
    filename: str,
    *,
    rules: RuleSet = DEFAULT_RULES,
    style: StyleSpec = TXT_STYLE,
) -> ConversionResult:
    text = decode_text(data)
    lang = detect_language(text)
    text = normalize_punctuation(text, lang)
    logger.info("converting %s (language %s, %d chars)", filename, lang, len(text))

    book_info = resolve_book_info(filename, text, rules)
    chapters = parse_chapters(text, rules)
    merged = merge_short_chapters(chapters, rules)
    logger.info("%s: %d chapters, %d after merging short ones", filename, len(chapters), len(merged))

    archive = build_epub(merged, book_info, style=style, rules=rules)
    return ConversionResult(archive=archive, filename=safe_epub_filename(book_info.title), book_info=book_info)


def convert_document(
    filename: str,
    data: bytes,
    *,
    rules: RuleSet = DEFAULT_RULES,
    style: Optional[StyleSpec] = None,
) -> ConversionResult:
    ext = file_extension(filename)
    if ext == "txt":
        return txt_to_epub(data, filename, rules=rules, style=style or TXT_STYLE)
    if ext == "epub":
        logger.info("restyling %s", filename)
        archive = restyle_epub(data, style=style or EPUB_STYLE)
        return ConversionResult(archive=archive, filename=clean_filename(filename, rules))
    raise UnsupportedDocumentError(f"不支持的文件格式：{ext or filename}")
