from __future__ import annotations

import logging
import re
import zipfile
import zlib

from .css import has_restyle_block, restyle_block, restyle_css
from .epub import ArchiveEntry, EpubArchiveError, open_archive, write_archive
from .rules import DEFAULT_RULES, RuleSet
from .themes import EPUB_STYLE, StyleSpec

logger = logging.getLogger("kindlebot.restyle")

CSS_SUFFIXES = (".css",)
MARKUP_SUFFIXES = (".xhtml", ".html", ".htm")
HEAD_CLOSE_RE = re.compile(r"</head\s*>", re.IGNORECASE)
BODY_OPEN_RE = re.compile(r"<body\b", re.IGNORECASE)
EXTENSION_SPACE_RE = re.compile(r"\s+(\.[A-Za-z0-9]+)$")


def style_tag(style: StyleSpec) -> str:
    return f'<style type="text/css">\n{restyle_block(style)}\n</style>'


def inject_style_tag(markup: str, style: StyleSpec) -> str:
    if has_restyle_block(markup):
        return markup
    tag = style_tag(style)
    closing = HEAD_CLOSE_RE.search(markup)
    if closing:
        idx = closing.start()
        return f"{markup[:idx]}{tag}\n{markup[idx:]}"
    opening = BODY_OPEN_RE.search(markup)
    if opening:
        idx = opening.start()
        return f"{markup[:idx]}{tag}\n{markup[idx:]}"
    return markup


def _rewrite_member(name: str, payload: bytes, style: StyleSpec) -> bytes:
    lower = name.lower()
    if lower.endswith(CSS_SUFFIXES):
        transform = restyle_css
    elif lower.endswith(MARKUP_SUFFIXES):
        transform = inject_style_tag
    else:
        return payload
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("leaving %s untouched: not valid utf-8", name)
        return payload
    return transform(text, style).encode("utf-8")


def restyle_epub(data: bytes, *, style: StyleSpec = EPUB_STYLE) -> bytes:
    """Apply the reading style to every stylesheet and document of an EPUB.

    Original rules are kept: line-height declarations are rewritten in place
    and a marked override block is appended, so running this twice produces
    the same archive contents as running it once. Members other than CSS and
    HTML are copied byte for byte.
    """
    with open_archive(data) as zf:
        infos = [info for info in zf.infolist() if not info.is_dir()]
        names = {info.filename for info in infos}
        if "mimetype" not in names:
            raise EpubArchiveError("无效的 EPUB 文件：缺少 mimetype")

        try:
            entries = [ArchiveEntry("mimetype", zf.read("mimetype"), zipfile.ZIP_STORED)]
            for info in infos:
                if info.filename == "mimetype":
                    continue
                payload = _rewrite_member(info.filename, zf.read(info.filename), style)
                entries.append(ArchiveEntry(info.filename, payload))
        # Encrypted members raise RuntimeError; unknown compression methods NotImplementedError.
        except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, RuntimeError, NotImplementedError) as exc:
            raise EpubArchiveError(f"无效的 EPUB 文件：{exc}") from exc

    return write_archive(entries)


def clean_filename(filename: str, rules: RuleSet = DEFAULT_RULES) -> str:
    cleaned = rules.site_token_re.sub("", filename)
    cleaned = EXTENSION_SPACE_RE.sub(r"\1", cleaned).strip()
    return cleaned or filename
