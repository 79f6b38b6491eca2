from __future__ import annotations

import io
import re
from typing import Iterable, Optional

from .models import Chapter, chapter_id, renumber_chapters
from .rules import DEFAULT_RULES, RuleSet

WHITESPACE_RE = re.compile(r"\s")


class NoChaptersError(ValueError):
    def __init__(self, message: str = "无法识别任何章节内容") -> None:
        super().__init__(message)


def _iter_text_lines(text: str) -> Iterable[str]:
    with io.StringIO(text) as stream:
        for raw in stream:
            yield raw.rstrip("\r\n")


def _leading_whitespace(line: str) -> int:
    return len(line) - len(line.lstrip())


def is_chapter_title(line: str, rules: RuleSet = DEFAULT_RULES) -> bool:
    s = line.strip()
    if not s or len(s) > rules.max_title_length:
        return False
    # Dialogue lines are never headings.
    if s[0] in rules.quote_chars or s[-1] in rules.quote_chars:
        return False
    if rules.date_re.match(s):
        return False
    if _leading_whitespace(line) > rules.title_prefix_length:
        return False
    return rules.chapter_re.match(s) is not None


def parse_chapters(text: str, rules: RuleSet = DEFAULT_RULES) -> list[Chapter]:
    chapters: list[Chapter] = []
    current: Optional[Chapter] = None
    body_lines: list[str] = []
    next_index = 0

    def take_body() -> str:
        nonlocal body_lines
        body = "\n".join(body_lines).strip()
        body_lines = []
        return body

    for line in _iter_text_lines(text):
        if not is_chapter_title(line, rules):
            body_lines.append(line)
            continue

        body = take_body()
        if current is not None:
            if body:
                current.content = body
                chapters.append(current)
        elif body:
            chapters.append(Chapter(id=chapter_id(next_index), title=rules.config.prologue_title, content=body))
            next_index += 1

        current = Chapter(id=chapter_id(next_index), title=line.strip(), content="")
        next_index += 1

    body = take_body()
    if current is not None:
        if body:
            current.content = body
            chapters.append(current)
    elif body:
        chapters.append(Chapter(id=chapter_id(0), title=rules.config.body_title, content=body))

    if not chapters:
        raise NoChaptersError()
    return chapters


def content_length(content: str) -> int:
    return len(WHITESPACE_RE.sub("", content))


def merge_short_chapters(chapters: list[Chapter], rules: RuleSet = DEFAULT_RULES) -> list[Chapter]:
    merged: list[Chapter] = []
    for chapter in chapters:
        if merged and content_length(chapter.content) < rules.min_chapter_length:
            prev = merged[-1]
            prev.content = f"{prev.content}\n\n{chapter.content}"
            continue
        merged.append(Chapter(id=chapter.id, title=chapter.title, content=chapter.content))
    return renumber_chapters(merged)
