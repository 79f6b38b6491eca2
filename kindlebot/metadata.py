from __future__ import annotations

import re
from typing import Optional

from .models import BookInfo
from .rules import DEFAULT_RULES, RuleSet

EXTENSION_RE = re.compile(r"\.(txt|epub)$", re.IGNORECASE)


def strip_site_tokens(name: str, rules: RuleSet = DEFAULT_RULES) -> str:
    return rules.site_token_re.sub("", name)


def _strip_tags(name: str, rules: RuleSet) -> str:
    previous = None
    while previous != name:
        previous = name
        name = rules.leading_tags_re.sub("", name)
        name = rules.trailing_tags_re.sub("", name)
    return name.strip()


def _first_group(patterns: tuple[re.Pattern[str], ...], line: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.match(line)
        if match:
            value = match.group(1).strip()
            if value:
                return value
    return None


def extract_book_info_from_filename(filename: str, rules: RuleSet = DEFAULT_RULES) -> BookInfo:
    """Guess title and author from an uploaded file's name.

    Site attribution and bracketed status tags (``【完结】``, ``(精校)``) are
    removed first; then ``作者《书名》`` and the configured title/author
    patterns are tried in order. Nothing matching leaves the cleaned name as
    the title.
    """
    raw = EXTENSION_RE.sub("", filename.strip())
    name = _strip_tags(strip_site_tokens(raw, rules), rules)
    if not name:
        return BookInfo(title=raw.strip())

    author_first = rules.author_first_re.match(name)
    if author_first:
        return BookInfo(title=author_first.group(2).strip(), author=author_first.group(1).strip())

    for pattern in rules.title_author_patterns:
        match = pattern.match(name)
        if not match:
            continue
        if pattern.groups == 1:
            return BookInfo(title=match.group(1).strip())
        return BookInfo(title=match.group(1).strip(), author=(match.group(2) or "").strip())

    return BookInfo(title=name)


def extract_book_info_from_content(text: str, rules: RuleSet = DEFAULT_RULES) -> dict[str, str]:
    found: dict[str, str] = {}
    for line in text.split("\n")[: rules.content_scan_lines]:
        s = line.strip()
        if not s:
            continue
        if "title" not in found:
            title = _first_group(rules.content_title_patterns, s)
            if title:
                found["title"] = title
        if "author" not in found:
            author = _first_group(rules.content_author_patterns, s)
            if author:
                found["author"] = author
        if len(found) == 2:
            break
    return found


def resolve_book_info(filename: str, text: str, rules: RuleSet = DEFAULT_RULES) -> BookInfo:
    from_name = extract_book_info_from_filename(filename, rules)
    from_content = extract_book_info_from_content(text, rules)
    return BookInfo(
        title=from_content.get("title") or from_name.title,
        author=from_content.get("author") or from_name.author,
    )
