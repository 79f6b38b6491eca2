from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional

CN_NUMERALS = "0-9０-９零〇一二两三四五六七八九十百千万"
EN_NUMBER_WORDS = (
    "one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve|thirteen|fourteen|"
    "fifteen|sixteen|seventeen|eighteen|nineteen|twenty|thirty|forty|fifty|hundred"
)

CHAPTER_PATTERNS = (
    rf"第\s*[{CN_NUMERALS}]+\s*[章回](?!合).*",
    rf"第\s*[{CN_NUMERALS}]+\s*[节卷集部篇](?:$|[\s:：、.·\-—]).*",
    rf"(?i:chapter)\s+(?:\d+|[IVXLCDM]+|(?i:{EN_NUMBER_WORDS})(?:[\s-](?i:{EN_NUMBER_WORDS}))*)\b.*",
    rf"[【\[［]\s*第?\s*[{CN_NUMERALS}]+\s*[章节回]?\s*[】\]］].*",
    r"\d{1,4}\s*[、.．。](?!\d)\s*\S.*",
    r"[一二三四五六七八九十百]+\s*、\s*\S.*",
    r"(?:序章|序|楔子|引子|序言|前言|尾声|后记|番外|终章)(?:$|[\s:：、·\-—].*)",
    r"(?i:prologue|epilogue)\b.*",
)

DATE_PATTERNS = (
    r"\d{4}\s*年\s*\d{1,2}\s*月(?:\s*\d{1,2}\s*[日号])?",
    r"\d{4}[-/.]\d{1,2}[-/.]\d{1,2}",
    r"\d{1,2}\s*月\s*\d{1,2}\s*[日号]",
)

SITE_MARKERS = (
    "z-library",
    "z-lib",
    "zlibrary",
    "1lib",
    "libgen",
    "annas-archive",
    "anna's archive",
)

TITLE_AUTHOR_PATTERNS = (
    r"^《(.+?)》\s*(?:作者)?[：:\s_-]*(.+)$",
    r"^(.+?)\s*作者\s*[：:]\s*(.+)$",
    r"^(.+?)\s+[bB][yY]\s+(.+)$",
    r"^(.+?)\s*[-—]+\s*(.+)$",
    r"^《(.+?)》$",
)

CONTENT_TITLE_PATTERNS = (
    r"^(?:书\s*名|(?i:title))\s*[：:]\s*(.+)$",
    r"^《(.+?)》$",
)

CONTENT_AUTHOR_PATTERNS = (
    r"^(?:作\s*者|(?i:author))\s*[：:]\s*(.+)$",
    r"^[bB]y\s+(.+)$",
)

BRACKET_OPEN = "[【［（(〔"
BRACKET_CLOSE = "]】］）)〕"


class RuleConfigError(ValueError):
    pass


@dataclass(frozen=True)
class RuleConfig:
    chapter_patterns: tuple[str, ...] = CHAPTER_PATTERNS
    date_patterns: tuple[str, ...] = DATE_PATTERNS
    quote_chars: str = "\"'“”‘’「」『』"
    max_title_length: int = 30
    title_prefix_length: int = 4
    min_chapter_length: int = 100
    content_scan_lines: int = 30
    site_markers: tuple[str, ...] = SITE_MARKERS
    title_author_patterns: tuple[str, ...] = TITLE_AUTHOR_PATTERNS
    content_title_patterns: tuple[str, ...] = CONTENT_TITLE_PATTERNS
    content_author_patterns: tuple[str, ...] = CONTENT_AUTHOR_PATTERNS
    prologue_title: str = "序"
    body_title: str = "正文"
    unknown_author: str = "未知"
    language_tag: str = "zh-CN"


@dataclass(frozen=True)
class RuleSet:
    config: RuleConfig
    chapter_re: re.Pattern[str]
    date_re: re.Pattern[str]
    quote_chars: frozenset[str]
    site_token_re: re.Pattern[str]
    leading_tags_re: re.Pattern[str]
    trailing_tags_re: re.Pattern[str]
    author_first_re: re.Pattern[str]
    title_author_patterns: tuple[re.Pattern[str], ...]
    content_title_patterns: tuple[re.Pattern[str], ...]
    content_author_patterns: tuple[re.Pattern[str], ...]

    @property
    def max_title_length(self) -> int:
        return self.config.max_title_length

    @property
    def title_prefix_length(self) -> int:
        return self.config.title_prefix_length

    @property
    def min_chapter_length(self) -> int:
        return self.config.min_chapter_length

    @property
    def content_scan_lines(self) -> int:
        return self.config.content_scan_lines


def _alternation(patterns: tuple[str, ...]) -> str:
    return "|".join(f"(?:{pattern})" for pattern in patterns)


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise RuleConfigError(f"正则编译失败：{pattern}：{exc}") from exc


def build_rules(config: RuleConfig) -> RuleSet:
    for name in ("max_title_length", "title_prefix_length", "min_chapter_length", "content_scan_lines"):
        if getattr(config, name) < 0:
            raise RuleConfigError(f"{name} 不能小于 0")
    if not config.chapter_patterns:
        raise RuleConfigError("chapter_patterns 不能为空")

    markers = "|".join(re.escape(marker) for marker in config.site_markers) or r"(?!)"
    site_token = (
        rf"\s*[{re.escape(BRACKET_OPEN)}][^{re.escape(BRACKET_CLOSE)}]*?"
        rf"(?i:{markers})[^{re.escape(BRACKET_CLOSE)}]*[{re.escape(BRACKET_CLOSE)}]"
    )
    tag = rf"[{re.escape(BRACKET_OPEN)}][^{re.escape(BRACKET_CLOSE)}]*[{re.escape(BRACKET_CLOSE)}]"

    return RuleSet(
        config=config,
        chapter_re=_compile(rf"^(?:{_alternation(config.chapter_patterns)})$"),
        date_re=_compile(rf"^(?:{_alternation(config.date_patterns)})") if config.date_patterns else _compile(r"(?!)"),
        quote_chars=frozenset(config.quote_chars),
        site_token_re=_compile(site_token),
        leading_tags_re=_compile(rf"^(?:{tag}\s*)+"),
        trailing_tags_re=_compile(rf"(?:\s*{tag})+$"),
        author_first_re=_compile(r"^(.+?)《(.+?)》$"),
        title_author_patterns=tuple(_compile(p) for p in config.title_author_patterns),
        content_title_patterns=tuple(_compile(p) for p in config.content_title_patterns),
        content_author_patterns=tuple(_compile(p) for p in config.content_author_patterns),
    )


def with_overrides(config: Optional[RuleConfig] = None, **changes: object) -> RuleSet:
    return build_rules(replace(config or DEFAULT_RULE_CONFIG, **changes))


DEFAULT_RULE_CONFIG = RuleConfig()
DEFAULT_RULES = build_rules(DEFAULT_RULE_CONFIG)
