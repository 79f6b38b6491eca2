from __future__ import annotations

import re

from .themes import StyleSpec

RESTYLE_MARKER = "/* kindlebot restyle */"
HEADING_CLASS_MARKERS = ("title", "heading", "chapter", "h1", "h2", "h3")

# Value ends before `;`, `!`, `}` and trailing whitespace, so flags survive.
LINE_HEIGHT_RE = re.compile(r"line-height\s*:\s*[^;!}]*[^;!}\s]", re.IGNORECASE)


def _body_paragraph_selector() -> str:
    exclusions = "".join(f':not([class*="{marker}"])' for marker in HEADING_CLASS_MARKERS)
    return f"p{exclusions}"


def restyle_rules(style: StyleSpec) -> list[str]:
    return [
        f"body, p, div, span {{ line-height: {style.line_height} !important; }}",
        (
            f"{_body_paragraph_selector()} {{ margin: 0 0 {style.paragraph_spacing} 0 !important; "
            "padding-top: 0 !important; padding-bottom: 0 !important; }"
        ),
    ]


def restyle_block(style: StyleSpec) -> str:
    return "\n".join([RESTYLE_MARKER, *restyle_rules(style)])


def rewrite_line_heights(css_text: str, line_height: str) -> str:
    return LINE_HEIGHT_RE.sub(f"line-height: {line_height}", css_text)


def has_restyle_block(text: str) -> bool:
    return RESTYLE_MARKER in text


def restyle_css(css_text: str, style: StyleSpec) -> str:
    text = rewrite_line_heights(css_text, style.line_height)
    if has_restyle_block(text):
        return text
    return f"{text.rstrip()}\n\n{restyle_block(style)}\n"
