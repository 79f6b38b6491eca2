from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StyleSpec:
    name: str
    page_margin: str
    line_height: str
    text_align: str
    paragraph_indent: str
    paragraph_spacing: str
    title_align: str
    title_size: str
    title_bold: bool
    chapter_margin_top: str
    chapter_margin_bottom: str
    toc_item_spacing: str

    @property
    def title_weight(self) -> str:
        return "bold" if self.title_bold else "normal"


# Books generated from plain text.
TXT_STYLE = StyleSpec(
    name="txt",
    page_margin="5%",
    line_height="1.8",
    text_align="justify",
    paragraph_indent="2em",
    paragraph_spacing="0.5em",
    title_align="center",
    title_size="1.5em",
    title_bold=True,
    chapter_margin_top="2em",
    chapter_margin_bottom="1.5em",
    toc_item_spacing="0.5em",
)

# Incoming EPUBs; only line_height and paragraph_spacing are applied.
EPUB_STYLE = StyleSpec(
    name="epub",
    page_margin="5%",
    line_height="1.6",
    text_align="justify",
    paragraph_indent="2em",
    paragraph_spacing="0.6em",
    title_align="center",
    title_size="1.5em",
    title_bold=True,
    chapter_margin_top="2em",
    chapter_margin_bottom="1.5em",
    toc_item_spacing="0.5em",
)

STYLES = {style.name: style for style in (TXT_STYLE, EPUB_STYLE)}


def get_style(name: str) -> StyleSpec:
    try:
        return STYLES[name]
    except KeyError:
        raise KeyError(f"Unknown style profile: {name}") from None
