from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class BookInfo:
    title: str
    author: str = ""


@dataclass
class Chapter:
    id: str
    title: str
    content: str


def chapter_id(index: int) -> str:
    return f"chapter_{index}"


def renumber_chapters(chapters: list[Chapter]) -> list[Chapter]:
    return [replace(chapter, id=chapter_id(idx)) for idx, chapter in enumerate(chapters)]

