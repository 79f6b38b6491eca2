from __future__ import annotations

import datetime as dt
import io
import posixpath
import uuid
import zipfile
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from lxml import etree as LXML_ET

from .models import BookInfo, Chapter
from .rules import DEFAULT_RULES, RuleSet
from .themes import TXT_STYLE, StyleSpec

EPUB_MIMETYPE = b"application/epub+zip"
CONTAINER_PATH = "META-INF/container.xml"
PACKAGE_DIR = "EPUB"
OPF_NAME = "content.opf"
NCX_NAME = "toc.ncx"
NAV_NAME = "nav.xhtml"
CSS_HREF = "Styles/style.css"
TOC_TITLE = "目录"
COMPRESS_LEVEL = 9

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
OPF_NS = "http://www.idpf.org/2007/opf"
NCX_NS = "http://www.daisy.org/z3986/2005/ncx/"
EPUB_TEMPLATES_DIR = Path(__file__).resolve().parent / "epub_templates"


class EpubArchiveError(ValueError):
    pass


@dataclass(frozen=True)
class ArchiveEntry:
    path: str
    data: bytes
    compress_type: int = zipfile.ZIP_DEFLATED


@dataclass
class _BuildChapter:
    id: str
    title: str
    href: str
    content: str


@dataclass
class PackageOrder:
    title: Optional[str] = None
    spine: list[str] = field(default_factory=list)
    ncx: list[str] = field(default_factory=list)
    nav: list[str] = field(default_factory=list)
    nav_titles: list[str] = field(default_factory=list)


@lru_cache(maxsize=1)
def _epub_template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(EPUB_TEMPLATES_DIR)),
        autoescape=select_autoescape(
            enabled_extensions=("xml.j2", "xhtml.j2", "opf.j2", "ncx.j2"),
            default_for_string=False,
        ),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _render_epub_template(template_name: str, **context: object) -> str:
    return _epub_template_env().get_template(template_name).render(**context)


def new_book_id() -> str:
    return str(uuid.uuid4())


def modified_timestamp(now: Optional[dt.datetime] = None) -> str:
    moment = now or dt.datetime.now(dt.timezone.utc)
    return moment.astimezone(dt.timezone.utc).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def content_paragraphs(content: str) -> list[str]:
    return [line.strip() for line in content.split("\n") if line.strip()]


def render_stylesheet(style: StyleSpec) -> str:
    return _render_epub_template("style.css.j2", style=style)


def _render_chapter(chapter: Chapter, lang: str, *, first: bool) -> str:
    return _render_epub_template(
        "chapter.xhtml.j2",
        language=lang,
        title=chapter.title,
        first=first,
        css_href=posixpath.relpath(CSS_HREF, "Text"),
        paragraphs=content_paragraphs(chapter.content),
    )


def write_archive(entries: Iterable[ArchiveEntry]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for entry in entries:
            if entry.compress_type == zipfile.ZIP_STORED:
                zf.writestr(entry.path, entry.data, compress_type=zipfile.ZIP_STORED)
            else:
                zf.writestr(entry.path, entry.data, compress_type=entry.compress_type, compresslevel=COMPRESS_LEVEL)
    return buffer.getvalue()


def build_epub(
    chapters: list[Chapter],
    book_info: BookInfo,
    *,
    style: StyleSpec = TXT_STYLE,
    rules: RuleSet = DEFAULT_RULES,
    book_id: Optional[str] = None,
    modified: Optional[dt.datetime] = None,
) -> bytes:
    if not chapters:
        raise ValueError("Cannot build an EPUB without chapters")

    lang = rules.config.language_tag
    author = book_info.author or rules.config.unknown_author
    identifier = book_id or new_book_id()
    sections = [
        _BuildChapter(
            id=chapter.id,
            title=chapter.title,
            href=f"Text/{chapter.id}.xhtml",
            content=_render_chapter(chapter, lang, first=idx == 0),
        )
        for idx, chapter in enumerate(chapters)
    ]

    opf_path = f"{PACKAGE_DIR}/{OPF_NAME}"
    context = {
        "book_id": identifier,
        "title": book_info.title,
        "author": author,
        "language": lang,
        "chapters": sections,
        "css_href": CSS_HREF,
    }
    container_xml = _render_epub_template("container.xml.j2", opf_path=opf_path)
    opf_xml = _render_epub_template("content.opf.j2", modified=modified_timestamp(modified), **context)
    ncx_xml = _render_epub_template("toc.ncx.j2", **context)
    nav_xhtml = _render_epub_template("nav.xhtml.j2", toc_title=TOC_TITLE, **context)

    # EPUB readers sniff the format from the first, uncompressed member.
    entries = [
        ArchiveEntry("mimetype", EPUB_MIMETYPE, zipfile.ZIP_STORED),
        ArchiveEntry(CONTAINER_PATH, container_xml.encode("utf-8")),
        ArchiveEntry(opf_path, opf_xml.encode("utf-8")),
        ArchiveEntry(f"{PACKAGE_DIR}/{NCX_NAME}", ncx_xml.encode("utf-8")),
        ArchiveEntry(f"{PACKAGE_DIR}/{NAV_NAME}", nav_xhtml.encode("utf-8")),
        ArchiveEntry(f"{PACKAGE_DIR}/{CSS_HREF}", render_stylesheet(style).encode("utf-8")),
    ]
    entries.extend(
        ArchiveEntry(f"{PACKAGE_DIR}/{section.href}", section.content.encode("utf-8")) for section in sections
    )
    return write_archive(entries)


def open_archive(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data), "r")
    except zipfile.BadZipFile as exc:
        raise EpubArchiveError(f"无效的 EPUB 文件：{exc}") from exc


def _tag_local_name(tag: object) -> str:
    if not tag or not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _xml_root_from_bytes(raw: bytes) -> LXML_ET._Element:
    parser = LXML_ET.XMLParser(resolve_entities=False, no_network=True, recover=True)
    root = LXML_ET.fromstring(raw, parser=parser)
    if root is None:
        raise EpubArchiveError("无法解析 XML 文档")
    return root


def _read_member(zf: zipfile.ZipFile, name: str) -> bytes:
    try:
        return zf.read(name)
    except KeyError as exc:
        raise EpubArchiveError(f"缺少 {name}") from exc


def _resolve_href(base_member: str, href: str) -> str:
    raw = (href or "").split("#", 1)[0].strip()
    base_dir = PurePosixPath(base_member).parent.as_posix()
    joined = posixpath.join(base_dir, raw) if base_dir not in {"", "."} else raw
    return posixpath.normpath(joined)


def _opf_path_from_container(zf: zipfile.ZipFile) -> str:
    root = _xml_root_from_bytes(_read_member(zf, CONTAINER_PATH))
    for node in root.iter():
        if _tag_local_name(node.tag) == "rootfile":
            full_path = (node.attrib.get("full-path") or "").strip()
            if full_path:
                return full_path
    raise EpubArchiveError("container.xml 中缺少 OPF 路径")


def read_package_order(data: bytes) -> PackageOrder:
    """Read the reading order an EPUB declares in its spine, NCX and nav.

    Paths are returned relative to the archive root so the three lists can be
    compared directly. The navigation document itself is left out of the
    spine list.
    """
    order = PackageOrder()
    with open_archive(data) as zf:
        opf_path = _opf_path_from_container(zf)
        opf = _xml_root_from_bytes(_read_member(zf, opf_path))

        manifest: dict[str, tuple[str, set[str]]] = {}
        for node in opf.xpath("//*[local-name()='manifest']/*[local-name()='item']"):
            properties = set((node.attrib.get("properties") or "").split())
            manifest[node.attrib.get("id", "")] = (_resolve_href(opf_path, node.attrib.get("href", "")), properties)

        titles = opf.xpath("//*[local-name()='metadata']/*[local-name()='title']")
        if titles:
            order.title = "".join(titles[0].itertext()).strip() or None

        nav_path: Optional[str] = None
        for path, properties in manifest.values():
            if "nav" in properties:
                nav_path = path
        for itemref in opf.xpath("//*[local-name()='spine']/*[local-name()='itemref']"):
            item = manifest.get(itemref.attrib.get("idref", ""))
            if item is None or item[0] == nav_path:
                continue
            order.spine.append(item[0])

        ncx_ref = opf.xpath("//*[local-name()='spine']/@toc")
        if ncx_ref and ncx_ref[0] in manifest:
            ncx_path = manifest[ncx_ref[0]][0]
            ncx = _xml_root_from_bytes(_read_member(zf, ncx_path))
            for content in ncx.xpath("//*[local-name()='navPoint']/*[local-name()='content']"):
                order.ncx.append(_resolve_href(ncx_path, content.attrib.get("src", "")))

        if nav_path:
            nav = _xml_root_from_bytes(_read_member(zf, nav_path))
            for link in nav.xpath("//*[local-name()='nav']//*[local-name()='a'][@href]"):
                order.nav.append(_resolve_href(nav_path, link.attrib["href"]))
                order.nav_titles.append("".join(link.itertext()).strip())
    return order
