import io
import unittest
import zipfile
from unittest.mock import patch

from kindlebot.convert import (
    UnsupportedDocumentError,
    convert_document,
    file_extension,
    safe_epub_filename,
    txt_to_epub,
)
from kindlebot.css import RESTYLE_MARKER
from kindlebot.epub import read_package_order
from kindlebot.models import BookInfo
from kindlebot.parsing import NoChaptersError
from kindlebot.rules import with_overrides

BODY = "韩立从小就生活在山村里,家中兄弟姐妹众多.他说:“走吧!”" * 5


def _novel() -> bytes:
    text = (
        "书名：凡人修仙传\n"
        "作者：忘语\n"
        "\n"
        f"第一章 初入修仙界\n{BODY}\n"
        f"第二章 七玄门\n{BODY}\n"
        "第三章 短章\n很短的一章。\n"
        f"第四章 炼骨崖\n{BODY}\n"
    )
    return text.encode("utf-8")


class TxtToEpubTests(unittest.TestCase):
    def test_full_conversion(self) -> None:
        result = txt_to_epub(_novel(), "whatever.txt")
        self.assertEqual(result.book_info, BookInfo(title="凡人修仙传", author="忘语"))
        self.assertEqual(result.filename, "凡人修仙传.epub")
        order = read_package_order(result.archive)
        self.assertEqual(order.nav_titles, ["序", "第一章 初入修仙界", "第二章 七玄门", "第四章 炼骨崖"])
        self.assertEqual(order.spine, order.nav)
        self.assertEqual(order.spine, order.ncx)

    def test_punctuation_is_normalized(self) -> None:
        result = txt_to_epub(_novel(), "whatever.txt")
        with zipfile.ZipFile(io.BytesIO(result.archive)) as zf:
            chapter = zf.read("EPUB/Text/chapter_1.xhtml").decode("utf-8")
        self.assertIn("山村里，家中兄弟姐妹众多。他说：“走吧！”", chapter)

    def test_filename_scenario(self) -> None:
        data = f"第一章 初入修仙界\n{BODY}\n".encode("utf-8")
        result = convert_document("凡人修仙传(1-10)(z-lib.sk).txt", data)
        self.assertEqual(result.book_info, BookInfo(title="凡人修仙传", author=""))
        self.assertEqual(result.filename, "凡人修仙传.epub")
        self.assertEqual(read_package_order(result.archive).nav_titles, ["第一章 初入修仙界"])

    def test_gbk_input(self) -> None:
        data = f"第一章 初入修仙界\n{BODY}\n".encode("gbk")
        with patch("kindlebot.encoding.chardet.detect", return_value={"encoding": "GB2312", "confidence": 0.99}):
            result = txt_to_epub(data, "凡人修仙传.txt")
        self.assertEqual(read_package_order(result.archive).nav_titles, ["第一章 初入修仙界"])

    def test_alternate_rules(self) -> None:
        result = txt_to_epub(_novel(), "whatever.txt", rules=with_overrides(min_chapter_length=0))
        self.assertIn("第三章 短章", read_package_order(result.archive).nav_titles)

    def test_blank_text_fails(self) -> None:
        with self.assertRaises(NoChaptersError):
            convert_document("empty.txt", b"  \n\n")


class ConvertDocumentTests(unittest.TestCase):
    def test_epub_is_restyled(self) -> None:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
            zf.writestr("OEBPS/style.css", "p { line-height: 1.2; }")
        result = convert_document("三体 (Z-Library).epub", buffer.getvalue())
        self.assertEqual(result.filename, "三体.epub")
        self.assertIsNone(result.book_info)
        with zipfile.ZipFile(io.BytesIO(result.archive)) as zf:
            self.assertIn(RESTYLE_MARKER, zf.read("OEBPS/style.css").decode("utf-8"))

    def test_unsupported_extension(self) -> None:
        with self.assertRaises(UnsupportedDocumentError) as ctx:
            convert_document("book.pdf", b"%PDF")
        self.assertIn("pdf", str(ctx.exception))
        with self.assertRaises(UnsupportedDocumentError):
            convert_document("README", b"text")

    def test_extension_is_case_insensitive(self) -> None:
        self.assertEqual(file_extension("Book.TXT"), "txt")
        self.assertEqual(file_extension("archive.tar.epub"), "epub")
        self.assertEqual(file_extension("noext"), "")

    def test_safe_epub_filename(self) -> None:
        self.assertEqual(safe_epub_filename('a/b:c?"d"'), "a_b_c__d_.epub")
        self.assertEqual(safe_epub_filename("  "), "book.epub")
        self.assertEqual(safe_epub_filename("凡人修仙传"), "凡人修仙传.epub")


if __name__ == "__main__":
    unittest.main()
