from __future__ import annotations

import io
import zipfile

import pytest
from bs4 import BeautifulSoup

from conftest import EpubSpec, Item, build_epub_bytes, chapter_html, simple_book
from epub_split.config import SplitSettings
from epub_split.core.archive_writer import ArchiveWriter
from epub_split.core.epub_parser import EpubParser
from epub_split.core.splitter import EpubSplitter
from epub_split.errors import ResourceCopyWarning


def _plan(spec: EpubSpec, size_mb: float = 0.002):
    book = EpubParser(build_epub_bytes(spec)).parse()
    splitter = EpubSplitter(book, SplitSettings(target_size_mb=size_mb))
    return book, splitter.plan()


def _open(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


def test_mimetype_is_first_and_stored() -> None:
    book, plan = _plan(simple_book(chapter_count=2))
    data = ArchiveWriter(book, len(plan.partitions)).build(plan.partitions[0])

    with _open(data) as zf:
        first = zf.infolist()[0]
        assert first.filename == "mimetype"
        assert first.compress_type == zipfile.ZIP_STORED
        assert zf.read("mimetype") == b"application/epub+zip"
        assert zf.infolist()[1].compress_type == zipfile.ZIP_DEFLATED
    # Readers sniff the literal at a fixed offset
    assert data[30:38] == b"mimetype"
    assert data[38:58] == b"application/epub+zip"


def test_chapters_and_resources_copied_byte_for_byte() -> None:
    book, plan = _plan(simple_book(chapter_count=2), size_mb=1)
    partition = plan.partitions[0]
    data = ArchiveWriter(book, 1).build(partition)

    with _open(data) as zf:
        for chapter in partition.chapters:
            assert zf.read("OEBPS/" + chapter.href) == chapter.content
        assert zf.read("OEBPS/styles/style.css") == book.manifest["css"].content
        assert zf.read("OEBPS/images/bg.png") == book.manifest["bg"].content


def test_package_document_is_regenerated_per_part() -> None:
    book, plan = _plan(simple_book(chapter_count=6, padding=600))
    assert len(plan.partitions) > 1
    second = plan.partitions[1]
    data = ArchiveWriter(book, len(plan.partitions)).build(second)

    with _open(data) as zf:
        container = BeautifulSoup(zf.read("META-INF/container.xml"), "xml")
        assert container.find("rootfile")["full-path"] == "OEBPS/content.opf"
        opf = BeautifulSoup(zf.read("OEBPS/content.opf"), "xml")

    assert opf.find("title").get_text() == f"Test Book (Part 2/{len(plan.partitions)})"
    assert opf.find("identifier").get_text() == "urn:test:book_part2"
    assert opf.find("creator").get_text() == "Jane Doe"

    items = {item["id"]: item for item in opf.find("manifest").find_all("item")}
    chapter_ids = [f"p2-c{i:04d}" for i in range(1, len(second.chapters) + 1)]
    assert [ref["idref"] for ref in opf.find("spine").find_all("itemref")] == chapter_ids
    assert [items[i]["href"] for i in chapter_ids] == [c.href for c in second.chapters]
    assert {items[i]["href"] for i in items if i.startswith("p2-r")} == {
        "styles/style.css",
        "images/bg.png",
    }
    assert items["nav"]["properties"] == "nav"


def test_navigation_lists_exactly_the_parts_chapters() -> None:
    book, plan = _plan(simple_book(chapter_count=6, padding=600))
    writer = ArchiveWriter(book, len(plan.partitions))

    for partition in plan.partitions:
        with _open(writer.build(partition)) as zf:
            names = set(zf.namelist())
            nav = BeautifulSoup(zf.read("OEBPS/nav.xhtml"), "xml")
            ncx = BeautifulSoup(zf.read("OEBPS/toc.ncx"), "xml")

        nav_hrefs = [a["href"] for a in nav.find_all("a")]
        ncx_hrefs = [c["src"] for c in ncx.find_all("content")]
        expected = [c.href for c in partition.chapters]

        assert nav_hrefs == expected
        assert ncx_hrefs == expected
        assert all("OEBPS/" + href in names for href in nav_hrefs)
        assert [t.get_text() for t in nav.find_all("a")] == [c.title for c in partition.chapters]


def test_generated_names_avoid_copied_files() -> None:
    spec = EpubSpec(
        items=[
            Item("nav", "nav.xhtml", content=chapter_html(title="Contents")),
            Item("ch1", "ch1.xhtml", content=chapter_html(title="One")),
        ]
    )
    book, plan = _plan(spec, size_mb=1)
    data = ArchiveWriter(book, 1).build(plan.partitions[0])

    with _open(data) as zf:
        assert zf.read("OEBPS/nav.xhtml") == book.manifest["nav"].content
        assert "OEBPS/split-nav.xhtml" in zf.namelist()
        opf = BeautifulSoup(zf.read("OEBPS/content.opf"), "xml")

    assert opf.find("item", id="nav")["href"] == "split-nav.xhtml"


def test_hrefs_with_spaces_are_encoded_in_package_document() -> None:
    spec = EpubSpec(items=[Item("ch1", "My%20Chapter.xhtml", content=chapter_html(title="One"))])
    book, plan = _plan(spec, size_mb=1)
    data = ArchiveWriter(book, 1).build(plan.partitions[0])

    with _open(data) as zf:
        assert "OEBPS/My Chapter.xhtml" in zf.namelist()
        opf = BeautifulSoup(zf.read("OEBPS/content.opf"), "xml")

    assert opf.find("item", id="p1-c0001")["href"] == "My%20Chapter.xhtml"


def test_resource_missing_from_source_is_left_out_with_warning() -> None:
    spec = simple_book(chapter_count=1, with_stylesheet=False)
    spec.items.append(Item("font", "fonts/gone.ttf", "font/ttf"))
    book, plan = _plan(spec, size_mb=1)
    writer = ArchiveWriter(book, 1)

    with pytest.warns(ResourceCopyWarning, match="gone.ttf"):
        data = writer.build(plan.partitions[0])

    with _open(data) as zf:
        assert "OEBPS/fonts/gone.ttf" not in zf.namelist()
        opf = zf.read("OEBPS/content.opf").decode()
    assert "gone.ttf" not in opf
    assert len(writer.warnings) == 1
