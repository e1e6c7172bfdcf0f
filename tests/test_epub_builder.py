from __future__ import annotations

import io
import zipfile
from pathlib import Path

from bs4 import BeautifulSoup

from epub_split.config import PdfConvertSettings
from epub_split.core.epub_builder import (
    EpubBuilder,
    assign_images,
    convert_pdf,
    render_chapter,
    text_to_paragraphs,
)
from epub_split.core.epub_parser import EpubParser
from epub_split.models.book import PackageMetadata
from epub_split.models.pdf import DetectionMethod, ParsedPdf, PdfImage, Section


def _parsed(sections: list[Section], images: list[PdfImage] | None = None) -> ParsedPdf:
    return ParsedPdf(
        metadata=PackageMetadata(
            title="Field Notes",
            author="A. Writer",
            identifier="urn:test:notes",
            publisher="Small Press",
            description="Notes & sketches",
        ),
        page_count=4,
        sections=sections,
        images=images or [],
        method=DetectionMethod.PATTERN,
        source_name="notes.pdf",
    )


def _image(page: int, name: str) -> PdfImage:
    return PdfImage(
        id=f"img-{name}",
        href=f"images/{name}.png",
        media_type="image/png",
        page=page,
        data=b"\x89PNG-" + name.encode(),
    )


SECTIONS = [
    Section(
        title="Chapter 1 Birds",
        content="Gulls <and> terns.\n\nSecond para\nwith a break.",
        page_start=0,
        page_end=1,
    ),
    Section(title="Chapter 2 Trees", content="Oaks.", page_start=2, page_end=3),
]


def test_text_to_paragraphs_escapes_and_breaks_lines() -> None:
    assert text_to_paragraphs("A & B\n\n\nline one\nline two\n\n   ") == [
        "<p>A &amp; B</p>",
        "<p>line one<br/>line two</p>",
    ]


def test_chapter_document_is_well_formed_xhtml() -> None:
    xhtml = render_chapter(SECTIONS[0], [_image(1, "gull")])
    soup = BeautifulSoup(xhtml, "xml")

    assert soup.find("h1", class_="chapter-title").get_text() == "Chapter 1 Birds"
    assert [p.get_text() for p in soup.find_all("p")] == [
        "Gulls <and> terns.",
        "Second parawith a break.",
    ]
    assert soup.find("img")["src"] == "images/gull.png"
    assert soup.find("link")["href"] == "styles.css"


def test_images_go_to_the_section_holding_their_page() -> None:
    placed = assign_images(SECTIONS, [_image(3, "oak"), _image(0, "gull"), _image(9, "stray")])

    assert [i.id for i in placed[0]] == ["img-gull"]
    assert [i.id for i in placed[1]] == ["img-oak", "img-stray"]


def test_built_book_reads_back(tmp_path: Path) -> None:
    parsed = _parsed(SECTIONS, [_image(2, "oak")])
    path = EpubBuilder(parsed).write(tmp_path)

    assert path.name == "Field Notes.epub"
    book = EpubParser(path).parse()
    assert book.metadata.title == "Field Notes"
    assert book.metadata.author == "A. Writer"
    assert book.metadata.publisher == "Small Press"
    assert book.metadata.description == "Notes & sketches"
    assert [c.title for c in book.chapters] == ["Chapter 1 Birds", "Chapter 2 Trees"]
    assert [c.href for c in book.chapters] == ["chapter_1.xhtml", "chapter_2.xhtml"]
    assert b"images/oak.png" in book.chapters[1].content
    assert book.manifest["img-oak"].content == b"\x89PNG-oak"
    assert book.manifest["css"].content is not None


def test_archive_layout_and_stylesheet_font_size() -> None:
    data = EpubBuilder(_parsed(SECTIONS), PdfConvertSettings(font_size=20)).build()

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        names = zf.namelist()
        assert names[0] == "mimetype"
        assert zf.getinfo("mimetype").compress_type == zipfile.ZIP_STORED
        assert "OEBPS/toc.ncx" in names
        assert "font-size: 20px;" in zf.read("OEBPS/styles.css").decode()
        nav = BeautifulSoup(zf.read("OEBPS/nav.xhtml"), "xml")
        assert [a["href"] for a in nav.find_all("a")] == ["chapter_1.xhtml", "chapter_2.xhtml"]
        assert nav.find("h1").get_text() == "Contents"


def test_ncx_can_be_left_out() -> None:
    data = EpubBuilder(_parsed(SECTIONS), PdfConvertSettings(generate_toc=False)).build()

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert "OEBPS/toc.ncx" not in zf.namelist()
        opf = BeautifulSoup(zf.read("OEBPS/content.opf"), "xml")
    assert opf.find("spine").get("toc") is None
    assert opf.find("item", id="ncx") is None


def test_convert_pdf_writes_next_to_source(write_pdf) -> None:
    pdf_path = write_pdf(title="My Novel", author="Jane Doe")

    output = convert_pdf(pdf_path)

    assert output == pdf_path.parent / "My Novel.epub"
    book = EpubParser(output).parse()
    assert [c.title for c in book.chapters] == [
        "Front Matter",
        "Chapter 1 The Start",
        "Chapter 2 The End",
    ]
    assert b"stormy night" in book.chapters[1].content
