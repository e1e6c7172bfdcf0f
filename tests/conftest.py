from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable
from urllib.parse import unquote

import pytest

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
    <rootfiles>
        <rootfile full-path="{package_path}" media-type="application/oebps-package+xml"/>
    </rootfiles>
</container>"""


def chapter_html(
    title: str | None = None,
    heading: str | None = None,
    body: str = "<p>Text.</p>",
    stylesheet: str | None = None,
    padding: int = 0,
) -> str:
    head = f"<title>{title}</title>" if title is not None else ""
    if stylesheet:
        head += f'<link rel="stylesheet" type="text/css" href="{stylesheet}"/>'
    heading_html = f"<h1>{heading}</h1>" if heading else ""
    pad = f"<p>{'x' * padding}</p>" if padding else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        f"<head>{head}</head><body>{heading_html}{body}{pad}</body></html>"
    )


@dataclass
class Item:
    id: str
    href: str
    media_type: str = "application/xhtml+xml"
    content: str | bytes | None = None  # None = declared but absent from the zip
    properties: str = ""


@dataclass
class EpubSpec:
    items: list[Item] = field(default_factory=list)
    spine: list[str] | None = None  # Defaults to every XHTML item in order
    title: str | None = "Test Book"
    author: str | None = "Jane Doe"
    identifier: str | None = "urn:test:book"
    language: str | None = "en"
    package_path: str = "OEBPS/content.opf"
    cover_meta: str | None = None
    include_container: bool = True
    include_manifest: bool = True
    include_spine: bool = True


def render_opf(spec: EpubSpec) -> str:
    metadata = []
    if spec.title is not None:
        metadata.append(f"<dc:title>{spec.title}</dc:title>")
    if spec.author is not None:
        metadata.append(f"<dc:creator>{spec.author}</dc:creator>")
    if spec.identifier is not None:
        metadata.append(f'<dc:identifier id="uid">{spec.identifier}</dc:identifier>')
    if spec.language is not None:
        metadata.append(f"<dc:language>{spec.language}</dc:language>")
    if spec.cover_meta is not None:
        metadata.append(f'<meta name="cover" content="{spec.cover_meta}"/>')

    manifest = ""
    if spec.include_manifest:
        entries = []
        for item in spec.items:
            props = f' properties="{item.properties}"' if item.properties else ""
            entries.append(
                f'<item id="{item.id}" href="{item.href}" media-type="{item.media_type}"{props}/>'
            )
        manifest = "<manifest>" + "".join(entries) + "</manifest>"

    spine = ""
    if spec.include_spine:
        idrefs = spec.spine
        if idrefs is None:
            idrefs = [i.id for i in spec.items if i.media_type == "application/xhtml+xml"]
        spine = "<spine>" + "".join(f'<itemref idref="{i}"/>' for i in idrefs) + "</spine>"

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="uid">'
        '<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">'
        + "".join(metadata)
        + "</metadata>"
        + manifest
        + spine
        + "</package>"
    )


def build_epub_bytes(spec: EpubSpec) -> bytes:
    buffer = io.BytesIO()
    package_dir = spec.package_path.rsplit("/", 1)[0] + "/" if "/" in spec.package_path else ""
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        if spec.include_container:
            zf.writestr(
                "META-INF/container.xml",
                CONTAINER_XML.format(package_path=spec.package_path),
            )
        zf.writestr(spec.package_path, render_opf(spec))
        for item in spec.items:
            if item.content is not None:
                zf.writestr(package_dir + unquote(item.href), item.content)
    return buffer.getvalue()


def simple_book(
    chapter_count: int = 3,
    padding: int = 0,
    with_stylesheet: bool = True,
) -> EpubSpec:
    items = []
    if with_stylesheet:
        items.append(
            Item(
                "css",
                "styles/style.css",
                "text/css",
                "body { background: url(../images/bg.png); }",
            )
        )
        items.append(Item("bg", "images/bg.png", "image/png", b"\x89PNG-bg"))
    for i in range(1, chapter_count + 1):
        items.append(
            Item(
                f"ch{i}",
                f"text/ch{i}.xhtml",
                content=chapter_html(
                    title=f"Chapter Title {i}",
                    stylesheet="../styles/style.css" if with_stylesheet else None,
                    padding=padding,
                ),
            )
        )
    return EpubSpec(items=items)


@pytest.fixture
def write_epub(tmp_path: Path) -> Callable[..., Path]:
    def write(spec: EpubSpec, name: str = "book.epub") -> Path:
        path = tmp_path / name
        path.write_bytes(build_epub_bytes(spec))
        return path

    return write


def _pdf_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf_bytes(
    pages: list[list[str]], title: str | None = None, author: str | None = None
) -> bytes:
    """A minimal PDF with one Helvetica text line per entry on each page."""
    objects = [
        "<< /Type /Catalog /Pages 2 0 R >>",
        "<< /Type /Pages /Kids [{}] /Count {} >>".format(
            " ".join(f"{4 + 2 * i} 0 R" for i in range(len(pages))), len(pages)
        ),
        "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for i, lines in enumerate(pages):
        ops = ["BT", "/F1 12 Tf", "16 TL", "72 720 Td"]
        for line in lines:
            ops += [f"({_pdf_string(line)}) Tj", "T*"]
        ops.append("ET")
        stream = "\n".join(ops)
        objects.append(
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {5 + 2 * i} 0 R >>"
        )
        objects.append(f"<< /Length {len(stream)} >>\nstream\n{stream}\nendstream")

    info = ""
    if title or author:
        fields = ""
        if title:
            fields += f" /Title ({_pdf_string(title)})"
        if author:
            fields += f" /Author ({_pdf_string(author)})"
        objects.append(f"<<{fields} >>")
        info = f" /Info {len(objects)} 0 R"

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(f"{number} 0 obj\n{body}\nendobj\n".encode("latin-1"))

    xref_offset = out.tell()
    xref = [f"xref\n0 {len(objects) + 1}\n", "0000000000 65535 f \n"]
    xref += [f"{offset:010d} 00000 n \n" for offset in offsets]
    out.write("".join(xref).encode("latin-1"))
    out.write(
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R{info} >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n".encode("latin-1")
    )
    return out.getvalue()


NOVEL_PAGES = [
    ["My Novel", "A short preface before the story begins."],
    ["Chapter 1 The Start", "It was a dark and stormy night."],
    ["The rain kept falling on the old house."],
    ["Chapter 2 The End", "Everything ended well for everyone involved."],
]


@pytest.fixture
def write_pdf(tmp_path: Path) -> Callable[..., Path]:
    def write(
        pages: list[list[str]] = NOVEL_PAGES,
        name: str = "novel.pdf",
        title: str | None = None,
        author: str | None = None,
    ) -> Path:
        path = tmp_path / name
        path.write_bytes(build_pdf_bytes(pages, title=title, author=author))
        return path

    return write
