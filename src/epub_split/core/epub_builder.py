"""Build an EPUB 3 book from the sections and images of a parsed PDF."""

import logging
import re
from pathlib import Path
from string import Template
from xml.sax.saxutils import escape, quoteattr

from epub_split.config import PdfConvertSettings
from epub_split.core.archive_writer import (
    NAV_NAME,
    NCX_NAME,
    PACKAGE_NAME,
    ManifestEntry,
    render_nav,
    render_ncx,
    render_package,
    write_archive,
)
from epub_split.core.pdf_parser import PdfParser
from epub_split.core.text_exporter import safe_filename
from epub_split.errors import EncodingError
from epub_split.models.pdf import ParsedPdf, PdfImage, Section

log = logging.getLogger(__name__)

STYLESHEET_NAME = "styles.css"
CONTENTS_TITLE = "Contents"
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

STYLESHEET = Template("""@charset "UTF-8";

body {
    font-family: Georgia, "Times New Roman", serif;
    font-size: ${font_size}px;
    line-height: 1.8;
    margin: 1em;
    padding: 0;
    text-align: justify;
}

p {
    margin: 0.5em 0;
    text-indent: 2em;
}

img {
    max-width: 100%;
    height: auto;
    display: block;
    margin: 1em auto;
}

.chapter-title {
    font-size: 1.5em;
    font-weight: bold;
    text-align: center;
    margin: 2em 0 1em 0;
    page-break-before: always;
}

nav#toc ol {
    list-style-type: none;
    padding-left: 1em;
}
""")


def text_to_paragraphs(content: str) -> list[str]:
    """XHTML paragraphs: blank lines split paragraphs, single newlines become <br/>."""
    paragraphs = []
    for block in PARAGRAPH_BREAK.split(content):
        lines = [line.strip() for line in block.strip().splitlines()]
        if any(lines):
            paragraphs.append(f"<p>{'<br/>'.join(escape(line) for line in lines)}</p>")
    return paragraphs


def render_chapter(section: Section, images: list[PdfImage], language: str = "en") -> str:
    """Chapter XHTML: heading, paragraphs, then the images of its pages."""
    body = text_to_paragraphs(section.content)
    body += [
        f'<div class="image"><img src={quoteattr(image.href)} alt=""/></div>'
        for image in images
    ]
    body_xml = "\n    ".join(body)
    title = escape(section.title)

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xml:lang={quoteattr(language)}>
<head>
    <title>{title}</title>
    <link rel="stylesheet" type="text/css" href="{STYLESHEET_NAME}"/>
</head>
<body>
    <h1 class="chapter-title">{title}</h1>
    {body_xml}
</body>
</html>"""


def assign_images(sections: list[Section], images: list[PdfImage]) -> list[list[PdfImage]]:
    """Place each image in the first section whose pages include it."""
    placed: list[list[PdfImage]] = [[] for _ in sections]
    for image in images:
        for i, section in enumerate(sections):
            if section.page_start <= image.page <= section.page_end:
                placed[i].append(image)
                break
        else:
            placed[-1].append(image)
    return placed


class EpubBuilder:
    """Turn a parsed PDF into a complete EPUB archive."""

    def __init__(self, parsed: ParsedPdf, settings: PdfConvertSettings | None = None):
        self.parsed = parsed
        self.settings = settings or PdfConvertSettings()

    @property
    def file_name(self) -> str:
        return f"{safe_filename(self.parsed.metadata.title)}.epub"

    def build(self) -> bytes:
        """Return the bytes of the EPUB."""
        metadata = self.parsed.metadata
        sections = self.parsed.sections
        if not sections:
            raise EncodingError(f"{self.parsed.source_name} produced no chapters")

        files: list[tuple[str, bytes | str]] = [
            (STYLESHEET_NAME, STYLESHEET.substitute(font_size=self.settings.font_size))
        ]
        entries = [ManifestEntry("css", STYLESHEET_NAME, "text/css")]
        spine = []
        toc = []

        placed = assign_images(sections, self.parsed.images)
        for i, section in enumerate(sections, start=1):
            name = f"chapter_{i}.xhtml"
            files.append((name, render_chapter(section, placed[i - 1], metadata.language)))
            entries.append(ManifestEntry(f"chapter{i}", name, "application/xhtml+xml"))
            spine.append(f"chapter{i}")
            toc.append((section.title, name))

        for image in self.parsed.images:
            files.append((image.href, image.data))
            entries.append(ManifestEntry(image.id, image.href, image.media_type))

        ncx_name = NCX_NAME if self.settings.generate_toc else None
        files.append((PACKAGE_NAME, render_package(metadata, entries, spine, ncx_name=ncx_name)))
        if ncx_name is not None:
            files.append((ncx_name, render_ncx(metadata.identifier, metadata.title, toc)))
        files.append((NAV_NAME, render_nav(CONTENTS_TITLE, toc, stylesheet=STYLESHEET_NAME)))

        data = write_archive(files, self.settings.compression_level, self.file_name)
        log.debug(
            "Built %s: %d chapters, %d images, %d bytes",
            self.file_name,
            len(sections),
            len(self.parsed.images),
            len(data),
        )
        return data

    def write(self, output_dir: Path) -> Path:
        """Write the EPUB into output_dir and return its path."""
        data = self.build()
        path = Path(output_dir) / self.file_name
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise EncodingError(f"Failed to write {path}: {e}") from e
        log.info("Wrote %s (%d bytes)", path, len(data))
        return path


def convert_pdf(
    pdf_path: Path,
    output_dir: Path | None = None,
    settings: PdfConvertSettings | None = None,
) -> Path:
    """Convert a PDF to EPUB in one call.

    The book is written next to the PDF unless output_dir is given, and is
    named after the book title.
    """
    pdf_path = Path(pdf_path)
    settings = settings or PdfConvertSettings()
    parsed = PdfParser(pdf_path, settings).parse()
    return EpubBuilder(parsed, settings).write(output_dir or pdf_path.parent)
