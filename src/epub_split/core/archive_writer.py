"""Write self-contained EPUB archives: split parts and converted books."""

import io
import logging
import warnings
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote
from xml.sax.saxutils import escape, quoteattr

from epub_split.errors import EncodingError, ResourceCopyWarning
from epub_split.models.book import ManifestItem, PackageMetadata, ParsedBook
from epub_split.models.split import Partition

log = logging.getLogger(__name__)

MIMETYPE = "application/epub+zip"
CONTENT_DIR = "OEBPS/"
PACKAGE_NAME = "content.opf"
NCX_NAME = "toc.ncx"
NAV_NAME = "nav.xhtml"

CONTAINER_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
    <rootfiles>
        <rootfile full-path="{CONTENT_DIR}{PACKAGE_NAME}" media-type="application/oebps-package+xml"/>
    </rootfiles>
</container>"""

# (title, href) of one table-of-contents entry
NavEntry = tuple[str, str]


@dataclass(frozen=True)
class ManifestEntry:
    """An item of a generated package document."""

    id: str
    href: str
    media_type: str
    properties: str = ""


def _href(path: str) -> str:
    """Percent-encode and XML-escape a path for use in an attribute."""
    return quoteattr(quote(path, safe="/"))


def _unique_name(name: str, taken: set[str]) -> str:
    while name in taken:
        name = f"split-{name}"
    return name


def render_package(
    metadata: PackageMetadata,
    entries: list[ManifestEntry],
    spine: list[str],
    cover_id: str | None = None,
    ncx_name: str | None = NCX_NAME,
    nav_name: str = NAV_NAME,
) -> str:
    """OPF 3.0 package document; the NCX is left out when ncx_name is None."""
    modified = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    extra = ""
    if cover_id:
        extra += f'\n        <meta name="cover" content={quoteattr(cover_id)}/>'
    if metadata.publisher:
        extra += f"\n        <dc:publisher>{escape(metadata.publisher)}</dc:publisher>"
    if metadata.description:
        extra += f"\n        <dc:description>{escape(metadata.description)}</dc:description>"

    manifest = []
    if ncx_name is not None:
        manifest.append(
            f'<item id="ncx" href={_href(ncx_name)} media-type="application/x-dtbncx+xml"/>'
        )
    manifest.append(
        f'<item id="nav" href={_href(nav_name)} media-type="application/xhtml+xml" properties="nav"/>'
    )
    for entry in entries:
        props = f" properties={quoteattr(entry.properties)}" if entry.properties else ""
        manifest.append(
            f"<item id={quoteattr(entry.id)} href={_href(entry.href)} "
            f"media-type={quoteattr(entry.media_type)}{props}/>"
        )

    manifest_xml = "\n        ".join(manifest)
    spine_xml = "\n        ".join(f"<itemref idref={quoteattr(i)}/>" for i in spine)
    toc_attr = ' toc="ncx"' if ncx_name is not None else ""

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" unique-identifier="BookId" version="3.0">
    <metadata xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:opf="http://www.idpf.org/2007/opf">
        <dc:title>{escape(metadata.title)}</dc:title>
        <dc:creator>{escape(metadata.author)}</dc:creator>
        <dc:identifier id="BookId">{escape(metadata.identifier)}</dc:identifier>
        <dc:language>{escape(metadata.language)}</dc:language>
        <meta property="dcterms:modified">{modified}</meta>{extra}
    </metadata>
    <manifest>
        {manifest_xml}
    </manifest>
    <spine{toc_attr}>
        {spine_xml}
    </spine>
</package>"""


def render_ncx(identifier: str, doc_title: str, entries: list[NavEntry]) -> str:
    """Legacy NCX table of contents."""
    nav_points = "".join(
        f"""
        <navPoint id="navPoint-{i}" playOrder="{i}">
            <navLabel>
                <text>{escape(title)}</text>
            </navLabel>
            <content src={_href(href)}/>
        </navPoint>"""
        for i, (title, href) in enumerate(entries, start=1)
    )

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE ncx PUBLIC "-//NISO//DTD ncx 2005-1//EN" "http://www.daisy.org/z3986/2005/ncx-2005-1.dtd">
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
    <head>
        <meta name="dtb:uid" content={quoteattr(identifier)}/>
        <meta name="dtb:depth" content="1"/>
        <meta name="dtb:totalPageCount" content="0"/>
        <meta name="dtb:maxPageNumber" content="0"/>
    </head>
    <docTitle>
        <text>{escape(doc_title)}</text>
    </docTitle>
    <navMap>{nav_points}
    </navMap>
</ncx>"""


def render_nav(title: str, entries: list[NavEntry], stylesheet: str | None = None) -> str:
    """EPUB 3 navigation document."""
    items = "\n".join(
        f"            <li><a href={_href(href)}>{escape(label)}</a></li>"
        for label, href in entries
    )
    link = ""
    if stylesheet:
        link = f'\n    <link rel="stylesheet" type="text/css" href={_href(stylesheet)}/>'

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head>
    <title>{escape(title)}</title>{link}
</head>
<body>
    <nav epub:type="toc" id="toc">
        <h1>{escape(title)}</h1>
        <ol>
{items}
        </ol>
    </nav>
</body>
</html>"""


def write_archive(
    files: list[tuple[str, bytes | str]], compression_level: int, label: str
) -> bytes:
    """Zip files under OEBPS/ behind the mimetype and container entries."""
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(
            buffer,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        ) as zf:
            # mimetype must be the first entry and stored uncompressed
            zf.writestr("mimetype", MIMETYPE, compress_type=zipfile.ZIP_STORED)
            zf.writestr("META-INF/container.xml", CONTAINER_XML)
            for name, data in files:
                zf.writestr(CONTENT_DIR + name, data)
    except (OSError, ValueError, zipfile.LargeZipFile) as e:
        raise EncodingError(f"Failed to encode {label}: {e}") from e
    return buffer.getvalue()


class ArchiveWriter:
    """Build EPUB archives for the partitions of one book."""

    def __init__(self, book: ParsedBook, total_parts: int, compression_level: int = 6):
        self.book = book
        self.total_parts = total_parts
        self.compression_level = compression_level
        self.warnings: list[str] = []

    def part_identifier(self, number: int) -> str:
        return f"{self.book.metadata.identifier}_part{number}"

    def part_title(self, number: int) -> str:
        return f"{self.book.metadata.title} (Part {number}/{self.total_parts})"

    def build(self, partition: Partition) -> bytes:
        """Return the bytes of a complete EPUB for the partition."""
        number = partition.number
        resources = self._collect_resources(partition)
        taken = {chapter.href for chapter in partition.chapters}
        taken |= {item.href for item in resources}
        taken.add(PACKAGE_NAME)
        ncx_name = _unique_name(NCX_NAME, taken)
        nav_name = _unique_name(NAV_NAME, taken | {ncx_name})

        entries = []
        spine = []
        for i, chapter in enumerate(partition.chapters, start=1):
            source = self.book.manifest.get(chapter.id)
            properties = " ".join(
                p for p in (source.properties if source else "").split() if p != "nav"
            )
            entry = ManifestEntry(f"p{number}-c{i:04d}", chapter.href, chapter.media_type, properties)
            entries.append(entry)
            spine.append(entry.id)

        cover_id = None
        for i, item in enumerate(resources, start=1):
            entry = ManifestEntry(f"p{number}-r{i:04d}", item.href, item.media_type, item.properties)
            entries.append(entry)
            if item.id == self.book.cover_id:
                cover_id = entry.id

        metadata = self.book.metadata.model_copy(
            update={"title": self.part_title(number), "identifier": self.part_identifier(number)}
        )
        toc = [(chapter.title, chapter.href) for chapter in partition.chapters]

        files: list[tuple[str, bytes | str]] = [(c.href, c.content) for c in partition.chapters]
        files += [(item.href, item.content) for item in resources]
        files += [
            (PACKAGE_NAME, render_package(metadata, entries, spine, cover_id, ncx_name, nav_name)),
            (
                ncx_name,
                render_ncx(
                    self.part_identifier(number),
                    f"{self.book.metadata.title} (Part {number})",
                    toc,
                ),
            ),
            (nav_name, render_nav(self.part_title(number), toc)),
        ]

        data = write_archive(files, self.compression_level, f"part {number}")
        log.debug(
            "Built part %d: %d chapters, %d resources, %d bytes",
            number,
            len(partition.chapters),
            len(resources),
            len(data),
        )
        return data

    def _collect_resources(self, partition: Partition) -> list[ManifestItem]:
        resources = []
        for item_id in partition.resource_ids:
            item = self.book.manifest.get(item_id)
            if item is None:
                continue
            if item.content is None:
                message = (
                    f"Part {partition.number}: resource '{item.href}' is missing "
                    "from the source archive"
                )
                log.info(message)
                warnings.warn(message, ResourceCopyWarning, stacklevel=3)
                self.warnings.append(message)
                continue
            resources.append(item)
        return resources
