"""Read an EPUB into metadata, manifest and spine-ordered chapters."""

import logging
import warnings
from pathlib import Path
from typing import Callable

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from epub_split.config import strip_extension
from epub_split.core.container import open_archive, read_package_path
from epub_split.core.package_parser import package_dir, parse_package
from epub_split.errors import MissingManifestReferenceWarning, ResourceCopyWarning
from epub_split.models.book import Chapter, ParsedBook

# Suppress XML parsing warnings - EPUB files often use XHTML
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

log = logging.getLogger(__name__)

DEFAULT_TITLE_MAX_LENGTH = 50

# Each extractor returns a title or None; the first hit wins
TitleExtractor = Callable[[BeautifulSoup], str | None]


def title_from_title_tag(soup: BeautifulSoup) -> str | None:
    element = soup.find("title")
    if element is None:
        return None
    return element.get_text(strip=True) or None


def title_from_heading(max_length: int) -> TitleExtractor:
    def extract(soup: BeautifulSoup) -> str | None:
        element = soup.find(["h1", "h2", "h3"])
        if element is None:
            return None
        text = element.get_text(" ", strip=True)
        return text[:max_length] or None

    return extract


def extract_title(
    content: bytes, index: int, max_length: int = DEFAULT_TITLE_MAX_LENGTH
) -> str:
    """Derive a chapter title: <title>, then first heading, then a placeholder."""
    if content:
        soup = BeautifulSoup(content, "lxml")
        for extractor in (title_from_title_tag, title_from_heading(max_length)):
            title = extractor(soup)
            if title:
                return title
    return f"Chapter {index}"


class EpubParser:
    """Parse EPUB files into a ParsedBook."""

    def __init__(
        self,
        source: Path | bytes,
        source_name: str | None = None,
        title_max_length: int = DEFAULT_TITLE_MAX_LENGTH,
    ):
        if isinstance(source, Path):
            self.data = source.read_bytes()
            self.source_name = source_name or source.name
        else:
            self.data = source
            self.source_name = source_name or "book.epub"
        self.title_max_length = title_max_length
        self._warnings: list[str] = []

    def parse(self) -> ParsedBook:
        """Parse the EPUB and return its complete structure."""
        self._warnings = []
        archive = open_archive(self.data)
        with archive:
            package_path = read_package_path(archive)
            metadata, manifest, spine, cover_id = parse_package(
                archive, package_path, fallback_title=strip_extension(self.source_name)
            )

        book = ParsedBook(
            metadata=metadata,
            manifest=manifest,
            spine_order=spine,
            chapters=[],
            package_path=package_path,
            package_dir=package_dir(package_path),
            cover_id=cover_id,
            source_name=self.source_name,
        )
        book.chapters = self._get_chapters(book)
        book.warnings = list(self._warnings)

        log.info(
            "Parsed %s: %d chapters, %d manifest items",
            self.source_name,
            len(book.chapters),
            len(book.manifest),
        )
        return book

    def _warn(self, message: str, category: type[Warning]) -> None:
        log.info(message)
        warnings.warn(message, category, stacklevel=3)
        self._warnings.append(message)

    def _get_chapters(self, book: ParsedBook) -> list[Chapter]:
        """Walk the spine and build chapters in reading order."""
        chapters = []

        for position, idref in enumerate(book.spine_order, start=1):
            item = book.manifest.get(idref)
            if item is None:
                self._warn(
                    f"Spine entry {position} references missing manifest id '{idref}'; skipped",
                    MissingManifestReferenceWarning,
                )
                continue

            if item.content is None:
                self._warn(
                    f"Spine entry {position} ('{item.href}') is missing from the archive; skipped",
                    ResourceCopyWarning,
                )
                continue

            chapters.append(
                Chapter(
                    index=position,
                    id=item.id,
                    href=item.href,
                    full_path=item.full_path,
                    media_type=item.media_type or "application/xhtml+xml",
                    size=item.size,
                    title=extract_title(item.content, position, self.title_max_length),
                    content=item.content,
                )
            )

        return chapters
