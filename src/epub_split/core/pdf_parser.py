"""PDF parsing: page text, metadata, images and chapter detection."""

import bisect
import io
import logging
import re
import uuid
from pathlib import Path

# Suppress warnings about malformed PDF object references from PDF libraries
logging.getLogger("pdfminer").setLevel(logging.ERROR)
logging.getLogger("pypdf").setLevel(logging.ERROR)

import pdfplumber
import pypdf
from pypdf.errors import EmptyFileError, FileNotDecryptedError, PdfReadError

from epub_split.config import ChapterPattern, PdfConvertSettings
from epub_split.errors import InvalidPdfError
from epub_split.models.book import PackageMetadata
from epub_split.models.pdf import (
    DetectionMethod,
    DetectionResult,
    ParsedPdf,
    PdfImage,
    Section,
)

log = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"
LINE_TOLERANCE = 5  # Vertical shift in points that starts a new line
MIN_TEXT_CHARS = 100
DEFAULT_AUTHOR = "Unknown"
FRONT_MATTER_TITLE = "Front Matter"

# Headings must sit alone on their line
CHAPTER_PATTERNS: dict[ChapterPattern, re.Pattern[str]] = {
    ChapterPattern.CHINESE: re.compile(
        r"^(第[一二三四五六七八九十百千\d]+[章节回].*?)$", re.MULTILINE
    ),
    ChapterPattern.ENGLISH: re.compile(
        r"^(Chapter[ \t]+\d+.*?)$", re.MULTILINE | re.IGNORECASE
    ),
    ChapterPattern.NUMBER: re.compile(r"^(\d+\.[ \t]+.*?)$", re.MULTILINE),
    ChapterPattern.AUTO: re.compile(
        r"^(第[一二三四五六七八九十百千\d]+[章节回].*?|Chapter[ \t]+\d+.*?|\d+\.[ \t]+.{2,50})$",
        re.MULTILINE | re.IGNORECASE,
    ),
}

# Formats EPUB readers must support; anything else is re-encoded as JPEG
IMAGE_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
}


def page_offsets(pages: list[str]) -> list[int]:
    """Start offset of each page in the pages joined by PAGE_SEPARATOR."""
    offsets = []
    position = 0
    for text in pages:
        offsets.append(position)
        position += len(text) + len(PAGE_SEPARATOR)
    return offsets


def detect_by_pattern(
    pages: list[str], pattern: ChapterPattern = ChapterPattern.AUTO
) -> DetectionResult | None:
    """
    Split the joined page text at chapter headings.

    Each section runs from the end of its heading line to the next heading.
    Text before the first heading becomes a leading "Front Matter" section.
    Returns None when no heading matches.
    """
    text = PAGE_SEPARATOR.join(pages)
    matches = list(CHAPTER_PATTERNS[pattern].finditer(text))
    if not matches:
        return None

    offsets = page_offsets(pages)

    def page_at(position: int) -> int:
        return max(bisect.bisect_right(offsets, position) - 1, 0)

    sections: list[Section] = []

    preamble = text[: matches[0].start()].strip()
    if preamble:
        sections.append(
            Section(
                title=FRONT_MATTER_TITLE,
                content=preamble,
                page_start=0,
                page_end=page_at(matches[0].start() - 1),
            )
        )

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        sections.append(
            Section(
                title=match.group(1).strip(),
                content=text[match.end() : end].strip(),
                page_start=page_at(match.start()),
                page_end=page_at(max(end - 1, match.start())),
                pattern_type=pattern.value,
            )
        )

    return DetectionResult(sections=sections, method=DetectionMethod.PATTERN)


def chunk_by_pages(pages: list[str], pages_per_chunk: int = 10) -> DetectionResult:
    """
    Fallback: Split the PDF into fixed-size page chunks.
    No structural detection, titles name the page range.
    """
    sections: list[Section] = []

    for start in range(0, len(pages), pages_per_chunk):
        end = min(start + pages_per_chunk, len(pages))
        sections.append(
            Section(
                title=f"Pages {start + 1}-{end}",
                content=PAGE_SEPARATOR.join(pages[start:end]).strip(),
                page_start=start,
                page_end=end - 1,
            )
        )

    return DetectionResult(sections=sections, method=DetectionMethod.PAGE_CHUNKS)


def detect_sections(pages: list[str], settings: PdfConvertSettings) -> DetectionResult:
    """Find chapters by heading pattern, falling back to page chunks."""
    if not settings.split_chapters:
        log.info("Chapter detection disabled, chunking every %d pages", settings.pages_per_chapter)
        return chunk_by_pages(pages, settings.pages_per_chapter)

    log.info("Looking for %s chapter headings", settings.chapter_pattern.value)
    result = detect_by_pattern(pages, settings.chapter_pattern)
    if result is not None:
        log.info("Found %d sections", len(result.sections))
        return result

    message = "No chapter headings found. Using page-based chunking."
    log.warning(message)
    result = chunk_by_pages(pages, settings.pages_per_chapter)
    result.warnings.append(message)
    return result


def _encode_image(image) -> tuple[str, str, bytes]:
    """Return (extension, media type, bytes) for an image pypdf extracted."""
    extension = Path(image.name).suffix.lower()
    if extension in IMAGE_MEDIA_TYPES:
        return extension, IMAGE_MEDIA_TYPES[extension], image.data

    buffer = io.BytesIO()
    image.image.convert("RGB").save(buffer, format="JPEG", quality=85)
    return ".jpg", "image/jpeg", buffer.getvalue()


class PdfParser:
    """Read a PDF into metadata, chapter sections and images."""

    def __init__(self, pdf_path: Path, settings: PdfConvertSettings | None = None):
        self.path = Path(pdf_path)
        self.settings = settings or PdfConvertSettings()

        try:
            self._reader = pypdf.PdfReader(str(self.path))
            if self._reader.is_encrypted and not self._reader.decrypt(""):
                raise InvalidPdfError("PDF is encrypted. Please decrypt first.")
        except FileNotDecryptedError as e:
            raise InvalidPdfError("PDF is encrypted. Please decrypt first.") from e
        except EmptyFileError as e:
            raise InvalidPdfError("PDF file is empty.") from e
        except PdfReadError as e:
            raise InvalidPdfError(f"PDF appears corrupted: {e}") from e

    def parse(self) -> ParsedPdf:
        """Parse the PDF and return everything the EPUB builder needs."""
        page_count = len(self._reader.pages)
        if page_count == 0:
            raise InvalidPdfError("PDF has no pages.")

        warnings_list: list[str] = []
        pages = self.extract_pages()

        if sum(len(text.strip()) for text in pages) < MIN_TEXT_CHARS:
            log.warning(
                "PDF appears to have limited text content. "
                "May be scanned or image-based."
            )
            warnings_list.append("Limited text detected. PDF may be scanned/image-based.")

        result = detect_sections(pages, self.settings)
        images = self.extract_images(warnings_list) if self.settings.extract_images else []

        return ParsedPdf(
            metadata=self.get_metadata(),
            page_count=page_count,
            sections=result.sections,
            images=images,
            method=result.method,
            source_name=self.path.name,
            warnings=warnings_list + result.warnings,
        )

    def get_metadata(self) -> PackageMetadata:
        """Settings first, then the PDF info dictionary, then defaults."""
        info = self._reader.metadata or {}

        title = self.settings.title
        if not title and info.get("/Title"):
            title = str(info.get("/Title")).strip()
        if not title:
            title = self.path.stem

        author = self.settings.author
        if not author and info.get("/Author"):
            author = str(info.get("/Author")).strip()

        return PackageMetadata(
            title=title,
            author=author or DEFAULT_AUTHOR,
            identifier=f"urn:uuid:{uuid.uuid4()}",
            language=self.settings.language,
            publisher=self.settings.publisher,
            description=self.settings.description,
        )

    def extract_pages(self) -> list[str]:
        """Text of every page, one line per text row."""
        with pdfplumber.open(str(self.path)) as pdf:
            return [page.extract_text(y_tolerance=LINE_TOLERANCE) or "" for page in pdf.pages]

    def extract_images(self, warnings_list: list[str]) -> list[PdfImage]:
        """Images of every page; ones that fail to decode are skipped."""
        images: list[PdfImage] = []

        for page_index, page in enumerate(self._reader.pages):
            try:
                page_images = page.images
                image_count = len(page_images)
            except Exception as e:
                message = f"Page {page_index + 1}: could not list images ({e})"
                log.warning(message)
                warnings_list.append(message)
                continue

            for n in range(image_count):
                try:
                    extension, media_type, data = _encode_image(page_images[n])
                except Exception as e:
                    message = f"Page {page_index + 1}: skipped image {n + 1} ({e})"
                    log.warning(message)
                    warnings_list.append(message)
                    continue

                name = f"page{page_index + 1:04d}_{n + 1}"
                images.append(
                    PdfImage(
                        id=f"img-{name}",
                        href=f"images/{name}{extension}",
                        media_type=media_type,
                        page=page_index,
                        data=data,
                    )
                )

        log.debug("Extracted %d images", len(images))
        return images
