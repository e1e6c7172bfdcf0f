"""Settings for the split, text-export and PDF conversion operations."""

from enum import Enum

from pydantic import BaseModel, Field

BYTES_PER_MB = 1024 * 1024
DEFAULT_SEPARATOR = "=" * 40


class ExportMode(str, Enum):
    """How text export lays out chapters."""

    SINGLE = "single"
    CHAPTERS = "chapters"


class OutputFormat(str, Enum):
    """Text export output format."""

    TEXT = "text"
    MARKDOWN = "markdown"


class SplitSettings(BaseModel):
    """Options controlling how a book is partitioned and written."""

    target_size_mb: float = Field(default=2.0, gt=0)
    prefix: str | None = None  # None = source file stem
    compression_level: int = Field(default=6, ge=0, le=9)
    min_budget_ratio: float = Field(default=0.5, gt=0, le=1)
    title_max_length: int = Field(default=50, ge=1)
    bundle: bool = False

    @property
    def target_bytes(self) -> int:
        return int(self.target_size_mb * BYTES_PER_MB)

    def resolve_prefix(self, source_name: str) -> str:
        """Return the configured prefix, falling back to the source stem."""
        if self.prefix:
            return self.prefix
        return strip_extension(source_name)


class TextExportSettings(BaseModel):
    """Options for EPUB to plain-text export."""

    mode: ExportMode = ExportMode.SINGLE
    output_format: OutputFormat = OutputFormat.TEXT
    separator: str = DEFAULT_SEPARATOR
    compression_level: int = Field(default=6, ge=0, le=9)
    bundle: bool = False

    @property
    def extension(self) -> str:
        return ".md" if self.output_format == OutputFormat.MARKDOWN else ".txt"


def strip_extension(name: str) -> str:
    """'dir/My Book.epub' -> 'My Book'."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    if "." in base:
        stem = base.rsplit(".", 1)[0]
        if stem:
            return stem
    return base


class ChapterPattern(str, Enum):
    """Heading style used to find chapter starts in PDF text."""

    AUTO = "auto"
    CHINESE = "chinese"
    ENGLISH = "english"
    NUMBER = "number"


class PdfConvertSettings(BaseModel):
    """Options for PDF to EPUB conversion."""

    title: str | None = None  # None = PDF /Title, then the file stem
    author: str | None = None  # None = PDF /Author, then "Unknown"
    language: str = "en"
    publisher: str | None = None
    description: str | None = None
    extract_images: bool = True
    split_chapters: bool = True
    chapter_pattern: ChapterPattern = ChapterPattern.AUTO
    pages_per_chapter: int = Field(default=10, ge=1)
    font_size: int = Field(default=16, ge=6, le=48)
    generate_toc: bool = True  # Also write the legacy NCX
    compression_level: int = Field(default=9, ge=0, le=9)
