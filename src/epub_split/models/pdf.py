"""Data models for PDF to EPUB conversion."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from epub_split.models.book import PackageMetadata


class DetectionMethod(str, Enum):
    """How chapter boundaries were found in the PDF."""

    PATTERN = "pattern"
    PAGE_CHUNKS = "page_chunks"


class Section(BaseModel):
    """A chapter detected in the PDF text."""

    title: str
    content: str = ""
    page_start: int  # 0-based
    page_end: int
    pattern_type: str | None = None


class PdfImage(BaseModel):
    """An image extracted from one PDF page."""

    model_config = ConfigDict(frozen=True)

    id: str
    href: str  # Relative to the package document
    media_type: str
    page: int  # 0-based
    data: bytes


class DetectionResult(BaseModel):
    """Sections found by one detection strategy."""

    sections: list[Section]
    method: DetectionMethod
    warnings: list[str] = Field(default_factory=list)


class ParsedPdf(BaseModel):
    """Everything needed to build an EPUB from a PDF."""

    metadata: PackageMetadata
    page_count: int
    sections: list[Section]
    images: list[PdfImage] = Field(default_factory=list)
    method: DetectionMethod
    source_name: str = ""
    warnings: list[str] = Field(default_factory=list)

    @property
    def word_count(self) -> int:
        return sum(len(section.content.split()) for section in self.sections)
