"""Data models."""

from epub_split.models.book import (
    Chapter,
    ManifestItem,
    PackageMetadata,
    ParsedBook,
)
from epub_split.models.pdf import (
    DetectionMethod,
    DetectionResult,
    ParsedPdf,
    PdfImage,
    Section,
)
from epub_split.models.split import (
    OutputFile,
    Partition,
    SplitPlan,
)

__all__ = [
    # Book models
    "PackageMetadata",
    "ManifestItem",
    "Chapter",
    "ParsedBook",
    # PDF models
    "DetectionMethod",
    "DetectionResult",
    "Section",
    "PdfImage",
    "ParsedPdf",
    # Split models
    "Partition",
    "SplitPlan",
    "OutputFile",
]
