"""Data models for the parsed EPUB structure."""

from pydantic import BaseModel, ConfigDict, Field

DOCUMENT_MEDIA_TYPES = {
    "application/xhtml+xml",
    "text/html",
    "application/x-dtbncx+xml",
}
FONT_MEDIA_TYPES = {
    "application/vnd.ms-opentype",
    "application/font-woff",
    "application/x-font-ttf",
    "application/x-font-truetype",
    "application/x-font-opentype",
}
FONT_EXTENSIONS = (".ttf", ".otf", ".woff", ".woff2")


class PackageMetadata(BaseModel):
    """Book-level metadata from the package document."""

    model_config = ConfigDict(frozen=True)

    title: str
    author: str = "Unknown"
    identifier: str
    language: str = "en"
    publisher: str | None = None
    description: str | None = None


class ManifestItem(BaseModel):
    """One resource declared in the package manifest."""

    model_config = ConfigDict(frozen=True)

    id: str
    href: str  # Relative to the package document directory, percent-decoded
    full_path: str  # Zip entry name
    media_type: str = ""
    properties: str = ""
    size: int = 0
    content: bytes | None = None  # None when the file is absent from the archive

    @property
    def is_document(self) -> bool:
        return self.media_type in DOCUMENT_MEDIA_TYPES

    @property
    def is_stylesheet(self) -> bool:
        return self.media_type == "text/css" or self.href.lower().endswith(".css")

    @property
    def is_font(self) -> bool:
        return (
            self.media_type.startswith("font/")
            or self.media_type in FONT_MEDIA_TYPES
            or self.href.lower().endswith(FONT_EXTENSIONS)
        )


class Chapter(BaseModel):
    """A content document in spine order."""

    model_config = ConfigDict(frozen=True)

    index: int  # 1-based spine position
    id: str
    href: str
    full_path: str
    media_type: str = "application/xhtml+xml"
    size: int = 0
    title: str
    content: bytes = b""

    @property
    def directory(self) -> str:
        """Directory of the chapter relative to the package document."""
        if "/" not in self.href:
            return ""
        return self.href.rsplit("/", 1)[0] + "/"


class ParsedBook(BaseModel):
    """Complete parsed EPUB structure."""

    metadata: PackageMetadata
    manifest: dict[str, ManifestItem]
    spine_order: list[str] = Field(default_factory=list)
    chapters: list[Chapter]
    package_path: str
    package_dir: str = ""
    cover_id: str | None = None
    source_name: str = ""
    warnings: list[str] = Field(default_factory=list)

    @property
    def total_chapter_bytes(self) -> int:
        return sum(chapter.size for chapter in self.chapters)
