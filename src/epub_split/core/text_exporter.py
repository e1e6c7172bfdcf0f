"""Export a parsed book to plain-text or Markdown files."""

import logging
import re
from pathlib import Path
from typing import Callable

from epub_split.config import ExportMode, OutputFormat, TextExportSettings
from epub_split.core.content_processor import ContentProcessor
from epub_split.core.splitter import bundle_outputs
from epub_split.errors import EncodingError, InvalidPackageError
from epub_split.models.book import Chapter, ParsedBook
from epub_split.models.split import OutputFile

log = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')

# (chapter position, total chapters, chapter title) -> None
ProgressCallback = Callable[[int, int, str], None]


def safe_filename(title: str) -> str:
    """Replace characters that are illegal in file names."""
    return UNSAFE_FILENAME_CHARS.sub("_", title).strip() or "untitled"


class TextExporter:
    """Write chapters as one combined file or one file per chapter."""

    def __init__(self, book: ParsedBook, settings: TextExportSettings | None = None):
        self.book = book
        self.settings = settings or TextExportSettings()
        self.processor = ContentProcessor()
        self.word_count = 0

    def render_chapter(self, chapter: Chapter) -> str:
        """Chapter title, a blank line, then the chapter body."""
        body = self.processor.process(chapter.content, self.settings.output_format)
        if self.settings.output_format == OutputFormat.MARKDOWN:
            return f"# {chapter.title}\n\n{body}"
        return f"{chapter.title}\n\n{body}"

    def render_book(self) -> str:
        separator = f"\n\n{self.settings.separator}\n\n"
        return separator.join(self.render_chapter(c) for c in self.book.chapters)

    def export(
        self, output_dir: Path, on_progress: ProgressCallback | None = None
    ) -> list[OutputFile]:
        """Write the export; returns files written (plus bundle if requested)."""
        if not self.book.chapters:
            raise InvalidPackageError(
                f"{self.book.source_name} has no readable chapters in its spine"
            )
        self.word_count = 0
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            if self.settings.mode == ExportMode.SINGLE:
                outputs = [self._write_single(output_dir)]
            else:
                outputs = self._write_chapters(output_dir, on_progress)
        except OSError as e:
            raise EncodingError(f"Failed to write text export: {e}") from e

        if self.settings.bundle and len(outputs) > 1:
            bundle_name = f"{safe_filename(self.book.metadata.title)}_txt.zip"
            outputs.append(
                bundle_outputs(
                    outputs, output_dir / bundle_name, self.settings.compression_level
                )
            )
        return outputs

    def _write_single(self, output_dir: Path) -> OutputFile:
        name = safe_filename(self.book.metadata.title) + self.settings.extension
        path = output_dir / name
        text = self.render_book()
        path.write_text(text, encoding="utf-8")
        self.word_count = self.processor.get_stats(text)["word_count"]
        log.info("Wrote %s", name)
        return OutputFile(
            name=name,
            path=path,
            size=path.stat().st_size,
            chapter_count=len(self.book.chapters),
        )

    def _write_chapters(
        self, output_dir: Path, on_progress: ProgressCallback | None
    ) -> list[OutputFile]:
        outputs = []
        total = len(self.book.chapters)

        for position, chapter in enumerate(self.book.chapters, start=1):
            if on_progress is not None:
                on_progress(position, total, chapter.title)

            name = f"{position:03d}_{safe_filename(chapter.title)}{self.settings.extension}"
            path = output_dir / name
            text = self.render_chapter(chapter)
            path.write_text(text, encoding="utf-8")
            self.word_count += self.processor.get_stats(text)["word_count"]
            outputs.append(
                OutputFile(name=name, path=path, size=path.stat().st_size, chapter_count=1)
            )
            log.debug("Wrote %s", name)

        return outputs
