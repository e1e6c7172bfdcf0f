"""Split pipeline: parse, partition, resolve resources, write parts."""

import logging
import warnings
import zipfile
from pathlib import Path
from typing import Callable

from epub_split.config import SplitSettings
from epub_split.core.archive_writer import ArchiveWriter
from epub_split.core.epub_parser import EpubParser
from epub_split.core.partitioner import effective_budget, partition_chapters
from epub_split.core.resources import ResourceResolver
from epub_split.errors import EncodingError, InvalidPackageError, ResourceCopyWarning
from epub_split.models.book import ParsedBook
from epub_split.models.split import OutputFile, SplitPlan

log = logging.getLogger(__name__)

# (part number, total parts, file name) -> None
ProgressCallback = Callable[[int, int, str], None]


class EpubSplitter:
    """Plan and write the parts of a parsed book.

    Parts are written one at a time, in order. A failure while writing part
    k leaves parts 1..k-1 on disk.
    """

    def __init__(self, book: ParsedBook, settings: SplitSettings | None = None):
        self.book = book
        self.settings = settings or SplitSettings()
        self.resolver = ResourceResolver(book)

    def plan(self) -> SplitPlan:
        """Partition chapters and attach the resources each part needs."""
        if not self.book.chapters:
            raise InvalidPackageError(
                f"{self.book.source_name} has no readable chapters in its spine"
            )

        target = self.settings.target_bytes
        shared_ids = self.resolver.shared_ids()
        shared_bytes = self.resolver.shared_bytes()

        partitions = partition_chapters(
            self.book.chapters,
            target,
            shared_bytes=shared_bytes,
            min_budget_ratio=self.settings.min_budget_ratio,
            chapter_resources=self.resolver.own_resources(self.book.chapters),
        )

        plan_warnings: list[str] = []
        unresolved: dict[int, list[str]] = {}
        for partition in partitions:
            ids, missing = self.resolver.resolve_partition(partition)
            partition.resource_ids = ids
            partition.resource_bytes = sum(self.book.manifest[i].size for i in ids)
            if missing:
                unresolved[partition.number] = missing
                for ref in missing:
                    message = (
                        f"Part {partition.number}: reference '{ref}' does not match "
                        "any manifest resource"
                    )
                    log.info(message)
                    warnings.warn(message, ResourceCopyWarning, stacklevel=2)
                    plan_warnings.append(message)

        plan = SplitPlan(
            book=self.book,
            prefix=self.settings.resolve_prefix(self.book.source_name),
            target_bytes=target,
            effective_budget=effective_budget(
                target, shared_bytes, self.settings.min_budget_ratio
            ),
            shared_ids=shared_ids,
            partitions=partitions,
            unresolved=unresolved,
            warnings=plan_warnings,
        )
        log.info(
            "Planned %d part(s) for %d chapters", len(partitions), plan.chapter_count
        )
        return plan

    def write(
        self,
        plan: SplitPlan,
        output_dir: Path,
        on_progress: ProgressCallback | None = None,
    ) -> list[OutputFile]:
        """Write each partition to {prefix}_part{N}.epub under output_dir."""
        writer = ArchiveWriter(
            self.book,
            total_parts=len(plan.partitions),
            compression_level=self.settings.compression_level,
        )
        written: list[OutputFile] = []
        total = len(plan.partitions)

        for partition in plan.partitions:
            name = plan.file_name(partition)
            if on_progress is not None:
                on_progress(partition.number, total, name)

            path = output_dir / name
            try:
                data = writer.build(partition)
                output_dir.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
            except EncodingError as e:
                e.written = [f.path for f in written]
                raise
            except OSError as e:
                raise EncodingError(
                    f"Failed to write {path}: {e}", written=[f.path for f in written]
                ) from e

            written.append(
                OutputFile(
                    name=name,
                    path=path,
                    size=len(data),
                    chapter_count=len(partition.chapters),
                )
            )
            log.info("Wrote %s (%d bytes)", name, len(data))

        plan.warnings.extend(writer.warnings)
        return written


def bundle_outputs(
    files: list[OutputFile], bundle_path: Path, compression_level: int = 6
) -> OutputFile:
    """Pack output files into a single zip for one-shot download."""
    try:
        bundle_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(
            bundle_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level
        ) as zf:
            for output in files:
                zf.write(output.path, output.name)
    except OSError as e:
        raise EncodingError(f"Failed to write bundle {bundle_path}: {e}") from e

    return OutputFile(
        name=bundle_path.name,
        path=bundle_path,
        size=bundle_path.stat().st_size,
        chapter_count=sum(f.chapter_count for f in files),
    )


def split_epub(
    epub_path: Path,
    settings: SplitSettings | None = None,
    output_dir: Path | None = None,
) -> list[OutputFile]:
    """Split an EPUB file in one call.

    Returns the written parts, followed by the bundle when
    ``settings.bundle`` is set.
    """
    settings = settings or SplitSettings()
    book = EpubParser(epub_path, title_max_length=settings.title_max_length).parse()
    splitter = EpubSplitter(book, settings)
    plan = splitter.plan()

    target_dir = output_dir or epub_path.parent
    outputs = splitter.write(plan, target_dir)
    if settings.bundle:
        outputs.append(
            bundle_outputs(
                outputs,
                target_dir / f"{plan.prefix}_split.zip",
                settings.compression_level,
            )
        )
    return outputs
