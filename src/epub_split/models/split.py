"""Data models for split plans and written output."""

from pathlib import Path

from pydantic import BaseModel, Field

from epub_split.models.book import Chapter, ParsedBook


class Partition(BaseModel):
    """A contiguous run of chapters destined for one output archive."""

    number: int  # 1-based
    chapters: list[Chapter]
    chapter_bytes: int
    own_resource_bytes: int = 0  # Non-shared resources its chapters reference
    shared_bytes: int = 0
    target_bytes: int = 0
    resource_ids: list[str] = Field(default_factory=list)
    resource_bytes: int = 0  # Every resource carried, shared ones included

    @property
    def size(self) -> int:
        """Size estimate the budget is checked against."""
        return self.chapter_bytes + self.own_resource_bytes + self.shared_bytes

    @property
    def total_size(self) -> int:
        """Chapter bytes plus every resource carried, once resolved."""
        if not self.resource_ids:
            return self.size
        return self.chapter_bytes + self.resource_bytes

    @property
    def oversized(self) -> bool:
        return len(self.chapters) == 1 and self.size > self.target_bytes

    @property
    def first_index(self) -> int:
        return self.chapters[0].index

    @property
    def last_index(self) -> int:
        return self.chapters[-1].index


class SplitPlan(BaseModel):
    """Partitions of a book plus the resources each one carries."""

    book: ParsedBook
    prefix: str
    target_bytes: int
    effective_budget: int
    shared_ids: list[str] = Field(default_factory=list)
    partitions: list[Partition]
    unresolved: dict[int, list[str]] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    def file_name(self, partition: Partition) -> str:
        return f"{self.prefix}_part{partition.number}.epub"

    @property
    def chapter_count(self) -> int:
        return sum(len(p.chapters) for p in self.partitions)


class OutputFile(BaseModel):
    """A file produced by split or text export."""

    name: str
    path: Path
    size: int
    chapter_count: int = 0
