"""Group spine-ordered chapters into size-bounded partitions."""

import logging
from dataclasses import dataclass, field

from epub_split.models.book import Chapter
from epub_split.models.split import Partition

log = logging.getLogger(__name__)


def effective_budget(
    target_bytes: int, shared_bytes: int, min_budget_ratio: float = 0.5
) -> int:
    """Budget left for chapter content once shared resources are counted.

    Never drops below ``min_budget_ratio`` of the target.
    """
    floor = int(target_bytes * min_budget_ratio)
    return max(target_bytes - shared_bytes, floor)


@dataclass
class _Group:
    chapters: list[Chapter] = field(default_factory=list)
    chapter_bytes: int = 0
    resources: dict[str, int] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return self.chapter_bytes + sum(self.resources.values())

    def cost_of(self, chapter: Chapter, resources: dict[str, int]) -> int:
        """Bytes the chapter adds, counting only resources not yet carried."""
        added = {rid: size for rid, size in resources.items() if rid not in self.resources}
        return chapter.size + sum(added.values())

    def add(self, chapter: Chapter, resources: dict[str, int]) -> None:
        self.chapters.append(chapter)
        self.chapter_bytes += chapter.size
        self.resources.update(resources)


def partition_chapters(
    chapters: list[Chapter],
    target_bytes: int,
    shared_bytes: int = 0,
    min_budget_ratio: float = 0.5,
    chapter_resources: dict[int, dict[str, int]] | None = None,
) -> list[Partition]:
    """Greedy forward partitioning in a single pass.

    Chapters accumulate into the current group until the next one would push
    it past the effective budget; that chapter then opens a new group. A
    chapter larger than the budget on its own still gets exactly one
    partition.

    ``chapter_resources`` maps a chapter index to the non-shared resources it
    references (id -> bytes). A resource is charged to a group once, by the
    first chapter in the group that needs it.
    """
    if target_bytes <= 0:
        raise ValueError(f"Target size must be positive, got {target_bytes}")

    chapter_resources = chapter_resources or {}
    budget = effective_budget(target_bytes, shared_bytes, min_budget_ratio)
    groups: list[_Group] = []
    current = _Group()

    for chapter in chapters:
        resources = chapter_resources.get(chapter.index, {})
        if current.chapters and current.size + current.cost_of(chapter, resources) > budget:
            groups.append(current)
            current = _Group()
        current.add(chapter, resources)

    if current.chapters:
        groups.append(current)

    partitions = [
        Partition(
            number=number,
            chapters=group.chapters,
            chapter_bytes=group.chapter_bytes,
            own_resource_bytes=sum(group.resources.values()),
            shared_bytes=shared_bytes,
            target_bytes=target_bytes,
        )
        for number, group in enumerate(groups, start=1)
    ]

    log.debug(
        "Partitioned %d chapters into %d parts (budget %d of %d bytes)",
        len(chapters),
        len(partitions),
        budget,
        target_bytes,
    )
    return partitions
