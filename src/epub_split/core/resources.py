"""Work out which manifest resources each partition must carry.

Reference discovery is a pattern scan over the raw markup rather than a
full parse. It can over-include: a ``src`` inside a comment still counts.
"""

import logging
import re
from typing import Callable
from urllib.parse import unquote

from epub_split.models.book import Chapter, ManifestItem, ParsedBook
from epub_split.models.split import Partition

log = logging.getLogger(__name__)

ASSET_EXTENSIONS = "css|jpg|jpeg|png|gif|svg|ttf|otf|woff|woff2|webp"

REFERENCE_PATTERNS = [
    re.compile(r"""src=["']([^"']+)["']""", re.IGNORECASE),
    re.compile(
        rf"""href=["']([^"'#]+\.(?:{ASSET_EXTENSIONS}))["']""", re.IGNORECASE
    ),
    re.compile(r"""url\(["']?([^"')]+)["']?\)""", re.IGNORECASE),
]
CSS_PATTERNS = [REFERENCE_PATTERNS[2]]

SKIPPED_PREFIXES = ("http:", "https:", "//", "data:", "mailto:")

# (manifest item, resolved path, raw ref) -> matched?
MatchStrategy = Callable[[ManifestItem, str, str], bool]

MATCH_STRATEGIES: list[MatchStrategy] = [
    lambda item, resolved, raw: item.href == resolved,
    lambda item, resolved, raw: item.href.endswith("/" + resolved),
    lambda item, resolved, raw: resolved.endswith(item.href),
    lambda item, resolved, raw: item.href == raw,
]


def clean_reference(ref: str) -> str | None:
    """Strip fragments/queries and decode; None for refs that never resolve."""
    ref = ref.strip()
    if not ref or ref.lower().startswith(SKIPPED_PREFIXES) or ref.startswith("#"):
        return None
    ref = ref.split("#", 1)[0].split("?", 1)[0]
    return unquote(ref) or None


def scan_references(markup: str, patterns: list[re.Pattern] = REFERENCE_PATTERNS) -> list[str]:
    """Return cleaned references found in markup, in first-seen order."""
    found: dict[str, None] = {}
    for pattern in patterns:
        for match in pattern.finditer(markup):
            ref = clean_reference(match.group(1))
            if ref is not None:
                found.setdefault(ref)
    return list(found)


def resolve_path(base_dir: str, ref: str) -> str:
    """Resolve ref against a directory relative to the package document.

    >>> resolve_path("text/", "../images/a.png")
    'images/a.png'
    """
    if ref.startswith("/"):
        return ref[1:]

    parts = [p for p in base_dir.split("/") if p]
    for part in ref.split("/"):
        if part == "..":
            if parts:
                parts.pop()
        elif part not in (".", ""):
            parts.append(part)
    return "/".join(parts)


def _decode(content: bytes | None) -> str:
    if not content:
        return ""
    return content.decode("utf-8", errors="replace")


def _directory(href: str) -> str:
    return href.rsplit("/", 1)[0] + "/" if "/" in href else ""


class ResourceResolver:
    """Resolve markup references to manifest resource ids."""

    def __init__(self, book: ParsedBook):
        self.book = book
        self._resources = [
            item for item in book.manifest.values() if not item.is_document
        ]
        self._shared: list[str] | None = None
        self._by_chapter: dict[int, tuple[set[str], list[str]]] = {}

    def match(self, resolved: str, raw: str) -> ManifestItem | None:
        """Try each match strategy in order; the first hit wins."""
        for strategy in MATCH_STRATEGIES:
            for item in self._resources:
                if strategy(item, resolved, raw):
                    return item
        return None

    def resolve_markup(
        self, markup: str, base_dir: str, patterns: list[re.Pattern] = REFERENCE_PATTERNS
    ) -> tuple[set[str], list[str]]:
        """Return (matched ids, unresolved refs) for one document."""
        ids: set[str] = set()
        unresolved: list[str] = []
        for ref in scan_references(markup, patterns):
            item = self.match(resolve_path(base_dir, ref), ref)
            if item is None:
                unresolved.append(ref)
            else:
                ids.add(item.id)
        return ids, unresolved

    def shared_ids(self) -> list[str]:
        """Resources copied into every partition.

        All stylesheets and fonts, the cover image, and whatever those
        stylesheets point at through ``url()``.
        """
        if self._shared is not None:
            return self._shared

        ids: set[str] = set()
        for item in self._resources:
            if item.is_stylesheet or item.is_font:
                ids.add(item.id)
        if self.book.cover_id in self.book.manifest:
            ids.add(self.book.cover_id)

        for item in self._resources:
            if item.is_stylesheet:
                found, missing = self.resolve_markup(
                    _decode(item.content), _directory(item.href), CSS_PATTERNS
                )
                ids |= found
                for ref in missing:
                    log.debug("Unresolved reference %r in stylesheet %s", ref, item.href)

        self._shared = self._in_manifest_order(ids)
        return self._shared

    def shared_bytes(self) -> int:
        return sum(self.book.manifest[i].size for i in self.shared_ids())

    def chapter_references(self, chapter: Chapter) -> tuple[set[str], list[str]]:
        """Return (matched ids, unresolved refs) for one chapter, cached."""
        if chapter.index not in self._by_chapter:
            self._by_chapter[chapter.index] = self.resolve_markup(
                _decode(chapter.content), chapter.directory
            )
        return self._by_chapter[chapter.index]

    def own_resources(self, chapters: list[Chapter]) -> dict[int, dict[str, int]]:
        """Non-shared resources each chapter references, keyed by chapter index."""
        shared = set(self.shared_ids())
        sizes: dict[int, dict[str, int]] = {}
        for chapter in chapters:
            found, _ = self.chapter_references(chapter)
            sizes[chapter.index] = {
                item_id: self.book.manifest[item_id].size
                for item_id in found
                if item_id not in shared
            }
        return sizes

    def resolve_partition(self, partition: Partition) -> tuple[list[str], list[str]]:
        """Return (resource ids, unresolved refs) for a partition.

        Ids include the shared set and come back in manifest order.
        """
        ids = set(self.shared_ids())
        unresolved: dict[str, None] = {}

        for chapter in partition.chapters:
            found, missing = self.chapter_references(chapter)
            ids |= found
            for ref in missing:
                unresolved.setdefault(ref)

        return self._in_manifest_order(ids), list(unresolved)

    def _in_manifest_order(self, ids: set[str]) -> list[str]:
        return [item_id for item_id in self.book.manifest if item_id in ids]
