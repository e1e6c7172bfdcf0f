"""Parse the OPF package document: metadata, manifest and spine."""

import logging
import uuid
import zipfile
from typing import Callable
from urllib.parse import unquote

from bs4 import BeautifulSoup, Tag

from epub_split.core.container import parse_xml, read_entry
from epub_split.errors import InvalidPackageError
from epub_split.models.book import ManifestItem, PackageMetadata

log = logging.getLogger(__name__)

DEFAULT_AUTHOR = "Unknown"
DEFAULT_LANGUAGE = "en"

# Each lookup returns the element text or None; the first hit wins
ElementLookup = Callable[[Tag], str | None]


def _find_text(name: str) -> ElementLookup:
    def lookup(metadata: Tag) -> str | None:
        element = metadata.find(name)
        if element is None:
            return None
        text = element.get_text(strip=True)
        return text or None

    return lookup


def _first_text(metadata: Tag | None, lookups: list[ElementLookup]) -> str | None:
    if metadata is None:
        return None
    for lookup in lookups:
        value = lookup(metadata)
        if value:
            return value
    return None


TITLE_LOOKUPS = [_find_text("title"), _find_text("dc:title")]
CREATOR_LOOKUPS = [_find_text("creator"), _find_text("dc:creator")]
IDENTIFIER_LOOKUPS = [_find_text("identifier"), _find_text("dc:identifier")]
LANGUAGE_LOOKUPS = [_find_text("language"), _find_text("dc:language")]
PUBLISHER_LOOKUPS = [_find_text("publisher"), _find_text("dc:publisher")]
DESCRIPTION_LOOKUPS = [_find_text("description"), _find_text("dc:description")]


def package_dir(package_path: str) -> str:
    """'OEBPS/content.opf' -> 'OEBPS/'."""
    if "/" not in package_path:
        return ""
    return package_path.rsplit("/", 1)[0] + "/"


def parse_metadata(soup: BeautifulSoup, fallback_title: str) -> PackageMetadata:
    """Read title, creator, identifier and language with fallbacks.

    Publisher and description are optional and carried over when present.
    """
    metadata = soup.find("metadata")

    return PackageMetadata(
        title=_first_text(metadata, TITLE_LOOKUPS) or fallback_title,
        author=_first_text(metadata, CREATOR_LOOKUPS) or DEFAULT_AUTHOR,
        identifier=(
            _first_text(metadata, IDENTIFIER_LOOKUPS) or f"urn:uuid:{uuid.uuid4()}"
        ),
        language=_first_text(metadata, LANGUAGE_LOOKUPS) or DEFAULT_LANGUAGE,
        publisher=_first_text(metadata, PUBLISHER_LOOKUPS),
        description=_first_text(metadata, DESCRIPTION_LOOKUPS),
    )


def find_cover_id(soup: BeautifulSoup, manifest: dict[str, ManifestItem]) -> str | None:
    """Locate the cover image via EPUB 3 properties or the EPUB 2 meta tag."""
    for item in manifest.values():
        if "cover-image" in item.properties.split():
            return item.id

    meta = soup.find("meta", attrs={"name": "cover"})
    if meta is not None and meta.get("content") in manifest:
        return meta["content"]
    return None


def parse_manifest(
    manifest_el: Tag, archive: zipfile.ZipFile, base_dir: str
) -> dict[str, ManifestItem]:
    """Build manifest items keyed by id, loading each file's bytes."""
    items: dict[str, ManifestItem] = {}

    for item in manifest_el.find_all("item"):
        item_id = item.get("id")
        raw_href = item.get("href")
        if not item_id or not raw_href:
            log.debug("Skipping manifest item without id/href: %s", item)
            continue

        href = unquote(raw_href)
        full_path = base_dir + href
        content = read_entry(archive, full_path)

        items[item_id] = ManifestItem(
            id=item_id,
            href=href,
            full_path=full_path,
            media_type=item.get("media-type", ""),
            properties=item.get("properties", ""),
            size=len(content) if content is not None else 0,
            content=content,
        )

    return items


def parse_package(
    archive: zipfile.ZipFile, package_path: str, fallback_title: str
) -> tuple[PackageMetadata, dict[str, ManifestItem], list[str], str | None]:
    """Parse the package document.

    Returns metadata, the manifest keyed by id, the spine idrefs in reading
    order and the cover image id (if any).
    """
    opf = read_entry(archive, package_path)
    if opf is None:
        raise InvalidPackageError(f"Invalid EPUB: package document {package_path} not found")

    soup = parse_xml(opf, package_path, InvalidPackageError)
    if soup.find("package") is None:
        raise InvalidPackageError(f"Invalid EPUB: {package_path} is not a package document")

    manifest_el = soup.find("manifest")
    if manifest_el is None:
        raise InvalidPackageError("Invalid EPUB: package document has no manifest")

    spine_el = soup.find("spine")
    if spine_el is None:
        raise InvalidPackageError("Invalid EPUB: package document has no spine")

    metadata = parse_metadata(soup, fallback_title)
    manifest = parse_manifest(manifest_el, archive, package_dir(package_path))
    spine = [ref["idref"] for ref in spine_el.find_all("itemref") if ref.get("idref")]

    log.debug(
        "Parsed package: %d manifest items, %d spine entries", len(manifest), len(spine)
    )
    return metadata, manifest, spine, find_cover_id(soup, manifest)
