"""Open an EPUB archive and locate its package document."""

import io
import logging
import zipfile

from bs4 import BeautifulSoup
from lxml import etree

from epub_split.errors import EpubSplitError, InvalidContainerError

log = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"

# No recovery: a document lxml would have to patch up is rejected
STRICT_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


def open_archive(data: bytes) -> zipfile.ZipFile:
    """Open raw EPUB bytes as a zip archive."""
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise InvalidContainerError(f"Not a zip archive: {e}") from e


def read_entry(archive: zipfile.ZipFile, name: str) -> bytes | None:
    """Return the bytes of an archive entry, or None if it does not exist."""
    try:
        return archive.read(name)
    except KeyError:
        return None


def parse_xml(
    data: bytes, name: str, error: type[EpubSplitError]
) -> BeautifulSoup:
    """Check that data is well-formed XML, then parse it for querying."""
    try:
        etree.fromstring(data, parser=STRICT_PARSER)
    except etree.XMLSyntaxError as e:
        raise error(f"Invalid EPUB: {name} is not well-formed XML: {e}") from e
    return BeautifulSoup(data, "xml")


def read_package_path(archive: zipfile.ZipFile) -> str:
    """Return the package document path declared in container.xml."""
    container_xml = read_entry(archive, CONTAINER_PATH)
    if container_xml is None:
        raise InvalidContainerError(f"Invalid EPUB: {CONTAINER_PATH} not found")

    soup = parse_xml(container_xml, CONTAINER_PATH, InvalidContainerError)
    rootfile = soup.find("rootfile")
    full_path = rootfile.get("full-path") if rootfile is not None else None
    if not full_path:
        raise InvalidContainerError(
            f"Invalid EPUB: {CONTAINER_PATH} has no package document reference"
        )

    log.debug("Package document at %s", full_path)
    return full_path.lstrip("/")
