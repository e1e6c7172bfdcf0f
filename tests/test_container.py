from __future__ import annotations

import io
import zipfile

import pytest

from conftest import EpubSpec, build_epub_bytes, simple_book
from epub_split.core.container import open_archive, read_package_path
from epub_split.errors import InvalidContainerError


def _zip(entries: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def test_read_package_path_from_container() -> None:
    spec = simple_book()
    spec.package_path = "content/package.opf"
    archive = open_archive(build_epub_bytes(spec))

    assert read_package_path(archive) == "content/package.opf"


def test_missing_container_xml_is_rejected() -> None:
    archive = open_archive(build_epub_bytes(EpubSpec(include_container=False)))

    with pytest.raises(InvalidContainerError, match="container.xml"):
        read_package_path(archive)


def test_rootfile_without_full_path_is_rejected() -> None:
    data = _zip(
        {
            "mimetype": "application/epub+zip",
            "META-INF/container.xml": (
                '<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container">'
                "<rootfiles><rootfile/></rootfiles></container>"
            ),
        }
    )

    with pytest.raises(InvalidContainerError):
        read_package_path(open_archive(data))


def test_non_zip_input_is_rejected() -> None:
    with pytest.raises(InvalidContainerError, match="Not a zip"):
        open_archive(b"definitely not a zip file")


def test_malformed_container_xml_is_rejected() -> None:
    data = _zip(
        {
            "mimetype": "application/epub+zip",
            "META-INF/container.xml": (
                '<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container">'
                '<rootfiles><rootfile full-path="OEBPS/content.opf">'
                "</rootfiles></container>"
            ),
        }
    )

    with pytest.raises(InvalidContainerError, match="not well-formed"):
        read_package_path(open_archive(data))
