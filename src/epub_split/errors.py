"""Exceptions and warnings raised while reading, splitting, converting and writing books."""

from pathlib import Path


class EpubSplitError(Exception):
    """Base class for fatal errors."""


class InvalidContainerError(EpubSplitError):
    """Archive is not a zip or lacks a usable META-INF/container.xml."""


class InvalidPackageError(EpubSplitError):
    """Package document is missing, unparsable, or has no manifest/spine."""


class InvalidPdfError(EpubSplitError):
    """Input is not a readable PDF (corrupt, empty or encrypted)."""


class EncodingError(EpubSplitError):
    """Writing an output archive failed.

    Files written before the failure are left on disk and listed in
    ``written``.
    """

    def __init__(self, message: str, written: list[Path] | None = None):
        super().__init__(message)
        self.written = written or []


class EpubSplitWarning(UserWarning):
    """Base class for non-fatal problems found in the source book."""


class MissingManifestReferenceWarning(EpubSplitWarning):
    """A spine entry points at an id the manifest does not declare."""


class ResourceCopyWarning(EpubSplitWarning):
    """A referenced file could not be found in the source archive."""
