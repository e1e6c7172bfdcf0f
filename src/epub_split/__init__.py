"""Split large EPUB files into smaller self-contained parts."""

__version__ = "0.1.0"
