"""Process chapter XHTML into plain text or Markdown."""

import re
from bs4 import BeautifulSoup
from markdownify import markdownify as md

from epub_split.config import OutputFormat

BLANK_LINE_RUNS = re.compile(r"\n\s*\n")
TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)

BLOCK_TAGS = [
    "p",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "li",
    "blockquote",
    "pre",
    "dt",
    "dd",
    "td",
    "th",
    "figcaption",
]


class ContentProcessor:
    """Process chapter XHTML into reader-friendly text."""

    def process(
        self,
        html_content: bytes,
        output_format: OutputFormat = OutputFormat.TEXT,
    ) -> str:
        """Convert XHTML to the specified format."""
        if not html_content:
            return ""

        soup = BeautifulSoup(html_content, "lxml")

        # Remove scripts and styles
        for tag in soup(["script", "style"]):
            tag.decompose()

        if output_format == OutputFormat.MARKDOWN:
            return self._to_markdown(soup)
        return self._to_plain_text(soup)

    def _to_markdown(self, soup: BeautifulSoup) -> str:
        """Markdown with images and link targets dropped."""
        markdown = md(
            str(soup.body or soup),
            heading_style="ATX",
            bullets="-",
            strip=["a", "img"],
        )
        markdown = TRAILING_SPACE.sub("", markdown)
        return BLANK_LINE_RUNS.sub("\n\n", markdown).strip()

    def _to_plain_text(self, soup: BeautifulSoup) -> str:
        """One paragraph per block element, separated by blank lines."""
        body = soup.body
        if body is None:
            return ""

        for br in body.find_all("br"):
            br.replace_with("\n")

        paragraphs = []
        for block in body.find_all(BLOCK_TAGS):
            # Nested blocks are already covered by their outermost block
            if block.find_parent(BLOCK_TAGS) is not None:
                continue
            text = " ".join(block.get_text().split())
            if text:
                paragraphs.append(text)

        if not paragraphs:
            return " ".join(body.get_text().split())
        return "\n\n".join(paragraphs)

    def get_stats(self, content: str) -> dict[str, int]:
        """Word, character and paragraph counts of rendered output."""
        return {
            "word_count": len(content.split()),
            "character_count": len(content),
            "paragraph_count": len(
                [block for block in BLANK_LINE_RUNS.split(content) if block.strip()]
            ),
        }
