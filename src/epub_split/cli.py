"""Main CLI application."""

import logging
import warnings
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from epub_split.commands.split import display_warnings, format_size
from epub_split.config import (
    ChapterPattern,
    ExportMode,
    OutputFormat,
    PdfConvertSettings,
    SplitSettings,
    TextExportSettings,
)
from epub_split.core.epub_parser import EpubParser
from epub_split.core.resources import ResourceResolver
from epub_split.errors import EpubSplitWarning

app = typer.Typer(
    name="epub-split",
    help="Split large EPUB files into smaller parts, export them to text, or build them from PDFs.",
    add_completion=False,
)

console = Console()

BookPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the EPUB file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
]

PdfPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the PDF file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
]


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # Commands print collected warnings themselves
    warnings.simplefilter("ignore", EpubSplitWarning)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Split large EPUB files into smaller parts, export them to text, or build them from PDFs."""
    configure_logging(verbose)


@app.command()
def info(book_path: BookPath) -> None:
    """Display book metadata and the chapter list."""
    try:
        book = EpubParser(book_path).parse()
        resolver = ResourceResolver(book)

        info_lines = [
            f"[bold]{book.metadata.title}[/]",
            "",
            f"[dim]Author:[/] {book.metadata.author}",
            f"[dim]Language:[/] {book.metadata.language}",
            f"[dim]Identifier:[/] {book.metadata.identifier}",
            f"[dim]Package:[/] {book.package_path}",
            f"[dim]Chapters:[/] {len(book.chapters)}",
            f"[dim]Manifest items:[/] {len(book.manifest)}",
            f"[dim]Shared resources:[/] {format_size(resolver.shared_bytes())}",
        ]

        console.print()
        console.print(
            Panel("\n".join(info_lines), title="Book Information", border_style="green")
        )

        console.print()
        table = Table(title="Chapters", show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", width=4)
        table.add_column("Title", style="white")
        table.add_column("File", style="dim")
        table.add_column("Size", justify="right", style="green")
        table.add_column("Resources", justify="right")

        for chapter in book.chapters:
            found, _ = resolver.chapter_references(chapter)
            table.add_row(
                str(chapter.index),
                chapter.title,
                chapter.href,
                format_size(chapter.size),
                str(len(found)),
            )

        console.print(table)
        display_warnings(book.warnings, console)
        console.print()

    except Exception as e:
        console.print(f"[red]Error reading file: {e}[/]")
        raise typer.Exit(1)


@app.command()
def plan(
    book_path: BookPath,
    size: Annotated[
        float,
        typer.Option("--size", "-s", help="Target size per part in MB", min=0.01),
    ] = 2.0,
    prefix: Annotated[
        Optional[str],
        typer.Option("--prefix", "-p", help="Output file prefix (default: book file name)"),
    ] = None,
) -> None:
    """Preview how a book would be split, without writing anything."""
    try:
        from epub_split.commands.split import execute_plan

        execute_plan(
            book_path=book_path,
            settings=SplitSettings(target_size_mb=size, prefix=prefix),
            console=console,
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def split(
    book_path: BookPath,
    size: Annotated[
        float,
        typer.Option("--size", "-s", help="Target size per part in MB", min=0.01),
    ] = 2.0,
    prefix: Annotated[
        Optional[str],
        typer.Option("--prefix", "-p", help="Output file prefix (default: book file name)"),
    ] = None,
    output_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--output-dir",
            "-o",
            help="Output directory (default: next to the book)",
        ),
    ] = None,
    bundle: Annotated[
        bool,
        typer.Option("--bundle", "-b", help="Also pack all parts into {prefix}_split.zip"),
    ] = False,
    compression_level: Annotated[
        int,
        typer.Option("--compression-level", help="Deflate level for output archives", min=0, max=9),
    ] = 6,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress progress output"),
    ] = False,
) -> None:
    """Split an EPUB into parts of roughly --size megabytes.

    Chapters are never cut in half: a chapter larger than the target gets a
    part of its own.
    """
    try:
        from epub_split.commands.split import execute_split

        execute_split(
            book_path=book_path,
            settings=SplitSettings(
                target_size_mb=size,
                prefix=prefix,
                compression_level=compression_level,
                bundle=bundle,
            ),
            output_dir=output_dir,
            quiet=quiet,
            console=console,
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command("to-txt")
def to_txt(
    book_path: BookPath,
    mode: Annotated[
        ExportMode,
        typer.Option("--mode", "-m", help="single: one file; chapters: one file per chapter"),
    ] = ExportMode.SINGLE,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format"),
    ] = OutputFormat.TEXT,
    separator: Annotated[
        Optional[str],
        typer.Option("--separator", help="Line placed between chapters in single mode"),
    ] = None,
    output_dir: Annotated[
        Optional[Path],
        typer.Option("--output-dir", "-o", help="Output directory (default: next to the book)"),
    ] = None,
    bundle: Annotated[
        bool,
        typer.Option("--bundle", "-b", help="Also pack chapter files into one zip"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress progress output"),
    ] = False,
) -> None:
    """Convert an EPUB to plain text or Markdown."""
    try:
        from epub_split.commands.export import execute_text_export

        settings = TextExportSettings(mode=mode, output_format=output_format, bundle=bundle)
        if separator:
            settings.separator = separator

        execute_text_export(
            book_path=book_path,
            settings=settings,
            output_dir=output_dir,
            quiet=quiet,
            console=console,
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command("to-epub")
def to_epub(
    pdf_path: PdfPath,
    title: Annotated[
        Optional[str],
        typer.Option("--title", "-t", help="Book title (default: PDF title, then file name)"),
    ] = None,
    author: Annotated[
        Optional[str],
        typer.Option("--author", "-a", help="Book author (default: PDF author)"),
    ] = None,
    language: Annotated[
        str,
        typer.Option("--language", "-l", help="Book language code"),
    ] = "en",
    publisher: Annotated[
        Optional[str],
        typer.Option("--publisher", help="Publisher written to the package metadata"),
    ] = None,
    description: Annotated[
        Optional[str],
        typer.Option("--description", help="Description written to the package metadata"),
    ] = None,
    pattern: Annotated[
        ChapterPattern,
        typer.Option("--pattern", help="Chapter heading style to look for"),
    ] = ChapterPattern.AUTO,
    split_chapters: Annotated[
        bool,
        typer.Option("--split-chapters/--no-split-chapters", help="Detect chapter headings"),
    ] = True,
    pages_per_chapter: Annotated[
        int,
        typer.Option(
            "--pages-per-chapter",
            help="Pages per chapter when no headings are used",
            min=1,
        ),
    ] = 10,
    images: Annotated[
        bool,
        typer.Option("--images/--no-images", help="Extract images from the PDF"),
    ] = True,
    font_size: Annotated[
        int,
        typer.Option("--font-size", help="Body font size in pixels", min=6, max=48),
    ] = 16,
    toc: Annotated[
        bool,
        typer.Option("--ncx/--no-ncx", help="Also write the legacy NCX table of contents"),
    ] = True,
    output_dir: Annotated[
        Optional[Path],
        typer.Option("--output-dir", "-o", help="Output directory (default: next to the PDF)"),
    ] = None,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress progress output"),
    ] = False,
) -> None:
    """Convert a PDF to an EPUB, one chapter per detected heading."""
    try:
        from epub_split.commands.convert import execute_pdf_convert

        execute_pdf_convert(
            pdf_path=pdf_path,
            settings=PdfConvertSettings(
                title=title,
                author=author,
                language=language,
                publisher=publisher,
                description=description,
                extract_images=images,
                split_chapters=split_chapters,
                chapter_pattern=pattern,
                pages_per_chapter=pages_per_chapter,
                font_size=font_size,
                generate_toc=toc,
            ),
            output_dir=output_dir,
            quiet=quiet,
            console=console,
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
