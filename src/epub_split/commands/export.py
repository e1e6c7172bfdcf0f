"""Text export command implementation."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress

from epub_split.commands.split import display_warnings, format_size
from epub_split.config import ExportMode, TextExportSettings
from epub_split.core.epub_parser import EpubParser
from epub_split.core.text_exporter import TextExporter


def execute_text_export(
    book_path: Path,
    settings: TextExportSettings,
    output_dir: Path | None,
    quiet: bool,
    console: Console,
) -> None:
    """Execute the to-txt command."""
    book = EpubParser(book_path).parse()
    exporter = TextExporter(book, settings)
    final_output_dir = output_dir or book_path.parent

    if not quiet and settings.mode == ExportMode.CHAPTERS:
        with Progress(console=console) as progress:
            task = progress.add_task("Converting chapters...", total=len(book.chapters))

            def advance(position: int, total: int, title: str) -> None:
                progress.update(
                    task, completed=position - 1, description=f"Converting: {title[:40]}..."
                )

            outputs = exporter.export(final_output_dir, on_progress=advance)
            progress.update(task, completed=len(book.chapters))
    else:
        outputs = exporter.export(final_output_dir)

    if quiet:
        return

    summary_lines = [
        f"[green]Converted {len(book.chapters)} chapter(s) of[/] [bold]{book.metadata.title}[/]",
        "",
        f"[dim]Words:[/] {exporter.word_count:,}",
        f"[dim]Output directory:[/] {final_output_dir}",
    ]
    for output in outputs:
        summary_lines.append(f"  {output.name} ({format_size(output.size)})")

    console.print()
    console.print(Panel("\n".join(summary_lines), title="Complete", border_style="green"))
    display_warnings(book.warnings, console)
