"""PDF to EPUB conversion command implementation."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from epub_split.commands.split import display_warnings, format_size
from epub_split.config import PdfConvertSettings
from epub_split.core.epub_builder import EpubBuilder
from epub_split.core.pdf_parser import PdfParser


def execute_pdf_convert(
    pdf_path: Path,
    settings: PdfConvertSettings,
    output_dir: Path | None,
    quiet: bool,
    console: Console,
) -> Path:
    """Execute the to-epub command."""
    parser = PdfParser(pdf_path, settings)
    final_output_dir = output_dir or pdf_path.parent

    if quiet:
        parsed = parser.parse()
        return EpubBuilder(parsed, settings).write(final_output_dir)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Reading PDF...", total=None)
        parsed = parser.parse()
        progress.update(task, description="Building EPUB...")
        output = EpubBuilder(parsed, settings).write(final_output_dir)

    summary_lines = [
        f"[green]Converted[/] [bold]{parsed.metadata.title}[/]",
        "",
        f"[dim]Author:[/] {parsed.metadata.author}",
        f"[dim]Pages:[/] {parsed.page_count}",
        f"[dim]Chapters:[/] {len(parsed.sections)} ({parsed.method.value})",
        f"[dim]Images:[/] {len(parsed.images)}",
        f"[dim]Words:[/] {parsed.word_count:,}",
        f"[dim]Output:[/] {output} ({format_size(output.stat().st_size)})",
    ]

    console.print()
    console.print(Panel("\n".join(summary_lines), title="Complete", border_style="green"))
    display_warnings(parsed.warnings, console)
    return output
