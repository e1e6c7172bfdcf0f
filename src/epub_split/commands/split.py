"""Plan and split command implementations."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress
from rich.table import Table

from epub_split.config import SplitSettings
from epub_split.core.epub_parser import EpubParser
from epub_split.core.splitter import EpubSplitter, bundle_outputs
from epub_split.models.split import SplitPlan


def format_size(size: int) -> str:
    """Human-readable byte count."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def display_warnings(warnings: list[str], console: Console) -> None:
    for warning in warnings:
        console.print(f"[yellow]⚠ {warning}[/]")


def display_plan(plan: SplitPlan, console: Console) -> None:
    """Show book info and the planned parts."""
    book = plan.book
    info_lines = [
        f"[bold]{book.metadata.title}[/]",
        f"[dim]Author:[/] {book.metadata.author}",
        f"[dim]Chapters:[/] {len(book.chapters)}",
        f"[dim]Parts:[/] {len(plan.partitions)}",
        f"[dim]Target size:[/] {format_size(plan.target_bytes)}",
        f"[dim]Shared resources:[/] {len(plan.shared_ids)}",
    ]
    console.print()
    console.print(Panel("\n".join(info_lines), title="Split Plan", border_style="green"))

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("File", style="white")
    table.add_column("Chapters", justify="right")
    table.add_column("Resources", justify="right", style="dim")
    table.add_column("Size", justify="right", style="green")

    for partition in plan.partitions:
        name = plan.file_name(partition)
        if partition.oversized:
            name += " [yellow](single oversized chapter)[/]"
        table.add_row(
            str(partition.number),
            name,
            f"{partition.first_index}-{partition.last_index} ({len(partition.chapters)})",
            str(len(partition.resource_ids)),
            f"≤ {format_size(partition.total_size)}",
        )

    console.print(table)
    display_warnings(book.warnings + plan.warnings, console)
    console.print()


def load_plan(book_path: Path, settings: SplitSettings) -> tuple[EpubSplitter, SplitPlan]:
    book = EpubParser(book_path, title_max_length=settings.title_max_length).parse()
    splitter = EpubSplitter(book, settings)
    return splitter, splitter.plan()


def execute_plan(book_path: Path, settings: SplitSettings, console: Console) -> None:
    """Execute the plan command."""
    _, plan = load_plan(book_path, settings)
    display_plan(plan, console)


def execute_split(
    book_path: Path,
    settings: SplitSettings,
    output_dir: Path | None,
    quiet: bool,
    console: Console,
) -> None:
    """Execute the split command."""
    splitter, plan = load_plan(book_path, settings)
    final_output_dir = output_dir or book_path.parent
    planned_warnings = len(plan.warnings)

    if not quiet:
        display_plan(plan, console)
        with Progress(console=console) as progress:
            task = progress.add_task("Writing parts...", total=len(plan.partitions))

            def advance(number: int, total: int, name: str) -> None:
                progress.update(
                    task, completed=number - 1, description=f"Writing {name}..."
                )

            outputs = splitter.write(plan, final_output_dir, on_progress=advance)
            progress.update(task, completed=len(plan.partitions))
    else:
        outputs = splitter.write(plan, final_output_dir)

    bundle = None
    if settings.bundle:
        bundle = bundle_outputs(
            outputs,
            final_output_dir / f"{plan.prefix}_split.zip",
            settings.compression_level,
        )

    if quiet:
        return

    summary_lines = [
        f"[green]Successfully wrote {len(outputs)} part(s)[/]",
        "",
        f"[dim]Output directory:[/] {final_output_dir}",
    ]
    for output in outputs:
        summary_lines.append(f"  {output.name} ({format_size(output.size)})")
    if bundle is not None:
        summary_lines.append(f"[dim]Bundle:[/] {bundle.name} ({format_size(bundle.size)})")

    console.print()
    console.print(Panel("\n".join(summary_lines), title="Complete", border_style="green"))
    display_warnings(plan.warnings[planned_warnings:], console)
