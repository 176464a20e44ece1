"""Command-line interface for fullbleed."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from . import _resolve_pdf_path
from .assembler import write_pdf
from .decoder import FullbleedError, InputEmptyError, SourceImage
from .session import GeneratedDocument, ImageSelection


def _format_size(num_bytes: int) -> str:
    """Format a byte count as a human-readable string."""
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fullbleed",
        description=(
            "Merge images into a single PDF. Every page is exactly the pixel"
            " size of its image, with no margins and no scaling."
        ),
    )
    parser.add_argument(
        "images",
        nargs="+",
        type=Path,
        help="Image files, in page order",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help=(
            "Output path: a .pdf file path, a directory, or omit for a"
            " timestamped file name in the CWD."
        ),
    )
    parser.add_argument(
        "--prefix",
        default="merged-images",
        help="Prefix of the generated file name (default: merged-images)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up on an image that takes longer than this many seconds to decode",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log each decoded image and page",
    )
    return parser


def _configure_logging(*, console: Console, verbose: bool) -> None:
    debug = verbose or os.environ.get("FULLBLEED_DEBUG", "").lower() == "true"
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _select_images(*, error_console: Console, paths: list[Path]) -> ImageSelection:
    """Read *paths* into a selection, warning about non-image files."""
    selection = ImageSelection()
    for path in paths:
        source = SourceImage.from_path(path)
        if not selection.add([source]):
            error_console.print(
                f"  [yellow]Warning:[/yellow] skipping {path}"
                f" (not an image: {source.mime_type})"
            )

    if not len(selection):
        raise InputEmptyError("No image files selected")
    return selection


def _selection_table(selection: ImageSelection) -> Table:
    table = Table(title=f"{len(selection)} images selected")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Type")
    for index, source in enumerate(selection, start=1):
        table.add_row(
            str(index), source.name, _format_size(source.size), source.mime_type
        )
    return table


async def _generate_with_progress(
    *,
    console: Console,
    selection: ImageSelection,
    timeout: float | None,
    prefix: str,
) -> GeneratedDocument:
    """Generate the PDF: a progress bar while decoding, a spinner while assembling."""
    progress = Progress(
        SpinnerColumn(),
        "[progress.description]{task.description}",
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    )
    status = console.status("[bold blue]Assembling PDF...")
    total = len(selection)
    done = 0

    with progress:
        task_id = progress.add_task(description="Reading images", total=total)

        def _advance() -> None:
            nonlocal done
            done += 1
            progress.advance(task_id=task_id)
            if done == total:
                progress.stop()
                status.start()

        try:
            return await selection.generate(
                timeout=timeout,
                on_image_done=_advance,
                prefix=prefix,
            )
        finally:
            status.stop()


async def _async_main(
    args: argparse.Namespace,
    *,
    console: Console,
    error_console: Console,
) -> None:
    start_time = time.monotonic()

    selection = _select_images(error_console=error_console, paths=args.images)
    console.print(_selection_table(selection))

    document = await _generate_with_progress(
        console=console,
        selection=selection,
        timeout=args.timeout,
        prefix=args.prefix,
    )

    pdf_path = _resolve_pdf_path(output=args.output, file_name=document.file_name)
    pdf_size = write_pdf(document.data, pdf_path)

    elapsed = time.monotonic() - start_time

    summary_lines = [
        f"[bold]Pages:[/bold] {document.page_count}",
    ]
    for index, (width, height) in enumerate(document.page_sizes, start=1):
        summary_lines.append(f"  [dim]{index}.[/dim] {width} x {height}")
    summary_lines.append(f"[bold]PDF size:[/bold] {_format_size(pdf_size)}")
    summary_lines.append(f"[bold]Output:[/bold] {pdf_path}")

    console.print(Panel(
        "\n".join(summary_lines),
        title=f"[bold green]Done in {elapsed:.1f}s[/bold green]",
        border_style="green",
    ))


def main() -> None:
    """Entry point for the ``fullbleed`` CLI command."""
    console = Console()
    error_console = Console(stderr=True)
    parser = _build_parser()
    args = parser.parse_args()
    _configure_logging(console=error_console, verbose=args.verbose)

    try:
        asyncio.run(_async_main(
            args=args,
            console=console,
            error_console=error_console,
        ))
    except (FullbleedError, OSError) as exc:
        error_console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        error_console.print("\n[dim]Interrupted.[/dim]")
        sys.exit(130)
