"""fullbleed: Merge images into a PDF whose pages match each image's pixel size."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .assembler import assemble_pdf, write_pdf
from .decoder import (
    DecodedImage,
    DecodeError,
    DependencyUnavailableError,
    EmbedError,
    FullbleedError,
    GenerationInProgressError,
    ImageFormat,
    InputEmptyError,
    SourceImage,
    classify_format,
    decode,
    decode_source,
)
from .session import GeneratedDocument, ImageSelection, suggest_file_name

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "DecodeError",
    "DecodedImage",
    "DependencyUnavailableError",
    "EmbedError",
    "FullbleedError",
    "GeneratedDocument",
    "GenerationInProgressError",
    "ImageFormat",
    "ImageSelection",
    "InputEmptyError",
    "MergeResult",
    "SourceImage",
    "assemble_pdf",
    "classify_format",
    "decode",
    "decode_source",
    "merge_images",
    "suggest_file_name",
    "write_pdf",
]


@dataclass
class MergeResult:
    """Outcome of merging a set of image files into a PDF."""

    image_count: int
    page_sizes: list[tuple[int, int]]
    skipped: int
    total_bytes: int
    output_path: Path


def _resolve_pdf_path(
    *,
    output: Path | str | None,
    file_name: str,
) -> Path:
    """Resolve the output PDF file path.

    Rules:
        - ``None`` → ``{cwd}/{file_name}``
        - Ends in ``.pdf`` → treated as literal file path
        - Otherwise → treated as directory: ``{path}/{file_name}``
    """
    if output is None:
        return Path(file_name).resolve()

    output = Path(output)
    if output.suffix.lower() == ".pdf":
        return output.resolve()

    return (output / file_name).resolve()


async def merge_images(
    paths: Iterable[Path | str],
    output: Path | str | None = None,
    *,
    timeout: float | None = None,
) -> MergeResult:
    """Merge image files into a single full-bleed PDF.

    This is the high-level convenience function that reads the files,
    decodes them in order and writes the assembled PDF.

    Args:
        paths: Image files, in page order.  Files whose type is not
            ``image/*`` are skipped.
        output: Output path.  Omit for a timestamped name in the CWD, pass
            a ``.pdf`` path to use it literally, or pass a directory to
            save the timestamped name inside it.
        timeout: Optional per-image decode limit in seconds.

    Returns:
        A :class:`MergeResult` summarizing the outcome.

    Raises:
        InputEmptyError: If none of *paths* is an image.
        DecodeError: If an image cannot be read.
        EmbedError: If an image cannot be embedded.
        DependencyUnavailableError: If the PDF backend is missing.

    Example::

        import asyncio
        from fullbleed import merge_images

        result = asyncio.run(merge_images(["a.jpg", "b.png"], "out.pdf"))
        print(f"Saved {len(result.page_sizes)} pages to {result.output_path}")
    """
    paths = list(paths)
    selection = ImageSelection()
    accepted = selection.add_paths(paths)

    document = await selection.generate(timeout=timeout)

    pdf_path = _resolve_pdf_path(output=output, file_name=document.file_name)
    pdf_size = write_pdf(document.data, pdf_path)

    return MergeResult(
        image_count=accepted,
        page_sizes=document.page_sizes,
        skipped=len(paths) - accepted,
        total_bytes=pdf_size,
        output_path=pdf_path,
    )
