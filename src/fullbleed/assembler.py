"""Assemble decoded images into a PDF with one full-bleed page per image."""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from contextlib import ExitStack
from pathlib import Path
from types import ModuleType

from .decoder import (
    DecodedImage,
    DependencyUnavailableError,
    EmbedError,
    InputEmptyError,
)

logger = logging.getLogger(__name__)


def _load_backend() -> tuple[ModuleType, ModuleType]:
    """Import the PDF backend (img2pdf encodes images, pikepdf builds pages).

    Raises:
        DependencyUnavailableError: If either library cannot be imported.
    """
    try:
        import img2pdf
        import pikepdf
    except ImportError as exc:
        raise DependencyUnavailableError(
            f"PDF backend is not available: {exc}"
        ) from exc
    return img2pdf, pikepdf


# img2pdf's pikepdf engine refuses page sides outside 3..14400 units, so
# pages are rendered at this size and resized to the image afterwards.
_RENDER_FRAME = 100.0


def _render_layout(
    imgwidthpx: int,
    imgheightpx: int,
    ndpi: tuple[float, float],
) -> tuple[float, float, float, float]:
    """img2pdf layout function: fixed frame, the image covering it."""
    return _RENDER_FRAME, _RENDER_FRAME, _RENDER_FRAME, _RENDER_FRAME


def _render_page(img2pdf: ModuleType, image: DecodedImage, index: int) -> bytes:
    """Render *image* as a single-page PDF holding its image XObject."""
    try:
        return img2pdf.convert(
            image.data,
            layout_fun=_render_layout,
            rotation=img2pdf.Rotation.none,
            first_frame_only=True,
        )
    except (
        img2pdf.ImageOpenError,
        img2pdf.AlphaChannelError,
        img2pdf.PdfTooLargeError,
        OSError,
        ValueError,
    ) as exc:
        raise EmbedError(
            f"Image {index + 1} ({image.name or 'unnamed'}) could not be"
            f" embedded: {exc}"
        ) from exc


def _frame_page(pikepdf: ModuleType, pdf, image: DecodedImage) -> None:
    """Size the only page of *pdf* to *image* and draw it at full bleed."""
    page = pdf.pages[0]
    (name,) = page.Resources.XObject.keys()
    page.MediaBox = pikepdf.Array([0, 0, image.width, image.height])
    content = f"q\n{image.width} 0 0 {image.height} 0 0 cm\n{name} Do\nQ"
    page.Contents = pdf.make_indirect(pikepdf.Stream(pdf, content.encode("ascii")))


def assemble_pdf(images: Sequence[DecodedImage]) -> bytes:
    """Build a PDF with one page per image, in order.

    The first image creates the document.  Every following image appends
    a page whose size equals its own pixel dimensions.  Each image is
    drawn at the origin covering its page exactly.

    Args:
        images: Ordered decoded images.

    Returns:
        The serialized PDF.

    Raises:
        InputEmptyError: If *images* is empty.
        DependencyUnavailableError: If img2pdf or pikepdf is missing.
        EmbedError: If any image cannot be embedded or the document cannot
            be written.  No partial document is returned.
    """
    if not images:
        raise InputEmptyError("images must not be empty")

    img2pdf, pikepdf = _load_backend()

    # Page streams are copied lazily, so every source PDF stays open
    # until the document has been saved.
    with ExitStack() as stack:
        document = None
        for index, image in enumerate(images):
            page_pdf = _render_page(img2pdf, image, index)
            try:
                single = stack.enter_context(pikepdf.Pdf.open(io.BytesIO(page_pdf)))
            except pikepdf.PdfError as exc:
                raise EmbedError(
                    f"Image {index + 1} ({image.name or 'unnamed'}) produced an"
                    f" unreadable page: {exc}"
                ) from exc
            _frame_page(pikepdf, single, image)

            if document is None:
                document = single
            else:
                document.pages.extend(single.pages)

            logger.debug(
                "Page %d: %dx%d (%s)",
                index + 1, image.width, image.height, image.name or "unnamed",
            )

        buffer = io.BytesIO()
        try:
            document.save(
                buffer,
                compress_streams=True,
                object_stream_mode=pikepdf.ObjectStreamMode.generate,
            )
        except pikepdf.PdfError as exc:
            raise EmbedError(f"Failed to write PDF: {exc}") from exc

    pdf_bytes = buffer.getvalue()
    logger.info("Assembled %d pages (%d bytes)", len(images), len(pdf_bytes))
    return pdf_bytes


def write_pdf(pdf_bytes: bytes, output_path: Path) -> int:
    """Write *pdf_bytes* to *output_path*, creating parent directories.

    Returns:
        Size of the written PDF in bytes.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(pdf_bytes)
    return len(pdf_bytes)
