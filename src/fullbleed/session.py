"""Selection state and the single generation entry point."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .assembler import assemble_pdf
from .decoder import (
    DecodedImage,
    GenerationInProgressError,
    InputEmptyError,
    SourceImage,
    decode_source,
)

logger = logging.getLogger(__name__)

_DEFAULT_PREFIX = "merged-images"


def suggest_file_name(
    now: datetime | None = None,
    *,
    prefix: str = _DEFAULT_PREFIX,
) -> str:
    """Return ``{prefix}_YYYY-MM-DD-HH-MM-SS.pdf`` for *now* (UTC)."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S").replace(":", "-").replace("T", "-")
    return f"{prefix}_{stamp}.pdf"


@dataclass
class GeneratedDocument:
    """A finished PDF plus the name it should be saved under."""

    data: bytes
    file_name: str
    page_sizes: list[tuple[int, int]] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.page_sizes)


class ImageSelection:
    """Ordered, append-only list of images awaiting conversion.

    Images are only removed by :meth:`clear`.  A failed generation leaves
    the selection untouched so it can be retried.
    """

    def __init__(self, sources: Iterable[SourceImage] = ()) -> None:
        self._sources: list[SourceImage] = []
        self._generating = False
        self.add(sources)

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[SourceImage]:
        return iter(self.images)

    @property
    def images(self) -> tuple[SourceImage, ...]:
        return tuple(self._sources)

    @property
    def is_generating(self) -> bool:
        return self._generating

    def add(self, sources: Iterable[SourceImage]) -> int:
        """Append every source whose MIME type is ``image/*``.

        Returns:
            Number of sources accepted.
        """
        accepted = 0
        for source in sources:
            if not source.is_image:
                logger.debug("Skipping %s (%s)", source.name, source.mime_type)
                continue
            self._sources.append(source)
            accepted += 1
        return accepted

    def add_paths(self, paths: Iterable[Path | str]) -> int:
        """Read *paths* from disk and :meth:`add` them in order."""
        return self.add(SourceImage.from_path(path) for path in paths)

    def clear(self) -> int:
        """Remove every image.  Returns how many were removed."""
        removed = len(self._sources)
        self._sources.clear()
        return removed

    async def generate(
        self,
        *,
        timeout: float | None = None,
        on_image_done: Callable[[], None] | None = None,
        now: datetime | None = None,
        prefix: str = _DEFAULT_PREFIX,
    ) -> GeneratedDocument:
        """Decode the current selection in order and build the PDF.

        Decoding and assembly both run in worker threads, one step at a
        time, so the event loop stays responsive.

        Args:
            timeout: Per-image decode limit in seconds.
            on_image_done: Called after each image has been decoded.
            now: Timestamp used for the suggested file name.
            prefix: File name prefix.

        Raises:
            InputEmptyError: If the selection is empty.
            GenerationInProgressError: If another generation is running.
            DecodeError: If any image cannot be decoded.
            EmbedError: If any image cannot be embedded.
            DependencyUnavailableError: If the PDF backend is missing.
        """
        if not self._sources:
            raise InputEmptyError("No images selected")
        if self._generating:
            raise GenerationInProgressError("A PDF is already being generated")

        self._generating = True
        try:
            snapshot = self.images
            decoded: list[DecodedImage] = []
            for source in snapshot:
                decoded.append(await decode_source(source, timeout=timeout))
                if on_image_done is not None:
                    on_image_done()

            pdf_bytes = await asyncio.to_thread(assemble_pdf, decoded)
        finally:
            self._generating = False

        return GeneratedDocument(
            data=pdf_bytes,
            file_name=suggest_file_name(now, prefix=prefix),
            page_sizes=[(image.width, image.height) for image in decoded],
        )
