"""Pillow-based probing of source images into embeddable page images."""

from __future__ import annotations

import asyncio
import io
import logging
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

_FALLBACK_MIME_TYPE = "application/octet-stream"

# Missing from the default table on older interpreters.
mimetypes.add_type("image/webp", ".webp")

# Formats the PDF backend embeds without transcoding.  Everything else is
# re-encoded losslessly.
_PASSTHROUGH_FORMATS = frozenset({"JPEG", "PNG", "TIFF"})

# Pixel modes Pillow can write as PNG.  Other modes (CMYK, YCbCr, F, ...)
# are re-encoded as TIFF instead.
_PNG_MODES = frozenset({
    "1", "L", "LA", "I", "I;16", "I;16B", "P", "RGB", "RGBA",
})


class FullbleedError(Exception):
    """Base exception for fullbleed errors."""


class InputEmptyError(FullbleedError):
    """Raised when a document is requested for an empty image list."""


class DecodeError(FullbleedError):
    """Raised when an image byte stream cannot be read or has no usable size."""


class EmbedError(FullbleedError):
    """Raised when a decoded image cannot be embedded into the document."""


class DependencyUnavailableError(FullbleedError):
    """Raised when the PDF backend libraries cannot be loaded."""


class GenerationInProgressError(FullbleedError):
    """Raised when a generation is requested while another is still running."""


class ImageFormat(Enum):
    """Format tag attached to every decoded image."""

    JPEG = "JPEG"
    PNG = "PNG"
    WEBP = "WEBP"


def classify_format(mime_type: str | None) -> ImageFormat:
    """Map a declared MIME type to an :class:`ImageFormat`.

    Matching is a case-insensitive substring test: ``png`` wins over
    ``webp``, and anything else (including unknown or missing types) is
    tagged :attr:`ImageFormat.JPEG`.
    """
    lowered = (mime_type or "").lower()
    if "png" in lowered:
        return ImageFormat.PNG
    if "webp" in lowered:
        return ImageFormat.WEBP
    return ImageFormat.JPEG


@dataclass(frozen=True)
class SourceImage:
    """A raw image as supplied by the caller."""

    data: bytes
    mime_type: str
    name: str

    @classmethod
    def from_path(cls, path: Path | str) -> SourceImage:
        """Read *path* and guess its MIME type from the file name."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            data=path.read_bytes(),
            mime_type=mime_type or _FALLBACK_MIME_TYPE,
            name=path.name,
        )

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class DecodedImage:
    """An image whose pixel size and embeddable bytes are known."""

    data: bytes
    width: int
    height: int
    format: ImageFormat
    name: str = ""


def _reencode(image: Image.Image) -> bytes:
    """Re-encode the first frame losslessly: PNG, or TIFF for modes PNG lacks."""
    image.seek(0)
    buffer = io.BytesIO()
    if image.mode in _PNG_MODES:
        image.save(buffer, format="PNG")
    else:
        image.save(buffer, format="TIFF")
    return buffer.getvalue()


def decode(data: bytes, mime_type: str | None, *, name: str = "") -> DecodedImage:
    """Probe an image byte stream for its pixel dimensions.

    JPEG, PNG and TIFF payloads are kept byte-for-byte.  Other containers
    (WEBP, GIF, BMP, ...) are re-encoded losslessly, first frame only: to
    PNG where the pixel mode allows it, otherwise to TIFF.

    Args:
        data: Raw image bytes.
        mime_type: Declared MIME type.  Only used to pick the format tag.
        name: Display name carried through for error messages.

    Returns:
        A :class:`DecodedImage`.

    Raises:
        DecodeError: If the bytes are not a readable image or the image
            has a non-positive width or height.
        EmbedError: If a readable image cannot be re-encoded for embedding.
    """
    label = name or "<image>"
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            actual_format = image.format
            if width <= 0 or height <= 0:
                raise DecodeError(
                    f"{label}: invalid image dimensions {width}x{height}"
                )
            if actual_format in _PASSTHROUGH_FORMATS:
                encoded = data
            else:
                image.load()
                try:
                    encoded = _reencode(image)
                except (OSError, ValueError) as exc:
                    raise EmbedError(
                        f"{label}: cannot convert {actual_format} ({image.mode})"
                        f" for embedding ({exc})"
                    ) from exc
    except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"{label}: not a readable image ({exc})") from exc
    except (OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(f"{label}: failed to read image ({exc})") from exc

    tag = classify_format(mime_type)
    logger.debug(
        "Decoded %s: %dx%d %s (content %s)",
        label, width, height, tag.value, actual_format,
    )
    return DecodedImage(
        data=encoded,
        width=width,
        height=height,
        format=tag,
        name=name,
    )


async def decode_source(
    source: SourceImage,
    *,
    timeout: float | None = None,
) -> DecodedImage:
    """Decode *source* in a worker thread.

    Args:
        source: The image to decode.
        timeout: Optional limit in seconds.  ``None`` waits indefinitely.

    Raises:
        DecodeError: If decoding fails or exceeds *timeout*.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(
                decode, source.data, source.mime_type, name=source.name
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise DecodeError(
            f"{source.name or '<image>'}: decoding timed out after {timeout}s"
        ) from exc
