"""Shared fixtures: in-memory test images and PDF inspection."""

from __future__ import annotations

import io
from collections.abc import Callable

import pikepdf
import pytest
from PIL import Image


def _encode_image(width: int, height: int, fmt: str = "JPEG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 40, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


def _page_sizes(pdf_bytes: bytes) -> list[tuple[float, float]]:
    with pikepdf.Pdf.open(io.BytesIO(pdf_bytes)) as pdf:
        sizes = []
        for page in pdf.pages:
            x0, y0, x1, y1 = (float(v) for v in page.mediabox)
            sizes.append((x1 - x0, y1 - y0))
        return sizes


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory returning encoded image bytes of a given size and format."""
    return _encode_image


@pytest.fixture
def page_sizes() -> Callable[[bytes], list[tuple[float, float]]]:
    """Return the (width, height) of every page of a PDF buffer."""
    return _page_sizes
