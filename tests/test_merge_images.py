"""Tests for the high-level merge_images API and the CLI."""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest
from rich.console import Console

from fullbleed import DecodeError, InputEmptyError, SourceImage, merge_images, session
from fullbleed.cli import _format_size, _generate_with_progress, main
from fullbleed.session import ImageSelection


@pytest.fixture
def image_files(tmp_path: Path, make_image) -> list[Path]:
    files = [
        (tmp_path / "01.jpg", make_image(400, 300, "JPEG")),
        (tmp_path / "02.png", make_image(200, 200, "PNG")),
        (tmp_path / "03.webp", make_image(1000, 100, "WEBP")),
    ]
    for path, data in files:
        path.write_bytes(data)
    return [path for path, _ in files]


class TestMergeImages:
    @pytest.mark.asyncio
    async def test_writes_pdf_to_file(self, tmp_path: Path, image_files, page_sizes):
        out = tmp_path / "out" / "merged.pdf"

        result = await merge_images(image_files, out)

        assert result.output_path == out.resolve()
        assert result.image_count == 3
        assert result.skipped == 0
        assert result.total_bytes == out.stat().st_size
        assert result.page_sizes == [(400, 300), (200, 200), (1000, 100)]
        assert page_sizes(out.read_bytes()) == [(400, 300), (200, 200), (1000, 100)]

    @pytest.mark.asyncio
    async def test_directory_output_uses_timestamped_name(self, tmp_path: Path, image_files):
        result = await merge_images(image_files, tmp_path / "pdfs")

        assert result.output_path.parent == (tmp_path / "pdfs").resolve()
        assert result.output_path.name.startswith("merged-images_")
        assert result.output_path.exists()

    @pytest.mark.asyncio
    async def test_non_images_are_skipped(self, tmp_path: Path, image_files):
        notes = tmp_path / "notes.txt"
        notes.write_text("not an image")

        result = await merge_images([notes, *image_files], tmp_path / "out.pdf")

        assert result.skipped == 1
        assert result.image_count == 3

    @pytest.mark.asyncio
    async def test_only_non_images_raises(self, tmp_path: Path):
        notes = tmp_path / "notes.txt"
        notes.write_text("not an image")

        with pytest.raises(InputEmptyError):
            await merge_images([notes], tmp_path / "out.pdf")

        assert not (tmp_path / "out.pdf").exists()

    @pytest.mark.asyncio
    async def test_corrupt_image_writes_nothing(self, tmp_path: Path, image_files):
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"garbage")

        with pytest.raises(DecodeError):
            await merge_images([*image_files, broken], tmp_path / "out.pdf")

        assert not (tmp_path / "out.pdf").exists()


class TestFormatSize:
    def test_bytes(self):
        assert _format_size(512) == "512.0 B"

    def test_kilobytes(self):
        assert _format_size(2048) == "2.0 KB"

    def test_megabytes(self):
        assert _format_size(3 * 1024 * 1024) == "3.0 MB"


class TestCli:
    def test_success(self, tmp_path: Path, monkeypatch, image_files, page_sizes):
        out = tmp_path / "cli.pdf"
        monkeypatch.setattr(
            sys, "argv", ["fullbleed", *map(str, image_files), "--output", str(out)]
        )

        main()

        assert page_sizes(out.read_bytes()) == [(400, 300), (200, 200), (1000, 100)]

    def test_no_images_exits_with_error(self, tmp_path: Path, monkeypatch, capsys):
        notes = tmp_path / "notes.txt"
        notes.write_text("not an image")
        monkeypatch.setattr(sys, "argv", ["fullbleed", str(notes)])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "No image files selected" in capsys.readouterr().err

    def test_missing_file_exits_with_error(self, tmp_path: Path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["fullbleed", str(tmp_path / "missing.png")])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1

    def test_corrupt_image_exits_with_error(self, tmp_path: Path, monkeypatch, image_files):
        broken = tmp_path / "broken.jpg"
        broken.write_bytes(b"garbage")
        out = tmp_path / "cli.pdf"
        monkeypatch.setattr(
            sys,
            "argv",
            ["fullbleed", *map(str, image_files), str(broken), "--output", str(out)],
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert not out.exists()


class _RecordingStatus:
    def __init__(self, events: list[str]) -> None:
        self._events = events

    def start(self) -> None:
        self._events.append("status started")

    def stop(self) -> None:
        self._events.append("status stopped")


class TestGenerateWithProgress:
    @pytest.mark.asyncio
    async def test_spinner_shown_while_assembling(self, monkeypatch, make_image):
        console = Console(file=io.StringIO())
        events: list[str] = []
        messages: list[str] = []

        def _status(message: str) -> _RecordingStatus:
            messages.append(message)
            return _RecordingStatus(events)

        def _recording_assemble(images):
            events.append("assembling")
            return real_assemble(images)

        real_assemble = session.assemble_pdf
        monkeypatch.setattr(console, "status", _status)
        monkeypatch.setattr(session, "assemble_pdf", _recording_assemble)
        selection = ImageSelection([
            SourceImage(data=make_image(30, 20), mime_type="image/jpeg", name=f"{i}.jpg")
            for i in range(3)
        ])

        document = await _generate_with_progress(
            console=console,
            selection=selection,
            timeout=None,
            prefix="merged-images",
        )

        assert document.page_count == 3
        assert "Assembling PDF" in messages[0]
        assert events == ["status started", "assembling", "status stopped"]
