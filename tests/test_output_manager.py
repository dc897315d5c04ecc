"""环节三：输出命名、写入与报告。"""

from __future__ import annotations

import csv
from pathlib import Path

import pytest

from batch_cropper.core.exceptions import InvalidConfigurationError
from batch_cropper.core.models import FileOutcome, ImageEntry
from batch_cropper.core.output_manager import (
    ImageWriteError,
    codec_for_entry,
    resolve_output_path,
    write_output_file,
)
from batch_cropper.core.report import HEADER, write_csv_report


def _entry(name: str) -> ImageEntry:
    return ImageEntry.from_path(Path("/input") / name)


def test_ui_mode_keeps_stem_and_uses_codec_extension(tmp_path: Path) -> None:
    assert resolve_output_path(_entry("photo.jpg"), "ui", "png", tmp_path) == tmp_path / "photo.png"
    assert resolve_output_path(_entry("photo.png"), "ui", "jpeg", tmp_path) == tmp_path / "photo.jpg"
    assert resolve_output_path(_entry("photo.png"), "ui", "webp", tmp_path) == tmp_path / "photo.webp"


def test_cropped_mode_appends_suffix(tmp_path: Path) -> None:
    assert resolve_output_path(_entry("a.png"), "cropped", "png", tmp_path) == tmp_path / "a-cropped.png"
    assert resolve_output_path(_entry("b.jpg"), "cropped", "jpeg", tmp_path) == tmp_path / "b-cropped.jpg"


def test_source_format_keeps_lowercased_extension(tmp_path: Path) -> None:
    entry = _entry("Scan.JPEG")

    assert codec_for_entry(entry, "source") == "jpeg"
    assert resolve_output_path(entry, "cropped", "source", tmp_path) == tmp_path / "Scan-cropped.jpeg"
    assert codec_for_entry(_entry("x.webp"), "source") == "webp"


def test_unknown_mode_or_format_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError):
        resolve_output_path(_entry("a.png"), "suffix", "png", tmp_path)
    with pytest.raises(InvalidConfigurationError):
        codec_for_entry(_entry("a.png"), "tiff")


def test_write_output_creates_parent_and_overwrites(tmp_path: Path) -> None:
    destination = tmp_path / "nested" / "out.png"

    write_output_file(b"first", destination)
    write_output_file(b"second", destination)

    assert destination.read_bytes() == b"second"


def test_write_output_rejects_empty_payload(tmp_path: Path) -> None:
    with pytest.raises(ImageWriteError):
        write_output_file(b"", tmp_path / "empty.png")


def test_write_output_wraps_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory")

    with pytest.raises(ImageWriteError):
        write_output_file(b"data", blocker / "out.png")


def test_csv_report_lists_every_outcome(tmp_path: Path) -> None:
    outcomes = [
        FileOutcome(source_path=Path("/in/a.png"), status="exported", output_path=tmp_path / "a.png"),
        FileOutcome(
            source_path=Path("/in/b.jpg"),
            status="error-load",
            message="b.jpg: decode failed",
            detail="cannot identify image file",
        ),
    ]

    report_path = write_csv_report(outcomes, tmp_path, "report.csv")

    with report_path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))

    assert rows[0] == HEADER
    assert len(rows) == 3
    assert rows[1][2] == "exported"
    assert rows[2][1] == ""
    assert rows[2][3] == "b.jpg: decode failed"
