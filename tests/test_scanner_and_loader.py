"""环节一：测试目录扫描与图片解码。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from batch_cropper.core.exceptions import InvalidConfigurationError
from batch_cropper.core.scanner import list_images_in_dir
from batch_cropper.processing.image_loader import ImageLoadingError, load_image


def test_scanner_filters_and_sorts_case_insensitively(tmp_path: Path) -> None:
    for name in ("b.JPG", "A.png", "c.webp", "d.jpeg", "notes.txt", "e.gif"):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "nested.png").mkdir()

    entries = list_images_in_dir(tmp_path)

    assert [entry.name for entry in entries] == ["A.png", "b.JPG", "c.webp", "d.jpeg"]
    assert [entry.ext for entry in entries] == ["png", "jpg", "webp", "jpeg"]


def test_scanner_is_not_recursive(tmp_path: Path) -> None:
    nested = tmp_path / "sub"
    nested.mkdir()
    Image.new("RGB", (4, 4)).save(nested / "inner.png")
    Image.new("RGB", (4, 4)).save(tmp_path / "outer.png")

    entries = list_images_in_dir(tmp_path)

    assert [entry.name for entry in entries] == ["outer.png"]


def test_scanner_rejects_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError):
        list_images_in_dir(tmp_path / "missing")


def test_scanner_returns_empty_list_for_empty_directory(tmp_path: Path) -> None:
    assert list_images_in_dir(tmp_path) == []


def test_corrupted_file_raises_loading_error(tmp_path: Path) -> None:
    broken = tmp_path / "broken.png"
    broken.write_text("not an image")

    with pytest.raises(ImageLoadingError):
        load_image(broken)


def test_exif_orientation_is_corrected(tmp_path: Path) -> None:
    image = Image.new("RGB", (80, 40), "red")
    exif = Image.Exif()
    exif[274] = 6  # 旋转 90 度
    image.save(tmp_path / "rotated.jpg", exif=exif.tobytes())

    loaded = load_image(tmp_path / "rotated.jpg")

    assert loaded.size == (40, 80)
    assert loaded.mode == "RGBA"


def test_cmyk_image_converts_to_rgba(tmp_path: Path) -> None:
    Image.new("CMYK", (50, 50), (0, 128, 255, 0)).save(tmp_path / "cmyk.jpg")

    loaded = load_image(tmp_path / "cmyk.jpg")

    assert loaded.mode == "RGBA"
    assert loaded.getpixel((25, 25))[3] == 255


def test_palette_transparency_is_preserved(tmp_path: Path) -> None:
    palette_image = Image.new("P", (10, 10), 0)
    palette_image.putpalette([0, 0, 0, 255, 0, 0] + [0] * (256 * 3 - 6))
    palette_image.putpixel((5, 5), 1)
    palette_image.save(tmp_path / "palette.png", transparency=0)

    loaded = load_image(tmp_path / "palette.png")

    assert loaded.mode == "RGBA"
    assert loaded.getpixel((0, 0))[3] == 0
    assert loaded.getpixel((5, 5)) == (255, 0, 0, 255)


def test_sixteen_bit_grayscale_is_scaled_down(tmp_path: Path) -> None:
    Image.new("I;16", (8, 8), 65535).save(tmp_path / "deep.png")

    loaded = load_image(tmp_path / "deep.png")

    assert loaded.mode == "RGBA"
    assert loaded.getpixel((0, 0))[0] == 255
