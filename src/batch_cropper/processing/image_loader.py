"""图片解码与模式归一化。"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from batch_cropper.core.exceptions import BatchCropperError

LOGGER = logging.getLogger(__name__)


class ImageLoadingError(BatchCropperError):
    """图片加载失败。"""


def load_image(path: Path) -> Image.Image:
    """加载单张图片并执行 EXIF 旋转，统一转换为 RGBA。

    返回值为新的 Image 对象，调用者负责关闭。
    """

    try:
        with Image.open(path) as img:
            img.load()

            # EXIF Orientation 校正，与预览中看到的方向一致
            img = ImageOps.exif_transpose(img)

            if img.mode != "RGBA":
                img = _convert_to_rgba(img)

            return img.copy()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        LOGGER.debug("无法解码图像文件 %s: %s", path, exc)
        raise ImageLoadingError(f"无法加载图像: {path}: {exc}") from exc


def _convert_to_rgba(img: Image.Image) -> Image.Image:
    """将任意模式图像转换为 RGBA。"""

    if img.mode == "P":
        # 调色板图的透明色需经由 RGBA 保留。
        return img.convert("RGBA")

    if img.mode in {"CMYK", "YCbCr", "LAB", "HSV"}:
        return img.convert("RGB").convert("RGBA")

    if img.mode.startswith("I;16"):
        # 16 位灰度先压缩到 8 位。
        return img.convert("I").point(lambda value: value * (1 / 256)).convert("L").convert("RGBA")

    return img.convert("RGBA")
