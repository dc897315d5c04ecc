"""缩放与编码：把裁剪后的图像缩放到目标尺寸并序列化为 PNG/JPEG/WebP。"""

from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image

from batch_cropper.core.config import ShapeConfig
from batch_cropper.core.exceptions import BatchCropperError, InvalidConfigurationError
from batch_cropper.processing.mask import MaskCompositionError, apply_mask, build_mask
from batch_cropper.utils.colors import RGBA, opaque_rgba

LOGGER = logging.getLogger(__name__)

# 所有批次文件共用同一个缩放滤镜。
RESAMPLE_FILTER = Image.Resampling.LANCZOS

PIL_FORMATS = {
    "png": "PNG",
    "jpeg": "JPEG",
    "webp": "WEBP",
}

ALPHA_CODECS = {"png"}


class ImageEncodeError(BatchCropperError):
    """编码失败或产出为空。"""


def resize_image(image: Image.Image, target_w: int, target_h: int) -> Image.Image:
    """缩放到精确的目标尺寸。

    宽高比不一致时直接非等比拉伸，不做留边；如需避免变形由调用方
    保证裁剪矩形与目标尺寸比例一致。
    """

    if target_w <= 0 or target_h <= 0:
        raise InvalidConfigurationError(f"目标尺寸必须为正整数: {target_w}x{target_h}")

    working = image if image.mode == "RGBA" else image.convert("RGBA")
    if working.size == (target_w, target_h):
        return working.copy()
    return working.resize((target_w, target_h), resample=RESAMPLE_FILTER)


def flatten(image: Image.Image, background: RGBA) -> Image.Image:
    """将带透明度的图像合成到不透明背景上，返回 RGB 图像。"""

    canvas = Image.new("RGB", image.size, background[:3])
    if image.mode in {"RGBA", "LA"}:
        canvas.paste(image.convert("RGBA"), (0, 0), mask=image.getchannel("A"))
    else:
        canvas.paste(image.convert("RGB"), (0, 0))
    return canvas


def encode_image(
    image: Image.Image,
    codec: str,
    *,
    transparent_png: bool,
    background: RGBA,
    jpeg_quality: int = 95,
    webp_quality: int = 90,
) -> bytes:
    """按编码格式序列化图像。

    只有 PNG 在 ``transparent_png`` 为真时保留 alpha；其余情况一律先合成到
    不透明背景。相同输入总是得到相同字节。
    """

    pil_format = PIL_FORMATS.get(codec)
    if pil_format is None:
        raise InvalidConfigurationError(f"不支持的输出格式: {codec}")

    keep_alpha = codec in ALPHA_CODECS and transparent_png
    image_to_save = image.convert("RGBA") if keep_alpha else flatten(image, background)

    save_params: dict[str, object] = {}
    if pil_format == "PNG":
        save_params.update(optimize=True)
    elif pil_format == "JPEG":
        save_params.update(quality=jpeg_quality, subsampling=1, optimize=True)
    else:
        save_params.update(quality=webp_quality, method=4)

    buffer = io.BytesIO()
    try:
        image_to_save.save(buffer, format=pil_format, **save_params)
    except (OSError, ValueError) as exc:
        raise ImageEncodeError(f"编码 {pil_format} 失败: {exc}") from exc

    payload = buffer.getvalue()
    if not payload:
        raise ImageEncodeError(f"编码 {pil_format} 得到空输出")
    return payload


def resize_and_encode(
    raster: Image.Image,
    target_w: int,
    target_h: int,
    codec: str,
    transparent_png: bool,
    *,
    shape: Optional[ShapeConfig] = None,
    background_color: str = "#FFFFFF",
    jpeg_quality: int = 95,
    webp_quality: int = 90,
) -> bytes:
    """缩放、（可选）套用遮罩并编码为字节。

    遮罩在缩放之后应用，因此圆角半径与内缩都以最终输出像素计。
    缩放失败抛出 ``ImageEncodeError``，遮罩失败抛出 ``MaskCompositionError``。
    """

    background = opaque_rgba(background_color)
    try:
        resized = resize_image(raster, target_w, target_h)
    except (OSError, ValueError) as exc:
        raise ImageEncodeError(f"缩放到 {target_w}x{target_h} 失败: {exc}") from exc

    try:
        if shape is not None:
            mask = build_mask(shape, target_w, target_h)
            try:
                masked = apply_mask(
                    resized,
                    mask,
                    transparent=codec in ALPHA_CODECS and transparent_png,
                    background=background,
                )
            except ValueError as exc:
                raise MaskCompositionError(f"遮罩合成失败: {exc}") from exc
            resized.close()
            resized = masked

        return encode_image(
            resized,
            codec,
            transparent_png=transparent_png,
            background=background,
            jpeg_quality=jpeg_quality,
            webp_quality=webp_quality,
        )
    finally:
        resized.close()
