"""单个文件的导出工作单元，可在工作进程中执行。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image

from batch_cropper.core.config import ShapeConfig, TargetSize
from batch_cropper.core.models import CropRect, FileOutcome, ImageEntry
from batch_cropper.core.output_manager import ImageWriteError, write_output_file
from batch_cropper.processing.encoder import ImageEncodeError, resize_and_encode
from batch_cropper.processing.geometry import clamp_crop
from batch_cropper.processing.image_loader import ImageLoadingError, load_image
from batch_cropper.processing.mask import MaskCompositionError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ExportTask:
    """描述单个文件的导出任务，所有字段在批次内只读。"""

    index: int
    entry: ImageEntry
    dest_path: Path
    codec: str
    crop: CropRect
    shape: ShapeConfig
    target: TargetSize
    transparent_png: bool
    background_color: str = "#FFFFFF"
    jpeg_quality: int = 95
    webp_quality: int = 90
    strict_bounds: bool = False


def run_task(task: ExportTask) -> FileOutcome:
    """执行 解码 → 裁剪 → 缩放 → 遮罩 → 编码 → 写入，任何阶段失败都返回错误结果。"""

    source = task.entry.path
    name = task.entry.name
    image: Optional[Image.Image] = None
    cropped: Optional[Image.Image] = None

    try:
        image = load_image(source)
    except ImageLoadingError as exc:
        return _failure(task, "error-load", "decode failed", exc)

    crop = clamp_crop(task.crop, image.width, image.height)
    if crop.is_empty or (task.strict_bounds and crop != task.crop):
        _close_if_needed(image)
        return _failure(
            task,
            "error-crop",
            "crop outside image bounds",
            f"裁剪区域 {task.crop} 超出图片尺寸 {image.width}x{image.height}",
        )
    if crop != task.crop:
        LOGGER.info("%s: 裁剪区域按图片尺寸 %sx%s 收缩为 %s", name, image.width, image.height, crop)

    try:
        cropped = image.crop(crop.box)
        payload = resize_and_encode(
            cropped,
            task.target.w,
            task.target.h,
            task.codec,
            task.transparent_png,
            shape=task.shape,
            background_color=task.background_color,
            jpeg_quality=task.jpeg_quality,
            webp_quality=task.webp_quality,
        )
    except MaskCompositionError as exc:
        return _failure(task, "error-mask", "mask failed", exc)
    except (ImageEncodeError, OSError, ValueError) as exc:
        return _failure(task, "error-encode", "encode failed", exc)
    finally:
        _close_if_needed(image, cropped)

    try:
        write_output_file(payload, task.dest_path)
    except ImageWriteError as exc:
        return _failure(task, "error-write", "write failed", exc)

    return FileOutcome(
        source_path=source,
        status="exported",
        output_path=task.dest_path,
    )


def _failure(task: ExportTask, status: str, reason: str, detail: object) -> FileOutcome:
    detail_text = str(detail)
    LOGGER.warning("%s: %s - %s", task.entry.name, reason, detail_text)
    return FileOutcome(
        source_path=task.entry.path,
        status=status,
        output_path=task.dest_path,
        message=f"{task.entry.name}: {reason}",
        detail=detail_text,
    )


def _close_if_needed(*images: Optional[Image.Image]) -> None:
    for img in images:
        if img is not None:
            img.close()
