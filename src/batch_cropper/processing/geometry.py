"""裁剪矩形的几何规范化。"""

from __future__ import annotations

import math
from typing import Optional

from batch_cropper.core.models import CropRect, Point


def normalize_selection(anchor: Point, endpoint: Point, image_width: int, image_height: int) -> CropRect:
    """把拖拽选区的两个端点转换为整数裁剪矩形。

    左上角向下取整、右下角向上取整，结果总是被限制在图像范围内，
    与端点顺序无关。端点重合或完全越界时得到面积为 0 的矩形，
    调用方应视为“未选择裁剪区域”。
    """

    width = max(0, int(image_width))
    height = max(0, int(image_height))

    ax, bx = _bounded(anchor.x, width), _bounded(endpoint.x, width)
    ay, by = _bounded(anchor.y, height), _bounded(endpoint.y, height)

    min_x = min(ax, bx)
    min_y = min(ay, by)
    max_x = max(ax, bx)
    max_y = max(ay, by)

    x = min(width, max(0, math.floor(min_x)))
    y = min(height, max(0, math.floor(min_y)))
    x2 = max(0, min(width, math.ceil(max_x)))
    y2 = max(0, min(height, math.ceil(max_y)))

    return CropRect(x=x, y=y, w=max(0, x2 - x), h=max(0, y2 - y))


def _bounded(value: float, upper: int) -> float:
    # NaN 视为 0，无穷大夹到边界。
    if math.isnan(value):
        return 0.0
    return min(max(float(value), 0.0), float(upper))


def clamp_crop(crop: CropRect, image_width: int, image_height: int) -> CropRect:
    """将共享的裁剪矩形与某张图片的实际尺寸求交集。"""

    x = min(crop.x, image_width)
    y = min(crop.y, image_height)
    x2 = min(crop.x + crop.w, image_width)
    y2 = min(crop.y + crop.h, image_height)
    return CropRect(x=x, y=y, w=max(0, x2 - x), h=max(0, y2 - y))


def map_display_point(
    local_x: float,
    local_y: float,
    *,
    container_size: tuple[float, float],
    image_size: tuple[int, int],
) -> Optional[Point]:
    """把预览区域中的指针坐标换算为源图像素坐标。

    预览以 contain 方式居中缩放显示，超出图片显示区域的坐标会被夹到边缘。
    容器或图片尺寸为 0 时返回 ``None``。
    """

    container_w, container_h = container_size
    image_w, image_h = image_size
    if image_w <= 0 or image_h <= 0:
        return None

    scale = min(container_w / image_w, container_h / image_h)
    if scale <= 0:
        return None

    display_w = image_w * scale
    display_h = image_h * scale
    offset_x = (container_w - display_w) / 2
    offset_y = (container_h - display_h) / 2

    clamped_x = min(max(local_x, offset_x), offset_x + display_w)
    clamped_y = min(max(local_y, offset_y), offset_y + display_h)
    return Point(x=(clamped_x - offset_x) / scale, y=(clamped_y - offset_y) / scale)
