"""遮罩合成：矩形或带内缩的圆角矩形。"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image

from batch_cropper.core.config import VALID_SHAPES, ShapeConfig
from batch_cropper.core.exceptions import BatchCropperError, InvalidConfigurationError
from batch_cropper.utils.colors import RGBA, TRANSPARENT


class MaskCompositionError(BatchCropperError):
    """遮罩与图像不匹配或合成失败。"""


@dataclass(slots=True, frozen=True)
class MaskDescriptor:
    """以输出像素描述的遮罩几何。

    ``left/top/right/bottom`` 为内部区域边界（像素边缘坐标），
    ``radius`` 为已夹紧后的圆角半径。
    """

    width: int
    height: int
    left: float
    top: float
    right: float
    bottom: float
    radius: float
    is_full: bool = False

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def interior_size(self) -> tuple[float, float]:
        return self.right - self.left, self.bottom - self.top

    def coverage(self) -> np.ndarray:
        """返回布尔数组，像素中心落在圆角内部区域时为 True。"""

        if self.is_full:
            return np.ones((self.height, self.width), dtype=bool)

        xs = np.arange(self.width, dtype=np.float64)[np.newaxis, :] + 0.5
        ys = np.arange(self.height, dtype=np.float64)[:, np.newaxis] + 0.5

        inside = (xs >= self.left) & (xs <= self.right) & (ys >= self.top) & (ys <= self.bottom)
        if self.radius <= 0:
            return inside

        r = self.radius
        # 最近的圆角圆心；直边区域内圆心与像素同轴，距离退化为单轴判断。
        cx = np.clip(xs, self.left + r, self.right - r)
        cy = np.clip(ys, self.top + r, self.bottom - r)
        within_corner = (xs - cx) ** 2 + (ys - cy) ** 2 <= r * r
        return inside & within_corner

    def to_alpha(self) -> Image.Image:
        """渲染为 ``L`` 模式的 alpha 图：内部 255，外部 0。"""

        if self.is_full:
            return Image.new("L", self.size, 255)
        array = np.where(self.coverage(), 255, 0).astype(np.uint8)
        return Image.fromarray(array)


def build_mask(shape: ShapeConfig, region_w: int, region_h: int) -> MaskDescriptor:
    """根据形状配置计算遮罩几何。

    ``rectangle`` 覆盖整个区域。``rounded`` 先按 ``inset_px`` 向内收缩
    （最多收缩到较短边的一半），再把圆角半径夹紧到内部区域短边的一半。
    """

    if shape.shape not in VALID_SHAPES:
        raise InvalidConfigurationError(f"未知的遮罩形状: {shape.shape}")

    width = max(0, int(region_w))
    height = max(0, int(region_h))

    if shape.shape == "rectangle":
        return MaskDescriptor(
            width=width,
            height=height,
            left=0.0,
            top=0.0,
            right=float(width),
            bottom=float(height),
            radius=0.0,
            is_full=True,
        )

    inset = min(max(0, shape.inset_px), width // 2, height // 2)
    inner_w = max(0.0, float(width - inset * 2))
    inner_h = max(0.0, float(height - inset * 2))
    radius = min(float(max(0, shape.corner_radius_px)), inner_w / 2, inner_h / 2)

    return MaskDescriptor(
        width=width,
        height=height,
        left=float(inset),
        top=float(inset),
        right=float(inset) + inner_w,
        bottom=float(inset) + inner_h,
        radius=radius,
    )


def apply_mask(
    image: Image.Image,
    mask: MaskDescriptor,
    *,
    transparent: bool,
    background: RGBA,
) -> Image.Image:
    """把遮罩外的像素置为全透明或填充为不透明背景色，返回 RGBA 图像。"""

    if image.size != mask.size:
        raise MaskCompositionError(f"遮罩尺寸 {mask.size} 与图像尺寸 {image.size} 不一致")

    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    if mask.is_full:
        return rgba.copy()

    fill = TRANSPARENT if transparent else background
    canvas = Image.new("RGBA", rgba.size, fill)
    canvas.paste(rgba, (0, 0), mask=mask.to_alpha())
    return canvas
