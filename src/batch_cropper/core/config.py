"""导出任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from batch_cropper.core.models import CropRect

ShapeKind = str  # rectangle | rounded
FilenameMode = str  # ui | cropped
OutputFormat = str  # png | jpeg | webp | source

VALID_SHAPES = {"rectangle", "rounded"}
VALID_FILENAME_MODES = {"ui", "cropped"}
VALID_OUTPUT_FORMATS = {"png", "jpeg", "webp", "source"}


@dataclass(slots=True, frozen=True)
class ShapeConfig:
    """遮罩形状配置。半径与内缩均以输出像素计。"""

    shape: ShapeKind = "rectangle"
    corner_radius_px: int = 0
    inset_px: int = 0


@dataclass(slots=True, frozen=True)
class TargetSize:
    """输出图片的固定尺寸。"""

    w: int
    h: int

    @property
    def is_valid(self) -> bool:
        return self.w > 0 and self.h > 0


@dataclass(slots=True, frozen=True)
class ExportOptions:
    """编码与命名相关选项。"""

    transparent_png: bool = True
    filename_mode: FilenameMode = "ui"
    output_format: OutputFormat = "png"
    background_color: str = "#FFFFFF"
    jpeg_quality: int = 95
    webp_quality: int = 90
    max_workers: int = 1
    report_filename: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ExportRequest:
    """单次批量导出的全部输入，运行期间只读。"""

    input_dir: Path
    output_dir: Path
    crop: CropRect
    shape: ShapeConfig = field(default_factory=ShapeConfig)
    target: TargetSize = field(default_factory=lambda: TargetSize(1600, 1200))
    options: ExportOptions = field(default_factory=ExportOptions)
