"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


@dataclass(slots=True, frozen=True)
class Point:
    """源图像素坐标系中的一个点，允许小数。"""

    x: float
    y: float


@dataclass(slots=True, frozen=True)
class CropRect:
    """源图像素坐标系中的整数裁剪矩形。"""

    x: int
    y: int
    w: int
    h: int

    @property
    def is_empty(self) -> bool:
        return self.w <= 0 or self.h <= 0

    @property
    def box(self) -> tuple[int, int, int, int]:
        """返回 Pillow ``crop`` 使用的 (left, upper, right, lower)。"""

        return self.x, self.y, self.x + self.w, self.y + self.h


@dataclass(slots=True, frozen=True)
class ImageEntry:
    """目录扫描得到的单个输入文件。"""

    path: Path
    name: str
    ext: str

    @classmethod
    def from_path(cls, path: Path) -> "ImageEntry":
        return cls(path=path, name=path.name, ext=path.suffix.lstrip(".").lower())


class ExportState(str, Enum):
    """批量导出器的状态。"""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(slots=True)
class FileOutcome:
    """记录单个文件的处理结果（用于汇总/报告）。"""

    source_path: Path
    status: str
    output_path: Optional[Path] = None
    message: Optional[str] = None
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "exported"


@dataclass(slots=True, frozen=True)
class ExportSummary:
    """一次批量导出的最终结果。

    ``exported + skipped == total``，``total`` 仅统计实际尝试过的文件；
    每个被跳过的文件在 ``errors`` 中对应一条消息。
    """

    exported: int
    skipped: int
    errors: tuple[str, ...] = ()
    state: ExportState = ExportState.COMPLETED
    failure_reason: Optional[str] = None
    outcomes: tuple[FileOutcome, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return self.exported + self.skipped

    @property
    def cancelled(self) -> bool:
        return self.state is ExportState.CANCELLED

    @classmethod
    def from_outcomes(cls, outcomes: list[FileOutcome], state: ExportState) -> "ExportSummary":
        exported = sum(1 for outcome in outcomes if outcome.succeeded)
        errors = tuple(outcome.message or outcome.status for outcome in outcomes if not outcome.succeeded)
        return cls(
            exported=exported,
            skipped=len(outcomes) - exported,
            errors=errors,
            state=state,
            outcomes=tuple(outcomes),
        )
