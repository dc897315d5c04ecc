"""命令行入口。"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Optional, Tuple

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from batch_cropper.core.config import (
    VALID_FILENAME_MODES,
    VALID_OUTPUT_FORMATS,
    VALID_SHAPES,
    ExportOptions,
    ExportRequest,
    ShapeConfig,
    TargetSize,
)
from batch_cropper.core.models import CropRect, ExportState, ExportSummary, Point
from batch_cropper.core.progress import ExportProgress
from batch_cropper.processing.geometry import normalize_selection
from batch_cropper.processing.pipeline import BatchExporter
from batch_cropper.utils.logging import setup_logging

app = typer.Typer(help="按统一裁剪区域批量裁剪、遮罩、缩放并导出图片。")

EXIT_INVALID_REQUEST = 2


def _parse_size(value: str) -> Tuple[int, int]:
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise typer.BadParameter("尺寸必须形如 640x480")
    try:
        w = int(parts[0])
        h = int(parts[1])
    except ValueError as exc:
        raise typer.BadParameter("尺寸必须为整数") from exc
    if w <= 0 or h <= 0:
        raise typer.BadParameter("尺寸必须大于 0")
    return w, h


def _parse_crop(value: str) -> CropRect:
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 4:
        raise typer.BadParameter("裁剪区域必须形如 x,y,w,h")
    try:
        x, y, w, h = (int(part) for part in parts)
    except ValueError as exc:
        raise typer.BadParameter("裁剪区域必须为整数") from exc
    if min(x, y, w, h) < 0:
        raise typer.BadParameter("裁剪区域不能为负")
    return CropRect(x=x, y=y, w=w, h=h)


def _check_choice(value: str, choices: set[str], label: str) -> str:
    if value not in choices:
        raise typer.BadParameter(f"{label} 必须是 {', '.join(sorted(choices))} 之一")
    return value


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ExportProgress) -> None:
        nonlocal task_id
        if task_id is None:
            task_id = progress.add_task("导出图片", total=update.total)
        progress.update(task_id, completed=update.current_index - 1, description=update.file_name)

    return callback


def _wait_for(future: "Future[ExportSummary]") -> ExportSummary:
    while True:
        try:
            return future.result(timeout=0.2)
        except FutureTimeoutError:
            continue


def _echo_summary(summary: ExportSummary) -> None:
    if summary.state is ExportState.FAILED:
        typer.echo(f"导出未开始：{summary.failure_reason}", err=True)
        return

    prefix = "导出已取消" if summary.cancelled else "导出完成"
    typer.echo(f"{prefix}：成功 {summary.exported} 张，跳过 {summary.skipped} 张。")
    for message in summary.errors:
        typer.echo(f"  - {message}")


@app.command("export")
def export_cli(  # noqa: PLR0913
    input_dir: Path = typer.Argument(..., help="源图片目录"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    crop: str = typer.Option(..., "--crop", "-c", help="源图像素坐标下的裁剪区域，形如 x,y,w,h"),
    size: str = typer.Option("1600x1200", "--size", "-s", help="输出尺寸，形如 640x480"),
    shape: str = typer.Option("rounded", "--shape", help="遮罩形状 rectangle/rounded"),
    radius: int = typer.Option(18, "--radius", min=0, help="圆角半径（输出像素）"),
    inset: int = typer.Option(0, "--inset", min=0, help="遮罩内缩（输出像素）"),
    transparent: bool = typer.Option(True, "--transparent/--opaque", help="PNG 遮罩外区域是否透明"),
    filename_mode: str = typer.Option("ui", "--filename-mode", help="命名模式 ui/cropped"),
    output_format: str = typer.Option("png", "--format", "-f", help="输出格式 png/jpeg/webp/source"),
    background_color: str = typer.Option("#FFFFFF", "--background-color", help="不透明填充色 (HEX)"),
    max_workers: int = typer.Option(1, "--workers", "-w", min=1, help="并发进程数量"),
    report: Optional[str] = typer.Option(None, "--report", help="在输出目录写入 CSV 报告的文件名"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """执行批量导出。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    target_w, target_h = _parse_size(size)
    request = ExportRequest(
        input_dir=input_dir.expanduser().resolve(),
        output_dir=output.expanduser().resolve(),
        crop=_parse_crop(crop),
        shape=ShapeConfig(
            shape=_check_choice(shape, VALID_SHAPES, "--shape"),
            corner_radius_px=radius,
            inset_px=inset,
        ),
        target=TargetSize(w=target_w, h=target_h),
        options=ExportOptions(
            transparent_png=transparent,
            filename_mode=_check_choice(filename_mode, VALID_FILENAME_MODES, "--filename-mode"),
            output_format=_check_choice(output_format, VALID_OUTPUT_FORMATS, "--format"),
            background_color=background_color,
            max_workers=max_workers,
            report_filename=report,
        ),
    )

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    )

    exporter = BatchExporter()
    with progress:
        future = exporter.submit(request, progress_callback=_build_progress_callback(progress))
        try:
            summary = _wait_for(future)
        except KeyboardInterrupt:
            exporter.cancel()
            progress.log("正在取消，当前文件完成后停止……")
            summary = _wait_for(future)
        for task in progress.tasks:
            progress.update(task.id, completed=summary.total)

    _echo_summary(summary)
    if summary.state is ExportState.FAILED:
        raise typer.Exit(code=EXIT_INVALID_REQUEST)


@app.command("normalize")
def normalize_cli(
    x1: float = typer.Argument(..., help="起点 X"),
    y1: float = typer.Argument(..., help="起点 Y"),
    x2: float = typer.Argument(..., help="终点 X"),
    y2: float = typer.Argument(..., help="终点 Y"),
    image_size: str = typer.Option(..., "--image-size", help="参考图片尺寸，形如 800x600"),
) -> None:
    """把两个拖拽端点换算为可用于 --crop 的整数裁剪区域。"""

    width, height = _parse_size(image_size)
    rect = normalize_selection(Point(x1, y1), Point(x2, y2), width, height)
    if rect.is_empty:
        typer.echo("选区面积为 0，未选择裁剪区域。", err=True)
        raise typer.Exit(code=EXIT_INVALID_REQUEST)
    typer.echo(f"{rect.x},{rect.y},{rect.w},{rect.h}")


if __name__ == "__main__":
    app()
