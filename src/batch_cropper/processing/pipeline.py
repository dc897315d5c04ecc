"""批量导出流水线：逐个文件执行裁剪、遮罩、缩放与编码，汇总结果。"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from concurrent.futures.process import BrokenProcessPool
from pathlib import Path
from typing import Callable, Optional, Sequence

from batch_cropper.core.config import (
    VALID_FILENAME_MODES,
    VALID_OUTPUT_FORMATS,
    VALID_SHAPES,
    ExportOptions,
    ExportRequest,
    ShapeConfig,
    TargetSize,
)
from batch_cropper.core.exceptions import BatchCropperError, ExportInProgressError, InvalidConfigurationError
from batch_cropper.core.models import CropRect, ExportState, ExportSummary, FileOutcome, ImageEntry
from batch_cropper.core.output_manager import ImageWriteError, codec_for_entry, resolve_output_path
from batch_cropper.core.progress import ExportProgress
from batch_cropper.core.report import write_csv_report
from batch_cropper.core.scanner import list_images_in_dir
from batch_cropper.processing.encoder import ImageEncodeError
from batch_cropper.processing.image_loader import ImageLoadingError
from batch_cropper.processing.mask import MaskCompositionError
from batch_cropper.processing.worker import ExportTask, run_task
from batch_cropper.utils.colors import parse_hex_color

LOGGER = logging.getLogger(__name__)


ProgressCallback = Optional[Callable[[ExportProgress], None]]

SINGLE_EXPORT_ERRORS: dict[str, type[BatchCropperError]] = {
    "error-load": ImageLoadingError,
    "error-crop": InvalidConfigurationError,
    "error-mask": MaskCompositionError,
    "error-encode": ImageEncodeError,
    "error-write": ImageWriteError,
}


class CancellationToken:
    """协作式取消标记，只在每个文件开始前检查。"""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def validate_request(request: ExportRequest, entries: Sequence[ImageEntry]) -> None:
    """在处理任何文件之前校验请求，不合法时抛出 InvalidConfigurationError。"""

    crop = request.crop
    if crop.x < 0 or crop.y < 0:
        raise InvalidConfigurationError(f"裁剪区域坐标不能为负: {crop}")
    if crop.is_empty:
        raise InvalidConfigurationError("未选择裁剪区域：裁剪宽高必须大于 0")

    if not request.target.is_valid:
        raise InvalidConfigurationError(f"目标尺寸必须为正整数: {request.target.w}x{request.target.h}")

    if not entries:
        raise InvalidConfigurationError(f"输入目录中没有受支持的图片: {request.input_dir}")

    shape = request.shape
    if shape.shape not in VALID_SHAPES:
        raise InvalidConfigurationError(f"未知的遮罩形状: {shape.shape}")
    if shape.corner_radius_px < 0 or shape.inset_px < 0:
        raise InvalidConfigurationError("圆角半径与内缩不能为负")

    options = request.options
    if options.filename_mode not in VALID_FILENAME_MODES:
        raise InvalidConfigurationError(f"未知的命名模式: {options.filename_mode}")
    if options.output_format not in VALID_OUTPUT_FORMATS:
        raise InvalidConfigurationError(f"未知的输出格式: {options.output_format}")
    if not 1 <= options.jpeg_quality <= 100 or not 1 <= options.webp_quality <= 100:
        raise InvalidConfigurationError("编码质量必须在 1~100 之间")
    if options.max_workers < 1:
        raise InvalidConfigurationError("max_workers 必须大于 0")
    parse_hex_color(options.background_color)


class BatchExporter:
    """批量导出器。

    同一时刻只允许一个导出运行；``cancel`` 只设置标记，
    正在处理的文件总会完成（或失败）后才停止。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = ExportState.IDLE
        self._token: Optional[CancellationToken] = None

    @property
    def state(self) -> ExportState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is ExportState.RUNNING

    def cancel(self) -> None:
        """请求取消当前导出；没有运行中的导出时忽略。"""

        with self._lock:
            token = self._token if self._state is ExportState.RUNNING else None
        if token is None:
            LOGGER.debug("当前没有运行中的导出，忽略取消请求")
            return
        token.cancel()
        LOGGER.info("已请求取消导出，当前文件完成后停止")

    def run(
        self,
        request: ExportRequest,
        progress_callback: ProgressCallback = None,
        *,
        entries: Optional[Sequence[ImageEntry]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExportSummary:
        """同步执行一次批量导出并返回汇总。"""

        token = self._begin(cancel_token)
        return self._execute_and_finish(request, progress_callback, entries, token)

    def submit(
        self,
        request: ExportRequest,
        progress_callback: ProgressCallback = None,
        *,
        entries: Optional[Sequence[ImageEntry]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> "Future[ExportSummary]":
        """在后台线程中执行导出，立即返回 Future。

        是否已有导出在运行会在调用时同步判断。
        """

        token = self._begin(cancel_token)
        future: Future[ExportSummary] = Future()

        def _target() -> None:
            if not future.set_running_or_notify_cancel():
                self._finish(ExportState.CANCELLED)
                return
            try:
                future.set_result(self._execute_and_finish(request, progress_callback, entries, token))
            except BaseException as exc:  # noqa: BLE001
                future.set_exception(exc)

        threading.Thread(target=_target, name="batch-export", daemon=True).start()
        return future

    def _begin(self, cancel_token: Optional[CancellationToken]) -> CancellationToken:
        token = cancel_token or CancellationToken()
        with self._lock:
            if self._state is ExportState.RUNNING:
                raise ExportInProgressError("已有导出任务正在运行")
            self._state = ExportState.RUNNING
            self._token = token
        return token

    def _finish(self, state: ExportState) -> None:
        with self._lock:
            self._state = state
            self._token = None

    def _execute_and_finish(
        self,
        request: ExportRequest,
        progress_callback: ProgressCallback,
        entries: Optional[Sequence[ImageEntry]],
        token: CancellationToken,
    ) -> ExportSummary:
        final_state = ExportState.FAILED
        try:
            summary = _execute(request, progress_callback, entries, token)
            final_state = summary.state
            return summary
        finally:
            self._finish(final_state)


def export_batch(
    request: ExportRequest,
    progress_callback: ProgressCallback = None,
    *,
    entries: Optional[Sequence[ImageEntry]] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ExportSummary:
    """使用一次性的导出器执行批量导出。"""

    return BatchExporter().run(request, progress_callback, entries=entries, cancel_token=cancel_token)


def export_single(
    input_path: Path,
    output_path: Path,
    crop: CropRect,
    shape: ShapeConfig = ShapeConfig(),
    target: TargetSize = TargetSize(1600, 1200),
    options: ExportOptions = ExportOptions(),
) -> Path:
    """把单张图片导出到指定路径。

    编码格式由 ``output_path`` 的扩展名决定。与批量导出不同，裁剪区域
    必须完整落在图片内，不做收缩。失败时抛出对应阶段的异常。
    """

    entry = ImageEntry.from_path(input_path)
    request = ExportRequest(
        input_dir=input_path.parent,
        output_dir=output_path.parent,
        crop=crop,
        shape=shape,
        target=target,
        options=options,
    )
    validate_request(request, [entry])
    codec = codec_for_entry(ImageEntry.from_path(output_path), "source")

    outcome = run_task(
        ExportTask(
            index=1,
            entry=entry,
            dest_path=output_path,
            codec=codec,
            crop=crop,
            shape=shape,
            target=target,
            transparent_png=options.transparent_png,
            background_color=options.background_color,
            jpeg_quality=options.jpeg_quality,
            webp_quality=options.webp_quality,
            strict_bounds=True,
        )
    )
    if not outcome.succeeded:
        error_type = SINGLE_EXPORT_ERRORS.get(outcome.status, BatchCropperError)
        raise error_type(f"{outcome.message}: {outcome.detail}")

    LOGGER.info("已导出 %s -> %s", input_path.name, output_path)
    return output_path


def _execute(
    request: ExportRequest,
    progress_callback: ProgressCallback,
    entries: Optional[Sequence[ImageEntry]],
    token: CancellationToken,
) -> ExportSummary:
    if entries is None:
        try:
            entries = list_images_in_dir(request.input_dir)
        except InvalidConfigurationError as exc:
            return _failed_summary(str(exc), skipped=0)
    entries = list(entries)

    try:
        validate_request(request, entries)
    except InvalidConfigurationError as exc:
        return _failed_summary(str(exc), skipped=len(entries))

    total = len(entries)
    LOGGER.info("开始导出 %d 张图片到 %s", total, request.output_dir)

    if request.options.max_workers <= 1:
        outcomes, cancelled = _run_sequential(request, entries, progress_callback, token)
    else:
        outcomes, cancelled = _run_parallel(request, entries, progress_callback, token)

    state = ExportState.CANCELLED if cancelled else ExportState.COMPLETED
    summary = ExportSummary.from_outcomes(outcomes, state)
    LOGGER.info(
        "导出%s：成功 %d 张，跳过 %d 张，共尝试 %d/%d 张",
        "已取消" if cancelled else "完成",
        summary.exported,
        summary.skipped,
        summary.total,
        total,
    )

    if request.options.report_filename:
        _write_report(request, summary)
    return summary


def _run_sequential(
    request: ExportRequest,
    entries: list[ImageEntry],
    progress_callback: ProgressCallback,
    token: CancellationToken,
    *,
    first_index: int = 1,
) -> tuple[list[FileOutcome], bool]:
    outcomes: list[FileOutcome] = []
    total = first_index - 1 + len(entries)

    for index, entry in enumerate(entries, start=first_index):
        if token.cancelled:
            return outcomes, True
        _emit_progress(progress_callback, index, total, entry.name)
        task_or_outcome = _build_task(request, index, entry)
        if isinstance(task_or_outcome, FileOutcome):
            outcomes.append(task_or_outcome)
            continue
        outcomes.append(_run_safely(task_or_outcome))

    return outcomes, False


def _run_parallel(
    request: ExportRequest,
    entries: list[ImageEntry],
    progress_callback: ProgressCallback,
    token: CancellationToken,
) -> tuple[list[FileOutcome], bool]:
    """多进程执行；进度按列表顺序在提交时发出，结果按序号重排。

    工作进程异常退出后进程池不可再用：在途任务记为失败，
    其余文件在当前进程中顺序完成。
    """

    max_workers = request.options.max_workers
    total = len(entries)
    results: dict[int, FileOutcome] = {}
    pending: dict[Future[FileOutcome], ExportTask] = {}
    cancelled = False
    resume_from: Optional[int] = None

    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        for index, entry in enumerate(entries, start=1):
            while len(pending) >= max_workers:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    task = pending.pop(future)
                    results[task.index] = _collect(future, task)

            if token.cancelled:
                cancelled = True
                break

            _emit_progress(progress_callback, index, total, entry.name)
            task_or_outcome = _build_task(request, index, entry)
            if isinstance(task_or_outcome, FileOutcome):
                results[index] = task_or_outcome
                continue
            try:
                pending[executor.submit(run_task, task_or_outcome)] = task_or_outcome
            except BrokenProcessPool:
                LOGGER.error("进程池已失效，剩余 %d 张图片改为在当前进程中顺序处理", total - index + 1)
                results[index] = _run_safely(task_or_outcome)
                resume_from = index + 1
                break

        for future in wait(pending).done:
            task = pending[future]
            results[task.index] = _collect(future, task)

    if resume_from is not None:
        remaining, cancelled = _run_sequential(
            request,
            entries[resume_from - 1 :],
            progress_callback,
            token,
            first_index=resume_from,
        )
        results.update((resume_from + offset, outcome) for offset, outcome in enumerate(remaining))

    return [results[index] for index in sorted(results)], cancelled


def _build_task(request: ExportRequest, index: int, entry: ImageEntry) -> ExportTask | FileOutcome:
    options = request.options
    try:
        codec = codec_for_entry(entry, options.output_format)
        dest_path = resolve_output_path(entry, options.filename_mode, options.output_format, request.output_dir)
    except InvalidConfigurationError as exc:
        LOGGER.warning("%s: 无法确定输出格式 - %s", entry.name, exc)
        return FileOutcome(
            source_path=entry.path,
            status="error-encode",
            message=f"{entry.name}: encode failed",
            detail=str(exc),
        )

    return ExportTask(
        index=index,
        entry=entry,
        dest_path=dest_path,
        codec=codec,
        crop=request.crop,
        shape=request.shape,
        target=request.target,
        transparent_png=options.transparent_png,
        background_color=options.background_color,
        jpeg_quality=options.jpeg_quality,
        webp_quality=options.webp_quality,
    )


def _run_safely(task: ExportTask) -> FileOutcome:
    try:
        return run_task(task)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("任务执行异常：%s", task.entry.name)
        return _worker_failure(task, exc)


def _collect(future: Future[FileOutcome], task: ExportTask) -> FileOutcome:
    try:
        return future.result()
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("任务执行异常：%s", task.entry.name)
        return _worker_failure(task, exc)


def _worker_failure(task: ExportTask, exc: BaseException) -> FileOutcome:
    return FileOutcome(
        source_path=task.entry.path,
        status="error-worker",
        output_path=task.dest_path,
        message=f"{task.entry.name}: export failed",
        detail=str(exc),
    )


def _failed_summary(reason: str, *, skipped: int) -> ExportSummary:
    LOGGER.error("导出未开始：%s", reason)
    return ExportSummary(
        exported=0,
        skipped=skipped,
        state=ExportState.FAILED,
        failure_reason=reason,
    )


def _emit_progress(callback: ProgressCallback, current_index: int, total: int, file_name: str) -> None:
    if not callback:
        return
    callback(ExportProgress(current_index=current_index, total=total, file_name=file_name))


def _write_report(request: ExportRequest, summary: ExportSummary) -> None:
    assert request.options.report_filename is not None
    try:
        write_csv_report(summary.outcomes, request.output_dir, request.options.report_filename)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)
