"""输出文件命名与写入模块。"""

from __future__ import annotations

import logging
from pathlib import Path

from batch_cropper.core.config import VALID_FILENAME_MODES, FilenameMode, OutputFormat
from batch_cropper.core.exceptions import BatchCropperError, InvalidConfigurationError
from batch_cropper.core.models import ImageEntry

LOGGER = logging.getLogger(__name__)

CROPPED_SUFFIX = "-cropped"

CODEC_EXTENSIONS = {
    "png": ".png",
    "jpeg": ".jpg",
    "webp": ".webp",
}

SOURCE_CODECS = {
    "png": "png",
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "webp": "webp",
}


class ImageWriteError(BatchCropperError):
    """输出写入失败。"""


def codec_for_entry(entry: ImageEntry, output_format: OutputFormat) -> str:
    """确定某个输入文件实际使用的编码格式。

    ``source`` 模式沿用输入文件自身的格式，其余模式对所有文件一致。
    """

    if output_format != "source":
        if output_format not in CODEC_EXTENSIONS:
            raise InvalidConfigurationError(f"未知的输出格式: {output_format}")
        return output_format

    codec = SOURCE_CODECS.get(entry.ext.lower())
    if codec is None:
        raise InvalidConfigurationError(f"无法根据扩展名确定输出格式: {entry.name}")
    return codec


def resolve_output_path(
    entry: ImageEntry,
    mode: FilenameMode,
    output_format: OutputFormat,
    output_dir: Path,
) -> Path:
    """根据命名模式与编码格式计算输出路径。

    ``ui`` 保留原文件名、替换扩展名；``cropped`` 在扩展名前追加 ``-cropped``。
    同名冲突直接覆盖。
    """

    if mode not in VALID_FILENAME_MODES:
        raise InvalidConfigurationError(f"未知的命名模式: {mode}")

    stem = Path(entry.name).stem or "image"
    if output_format == "source" and entry.ext:
        extension = "." + entry.ext.lower()
    else:
        extension = CODEC_EXTENSIONS[codec_for_entry(entry, output_format)]

    suffix = CROPPED_SUFFIX if mode == "cropped" else ""
    return output_dir / f"{stem}{suffix}{extension}"


def write_output_file(payload: bytes, destination: Path) -> None:
    """将编码后的字节写入磁盘，必要时创建父目录。"""

    if not payload:
        raise ImageWriteError(f"输出内容为空: {destination}")

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if destination.exists():
            LOGGER.debug("覆盖已存在的输出文件: %s", destination)
        destination.write_bytes(payload)
    except OSError as exc:
        raise ImageWriteError(f"写入文件失败: {destination}") from exc
