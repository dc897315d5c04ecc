"""输入目录扫描逻辑。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from batch_cropper.core.exceptions import InvalidConfigurationError
from batch_cropper.core.models import ImageEntry

LOGGER = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}


def _iter_candidate_files(path: Path) -> Iterator[Path]:
    """遍历目录下的文件（不递归）。"""

    for candidate in path.iterdir():
        if candidate.is_file():
            yield candidate


def list_images_in_dir(input_dir: Path) -> list[ImageEntry]:
    """列出目录中受支持的图片，按文件名（忽略大小写）排序。"""

    resolved = input_dir.expanduser().resolve()
    if not resolved.is_dir():
        raise InvalidConfigurationError(f"输入目录不存在或不是文件夹: {input_dir}")

    collected = [
        ImageEntry.from_path(candidate)
        for candidate in _iter_candidate_files(resolved)
        if candidate.suffix.lower() in IMAGE_EXTENSIONS
    ]
    collected.sort(key=lambda entry: entry.name.lower())
    LOGGER.debug("目录 %s 中发现 %d 张图片", resolved, len(collected))
    return collected
