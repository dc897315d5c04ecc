"""颜色工具函数。"""

from __future__ import annotations

import re
from typing import Tuple

from batch_cropper.core.exceptions import InvalidConfigurationError

HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

RGB = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]

TRANSPARENT: RGBA = (0, 0, 0, 0)


def parse_hex_color(value: str) -> RGB:
    """将 HEX 字符串（``#FFF`` 或 ``#FFFFFF``）解析为 RGB 三元组。"""

    if not value:
        raise InvalidConfigurationError("颜色值不能为空")

    match = HEX_COLOR_RE.match(value.strip())
    if not match:
        raise InvalidConfigurationError(f"无法解析颜色值: {value}")

    hex_value = match.group(1)
    if len(hex_value) == 3:
        hex_value = "".join(ch * 2 for ch in hex_value)

    return int(hex_value[0:2], 16), int(hex_value[2:4], 16), int(hex_value[4:6], 16)


def opaque_rgba(value: str) -> RGBA:
    """解析背景色并补上完全不透明的 alpha。"""

    r, g, b = parse_hex_color(value)
    return r, g, b, 255
