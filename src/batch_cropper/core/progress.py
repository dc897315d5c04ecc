"""进度事件的数据模型与投递方式。"""

from __future__ import annotations

import queue
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ExportProgress:
    """开始处理某个文件时发出的进度信息，``current_index`` 从 1 开始。"""

    current_index: int
    total: int
    file_name: str


class QueueProgressSink:
    """把进度事件放入队列，供 GUI 等轮询方消费。"""

    def __init__(self, events: "queue.Queue[ExportProgress] | None" = None) -> None:
        self.events: queue.Queue[ExportProgress] = events if events is not None else queue.Queue()

    def __call__(self, update: ExportProgress) -> None:
        self.events.put(update)

    def drain(self) -> list[ExportProgress]:
        """取出当前队列中的全部事件。"""

        drained: list[ExportProgress] = []
        try:
            while True:
                drained.append(self.events.get_nowait())
        except queue.Empty:
            pass
        return drained
