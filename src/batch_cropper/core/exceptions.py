"""项目内使用的自定义异常定义。"""


class BatchCropperError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(BatchCropperError):
    """配置不合法时抛出。"""


class ExportInProgressError(BatchCropperError):
    """已有批量导出在运行时再次启动导出。"""
