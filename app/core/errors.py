"""
@description 下载服务异常定义
@responsibility 定义边界校验、传输引擎、存储和查找相关的异常层级
"""


class DownloadError(Exception):
    """下载服务异常基类"""


class ValidationError(DownloadError):
    """请求参数不合法（磁力链接、任务 ID 等）"""


class EngineStartError(DownloadError):
    """传输引擎拒绝或无法启动任务"""


class EngineRuntimeError(DownloadError):
    """传输引擎在下载过程中报告失败"""


class StorageError(DownloadError):
    """文件读取或删除失败"""


class NotFoundError(DownloadError):
    """任务或文件不存在"""
