"""
@description API 请求/响应模型
@responsibility 定义所有 API 接口的数据结构
"""

from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class AddDownloadRequest(BaseModel):
    magnet_link: Optional[str] = Field(
        None,
        description="磁力链接",
        validation_alias=AliasChoices("magnet_link", "magnetLink"),
    )


class AddDownloadResponse(BaseModel):
    task_id: str = Field(..., description="任务 ID")
    message: str = Field(..., description="操作消息")


class CancelDownloadRequest(BaseModel):
    task_id: Optional[str] = Field(
        None,
        description="任务 ID",
        validation_alias=AliasChoices("task_id", "taskId"),
    )


class CancelDownloadResponse(BaseModel):
    task_id: str = Field(..., description="任务 ID")
    removed: bool = Field(..., description="任务是否存在并已移除")


class TaskItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="任务 ID")
    locator: str = Field(..., description="磁力链接")
    info_hash: Optional[str] = Field(None, description="BTIH（可解析时）")
    status: str = Field(..., description="任务状态（queued/active/completed/failed）")
    progress: int = Field(..., description="下载进度（百分比）")
    artifact_name: Optional[str] = Field(None, description="文件名")
    artifact_size: Optional[int] = Field(None, description="文件大小（字节）")
    artifact_location: Optional[str] = Field(None, description="文件下载地址")
    error_message: Optional[str] = Field(None, description="失败原因")
    created_at: datetime = Field(..., description="提交时间")
    download_rate: Optional[float] = Field(None, description="下载速度（字节/秒）")
    eta_seconds: Optional[float] = Field(None, description="预计剩余时间（秒）")


class TaskListResponse(BaseModel):
    total: int = Field(..., description="任务总数")
    tasks: list[TaskItem] = Field(..., description="任务列表")


class DownloadRecordItem(BaseModel):
    id: int = Field(..., description="记录 ID")
    task_id: str = Field(..., description="任务 ID")
    locator: str = Field(..., description="磁力链接")
    status: str = Field(..., description="终态")
    artifact_name: Optional[str] = Field(None, description="文件名")
    artifact_size: Optional[int] = Field(None, description="文件大小")
    error_message: Optional[str] = Field(None, description="失败原因")
    task_created_at: Optional[datetime] = Field(None, description="任务提交时间")
    finished_at: Optional[datetime] = Field(None, description="结束时间")


class DownloadHistoryResponse(BaseModel):
    total: int = Field(..., description="记录总数")
    records: list[DownloadRecordItem] = Field(..., description="历史记录列表")


class SweepResponse(BaseModel):
    deleted: list[str] = Field(default_factory=list, description="已删除的文件")
    failed: list[str] = Field(default_factory=list, description="删除失败的文件")
    dropped_tasks: list[str] = Field(default_factory=list, description="已移除的任务 ID")


class SystemStatusResponse(BaseModel):
    scheduler_running: bool = Field(..., description="调度循环是否运行中")
    sweeper_running: bool = Field(..., description="清理任务是否运行中")
    max_concurrent: int = Field(..., description="最大并发数")
    active_tasks: int = Field(..., description="活跃任务数量")
    queued_tasks: int = Field(..., description="排队任务数量")
    task_counts: dict[str, int] = Field(..., description="各状态任务数量")
    last_tick_time: Optional[str] = Field(None, description="上次调度时间")
    last_sweep_time: Optional[str] = Field(None, description="上次清理时间")


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""

    code: int = Field(..., description="响应码（0=成功，非0=错误）")
    message: str = Field(..., description="响应消息")
    data: Optional[T] = Field(None, description="响应数据")


def success_response(data: T, message: str = "操作成功") -> ApiResponse[T]:
    """创建成功响应"""
    return ApiResponse(code=0, message=message, data=data)
