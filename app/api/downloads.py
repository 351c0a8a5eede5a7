"""
@description 下载任务接口
@responsibility 处理下载任务的提交、取消、状态查询以及已完成文件的下载
"""

from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from loguru import logger

from app.core.errors import NotFoundError, StorageError, ValidationError
from app.schemas.api import (
    AddDownloadRequest,
    AddDownloadResponse,
    CancelDownloadRequest,
    CancelDownloadResponse,
    TaskItem,
    TaskListResponse,
    success_response,
)

if TYPE_CHECKING:
    from app.services.artifact_store import ArtifactStore
    from app.services.download_manager import DownloadManager

router = APIRouter()

_manager: "DownloadManager" = None
_store: "ArtifactStore" = None


def init_downloads_router(manager: "DownloadManager", store: "ArtifactStore"):
    global _manager, _store
    _manager = manager
    _store = store


@router.post("/download")
async def add_download(request: AddDownloadRequest):
    try:
        task = _manager.submit(request.magnet_link)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"添加下载任务失败: {e}")
        raise HTTPException(status_code=500, detail="添加下载任务失败")

    return success_response(
        data=AddDownloadResponse(task_id=task.id, message="下载任务已加入队列"),
        message="下载任务已加入队列",
    )


def _cancel(task_id: Optional[str]):
    if not task_id or not task_id.strip():
        raise HTTPException(status_code=400, detail="缺少任务 ID")

    try:
        _manager.cancel(task_id)
        removed = True
    except NotFoundError:
        # 重复取消或任务已被清理，按成功处理
        logger.debug(f"取消的任务不存在: {task_id}")
        removed = False

    return success_response(
        data=CancelDownloadResponse(task_id=task_id, removed=removed),
        message="任务已取消",
    )


@router.delete("/download")
async def cancel_download(request: CancelDownloadRequest):
    return _cancel(request.task_id)


@router.delete("/download/{task_id}")
async def cancel_download_by_id(task_id: str):
    return _cancel(task_id)


@router.get("/status")
async def get_status():
    tasks = [
        TaskItem.model_validate(view, from_attributes=True)
        for view in _manager.snapshot()
    ]
    return success_response(
        data=TaskListResponse(total=len(tasks), tasks=tasks),
        message="获取任务状态成功",
    )


@router.get("/status/{task_id}")
async def get_task_status(task_id: str):
    view = _manager.get(task_id)
    if view is None:
        raise HTTPException(status_code=404, detail=f"任务 '{task_id}' 不存在")

    return success_response(
        data=TaskItem.model_validate(view, from_attributes=True),
        message="获取任务详情成功",
    )


@router.get("/files/{filename}")
async def get_file(filename: str):
    try:
        artifact = _store.resolve(filename)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="文件不存在")
    except StorageError as e:
        logger.error(f"读取文件失败: {e}")
        raise HTTPException(status_code=500, detail="读取文件失败")

    return FileResponse(
        artifact.path,
        media_type="application/octet-stream",
        filename=artifact.name,
    )
