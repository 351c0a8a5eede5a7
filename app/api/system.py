"""
@description 系统状态接口
@responsibility 查询调度/清理循环状态，手动触发过期文件清理
"""

from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter

from app.schemas.api import (
    ApiResponse,
    SweepResponse,
    SystemStatusResponse,
    success_response,
)

if TYPE_CHECKING:
    from app.services.download_manager import DownloadManager
    from app.tasks.scheduler import DownloadScheduler
    from app.tasks.sweeper import RetentionSweeper

router = APIRouter()

_manager: Optional["DownloadManager"] = None
_scheduler: Optional["DownloadScheduler"] = None
_sweeper: Optional["RetentionSweeper"] = None


def init_system_router(
    manager: "DownloadManager",
    scheduler: "DownloadScheduler",
    sweeper: "RetentionSweeper",
):
    global _manager, _scheduler, _sweeper
    _manager = manager
    _scheduler = scheduler
    _sweeper = sweeper


@router.get("/system", response_model=ApiResponse[SystemStatusResponse])
async def get_system_status():
    last_tick = _scheduler.last_run_time if _scheduler else None
    last_sweep = _sweeper.last_run_time if _sweeper else None

    return success_response(
        data=SystemStatusResponse(
            scheduler_running=_scheduler.is_running if _scheduler else False,
            sweeper_running=_sweeper.is_running if _sweeper else False,
            max_concurrent=_manager.max_concurrent,
            active_tasks=_manager.active_count,
            queued_tasks=_manager.queued_count,
            task_counts=_manager.counts(),
            last_tick_time=last_tick.isoformat() if last_tick else None,
            last_sweep_time=last_sweep.isoformat() if last_sweep else None,
        ),
        message="获取系统状态成功",
    )


@router.post("/cleanup", response_model=ApiResponse[SweepResponse])
async def run_cleanup():
    result = await _sweeper.sweep()
    return success_response(
        data=SweepResponse(
            deleted=result.deleted,
            failed=result.failed,
            dropped_tasks=result.dropped_tasks,
        ),
        message="清理完成",
    )
