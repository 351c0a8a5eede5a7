"""
@description 下载历史记录服务
@responsibility 将进入终态的任务写入数据库，写入失败不影响调度
"""

from loguru import logger

from app.core.database import get_session
from app.models.download_record import DownloadRecord
from app.services.task_record import TaskRecord


async def record_finished(tasks: list[TaskRecord]) -> None:
    """保存终态任务到 download_record 表"""
    if not tasks:
        return

    try:
        async with get_session() as session:
            for task in tasks:
                session.add(
                    DownloadRecord(
                        task_id=task.id,
                        locator=task.locator,
                        status=task.status.value,
                        artifact_name=task.artifact_name,
                        artifact_size=task.artifact_size,
                        error_message=task.error_message,
                        task_created_at=task.created_at,
                        finished_at=task.finished_at,
                    )
                )
            await session.commit()
        logger.debug(f"已记录 {len(tasks)} 条任务历史")
    except Exception as e:
        logger.error(f"保存任务历史失败: {e}")
