"""
@description 下载历史查询接口
@responsibility 分页查询已进入终态的下载任务记录
"""

from typing import Optional

from fastapi import APIRouter, Query
from sqlalchemy import select, func

from app.core.database import get_session
from app.models.download_record import DownloadRecord
from app.schemas.api import (
    DownloadRecordItem,
    DownloadHistoryResponse,
    success_response,
)

router = APIRouter()


@router.get("/history")
async def get_download_history(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    status: Optional[str] = Query(None, description="筛选状态（completed/failed）"),
):
    async with get_session() as session:
        count_stmt = select(func.count()).select_from(DownloadRecord)
        if status:
            count_stmt = count_stmt.where(DownloadRecord.status == status)
        count_result = await session.execute(count_stmt)
        total = count_result.scalar()

        stmt = select(DownloadRecord).order_by(DownloadRecord.created_at.desc())
        if status:
            stmt = stmt.where(DownloadRecord.status == status)
        stmt = stmt.offset((page - 1) * page_size).limit(page_size)

        result = await session.execute(stmt)
        records = result.scalars().all()

        record_items = [
            DownloadRecordItem(
                id=record.id,
                task_id=record.task_id or "",
                locator=record.locator or "",
                status=record.status or "",
                artifact_name=record.artifact_name,
                artifact_size=record.artifact_size,
                error_message=record.error_message,
                task_created_at=record.task_created_at,
                finished_at=record.finished_at,
            )
            for record in records
        ]

    return success_response(
        data=DownloadHistoryResponse(total=total, records=record_items),
        message="获取下载历史成功",
    )
