"""
@description 下载任务历史记录模型
@responsibility 记录进入终态（完成/失败）的下载任务
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, BigInteger, DateTime, Text
from app.core.database import Base


class DownloadRecord(Base):
    __tablename__ = "download_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(String(64), index=True)
    locator = Column(Text)
    status = Column(String(50))
    artifact_name = Column(String(512), nullable=True)
    artifact_size = Column(BigInteger, nullable=True)
    error_message = Column(Text, nullable=True)
    task_created_at = Column(DateTime)
    finished_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
