"""
@description 配置查询接口
@responsibility 返回当前生效的调度、存储、清理和引擎配置
"""

from typing import TYPE_CHECKING

from fastapi import APIRouter

from app.schemas.api import success_response

if TYPE_CHECKING:
    from app.core.config import Config

router = APIRouter()

_config: "Config" = None


def init_config_router(config: "Config"):
    global _config
    _config = config


@router.get("/config")
async def get_config():
    return success_response(data=_config.model_dump(), message="获取配置成功")
