"""
@description FastAPI 应用入口
@responsibility 初始化应用、集成路由、启动调度循环和过期清理任务
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import downloads, history, config, system
from app.api.downloads import init_downloads_router
from app.api.config import init_config_router
from app.api.system import init_system_router
from app.core.config import load_config
from app.core.database import init_db
from app.schemas.api import ApiResponse, success_response
from app.services.artifact_store import ArtifactStore
from app.services.download_manager import DownloadManager
from app.tasks.scheduler import DownloadScheduler
from app.tasks.sweeper import RetentionSweeper

if TYPE_CHECKING:
    from app.services.torrent_engine import LibtorrentEngine


config_obj = None
torrent_engine: Optional["LibtorrentEngine"] = None
download_manager: Optional[DownloadManager] = None
scheduler: Optional[DownloadScheduler] = None
sweeper: Optional[RetentionSweeper] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global config_obj, torrent_engine, download_manager, scheduler, sweeper

    logger.info("应用启动中...")

    config_obj = load_config()
    logger.info("配置加载完成")

    # 下载目录无法创建时直接终止启动
    store = ArtifactStore(config_obj.storage.downloads_dir)
    store.ensure_root()

    await init_db()
    logger.info("数据库初始化完成")

    # libtorrent 为可选依赖（extra: torrent），仅在启动服务时加载
    from app.services.torrent_engine import LibtorrentEngine

    torrent_engine = LibtorrentEngine(config_obj.engine)
    download_manager = DownloadManager(
        torrent_engine,
        store.root,
        max_concurrent=config_obj.scheduler.max_concurrent,
    )
    scheduler = DownloadScheduler(download_manager, config_obj.scheduler)
    sweeper = RetentionSweeper(download_manager, store, config_obj.retention)

    init_downloads_router(download_manager, store)
    init_config_router(config_obj)
    init_system_router(download_manager, scheduler, sweeper)

    await scheduler.start()
    await sweeper.start()
    logger.info(
        f"后台任务已启动: 最大并发 {config_obj.scheduler.max_concurrent}, "
        f"文件保留 {config_obj.retention.window_hours} 小时"
    )

    yield

    await scheduler.stop()
    await sweeper.stop()
    download_manager.shutdown()
    torrent_engine.close()

    logger.info("应用已关闭")


app = FastAPI(
    title="磁力下载管理器",
    description="排队下载磁力链接任务，跟踪进度并自动清理过期文件",
    version="1.0.0",
    lifespan=lifespan,
)


# 全局异常处理器
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """处理 HTTP 异常"""
    logger.info(f"HTTP 异常处理器被调用: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse(
            code=exc.status_code, message=exc.detail, data=None
        ).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """处理请求参数验证错误"""
    logger.info(f"验证错误处理器被调用: {len(exc.errors())} 个错误")
    errors = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ApiResponse(
            code=422, message="请求参数验证失败", data={"errors": errors}
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """处理通用异常"""
    logger.exception(f"服务器内部错误: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=ApiResponse(code=500, message="服务器内部错误", data=None).model_dump(),
    )


app.include_router(downloads.router, prefix="/api", tags=["downloads"])
app.include_router(history.router, prefix="/api", tags=["history"])
app.include_router(config.router, prefix="/api", tags=["config"])
app.include_router(system.router, prefix="/api", tags=["system"])


@app.get("/")
async def root():
    return success_response(
        data={"message": "磁力下载管理器 API", "version": "1.0.0"},
        message="服务运行中",
    )


@app.get("/health")
async def health_check():
    return success_response(data={"status": "healthy"}, message="健康检查通过")
